"""Fixtures for the listing unit tests."""

from datetime import timedelta

import pytest
from listing_factories import T0, FixedClock, InMemoryListingRepository, RecordingPublisher


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(T0 + timedelta(hours=1))


@pytest.fixture
def publisher() -> RecordingPublisher:
    return RecordingPublisher()


@pytest.fixture
def memory_repo() -> InMemoryListingRepository:
    return InMemoryListingRepository()
