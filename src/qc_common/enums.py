"""Global enums: must match DB CHECK constraints exactly."""

from enum import Enum


class ListingStatus(str, Enum):
    OPEN = "OPEN"
    SOLD = "SOLD"      # terminal, reached only through accept-offer
    CLOSED = "CLOSED"  # terminal, set only by an administrative collaborator


class ListingCategory(str, Enum):
    TEXTBOOK = "textbook"
    DORM = "dorm"
    OTHER = "other"


class UserRole(str, Enum):
    STUDENT = "student"
    BUSINESS_OWNER = "businessOwner"

