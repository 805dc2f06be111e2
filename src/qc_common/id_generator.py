"""Time-ordered 64-bit ids for listings and offers, as decimal strings.

    | 41 bits ms since 2023-11-14 | 10 bits MACHINE_ID | 12 bits sequence |

Milliseconds come from the monotonic clock anchored to wall time once at
start-up, so ids never go backwards when NTP steps the system clock. Ids
from one process sort in creation order; offer ids are used as the
tie-break when two offers share a created_at.
"""

import threading
import time

from config.settings import settings

_EPOCH_MS = 1_700_000_000_000
_MACHINE_BITS = 10
_SEQUENCE_BITS = 12
_SEQUENCE_MASK = (1 << _SEQUENCE_BITS) - 1


class SnowflakeIdGenerator:
    def __init__(self, machine_id: int = 0) -> None:
        if not 0 <= machine_id < 1 << _MACHINE_BITS:
            raise ValueError(f"machine_id must be 0-{(1 << _MACHINE_BITS) - 1}")
        self._machine_bits = machine_id << _SEQUENCE_BITS
        self._wall_at_start_ms = time.time_ns() // 1_000_000
        self._mono_at_start_ns = time.monotonic_ns()
        self._last_ms = -1
        self._sequence = 0
        self._lock = threading.Lock()

    def _now_ms(self) -> int:
        elapsed_ms = (time.monotonic_ns() - self._mono_at_start_ns) // 1_000_000
        return self._wall_at_start_ms + elapsed_ms

    def next_id(self) -> str:
        with self._lock:
            now = self._now_ms()
            if now == self._last_ms:
                self._sequence = (self._sequence + 1) & _SEQUENCE_MASK
                if self._sequence == 0:
                    # 4096 ids this millisecond already; spin into the next one
                    while now <= self._last_ms:
                        now = self._now_ms()
            else:
                self._sequence = 0
            self._last_ms = now
            value = (
                (now - _EPOCH_MS) << (_MACHINE_BITS + _SEQUENCE_BITS)
                | self._machine_bits
                | self._sequence
            )
        return str(value)


_generator = SnowflakeIdGenerator(settings.MACHINE_ID)


def generate_id() -> str:
    return _generator.next_id()
