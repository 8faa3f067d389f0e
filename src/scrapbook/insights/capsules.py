"""Time-capsule scheduling.

A time capsule is a memory flagged ``is_time_capsule`` that stays locked until
its ``unlock_date``. The scheduler derives lock state and unlock progress from
the memory collection on every call and never mutates a memory.

Progress is measured in fractional days from ``created_at``::

    total   = days_between(created_at, unlock_date)
    elapsed = days_between(created_at, now)
    percent = clamp(round(100 * elapsed / total), 0, 100)

A capsule whose span is zero (or negative, in data written before unlock
dates were checked) reports 100 percent; its lock state still compares
``now`` against ``unlock_date`` directly.

Example:
    >>> scheduler = TimeCapsuleScheduler()
    >>> for status in scheduler.schedule(memories):
    ...     print(status.memory.title, status.progress_percent, status.is_locked)
"""

from __future__ import annotations

import math
from collections.abc import Callable, Iterable
from datetime import datetime

from pydantic import BaseModel

from scrapbook.core.models import Memory, utc_now

SECONDS_PER_DAY = 86_400


class CapsuleStatus(BaseModel):
    """Derived view of one time capsule at a given instant.

    Attributes:
        memory: The capsule memory.
        is_locked: True while ``now`` is before the unlock date.
        progress_percent: Elapsed share of the lock period, 0 to 100.
        days_remaining: Whole days left until unlock, rounded up; 0 once open.
    """

    memory: Memory
    is_locked: bool
    progress_percent: int
    days_remaining: int


def days_between(start: datetime, end: datetime) -> float:
    """Signed number of days from ``start`` to ``end``, with fractions."""
    return (end - start).total_seconds() / SECONDS_PER_DAY


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


class TimeCapsuleScheduler:
    """Computes lock state and progress for time-capsule memories."""

    def __init__(self, clock: Callable[[], datetime] = utc_now) -> None:
        self._clock = clock

    def evaluate(self, memory: Memory, now: datetime | None = None) -> CapsuleStatus:
        """Status of a single capsule.

        Raises:
            ValueError: If ``memory`` is not a time capsule with an unlock date.
        """
        if not memory.is_time_capsule or memory.unlock_date is None:
            raise ValueError(f"Memory {memory.id} is not a time capsule")
        now = now or self._clock()

        total_days = days_between(memory.created_at, memory.unlock_date)
        if total_days <= 0:
            percent = 100
        else:
            elapsed_days = days_between(memory.created_at, now)
            percent = _round_half_up(100 * elapsed_days / total_days)
            percent = max(0, min(100, percent))

        is_locked = now < memory.unlock_date
        remaining = math.ceil(days_between(now, memory.unlock_date)) if is_locked else 0

        return CapsuleStatus(
            memory=memory,
            is_locked=is_locked,
            progress_percent=percent,
            days_remaining=remaining,
        )

    def schedule(self, memories: Iterable[Memory], now: datetime | None = None) -> list[CapsuleStatus]:
        """All capsules in ``memories``, soonest unlock first."""
        now = now or self._clock()
        capsules = [m for m in memories if m.is_time_capsule and m.unlock_date is not None]
        capsules.sort(key=lambda m: m.unlock_date)
        return [self.evaluate(m, now) for m in capsules]

    def next_unlock(self, memories: Iterable[Memory], now: datetime | None = None) -> CapsuleStatus | None:
        """The locked capsule that opens soonest, if any."""
        for status in self.schedule(memories, now):
            if status.is_locked:
                return status
        return None
