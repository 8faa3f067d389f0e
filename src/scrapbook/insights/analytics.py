"""Archive analytics: activity breakdowns over the memory collection.

Like the capsule scheduler, analytics are derived on demand from a snapshot
of memories and cache nothing between calls.

Example:
    >>> analytics = ArchiveAnalytics(store.memories)
    >>> analytics.type_breakdown()
    {'photo': 12, 'video': 3, 'audio': 0, 'text': 5}
    >>> analytics.most_active_weekday()
    'Sunday'
"""

from __future__ import annotations

from collections import Counter, defaultdict
from collections.abc import Iterable

from pydantic import BaseModel, Field

from scrapbook.core.models import Memory, MemoryType, MoodType

WEEKDAY_NAMES = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]


class MonthlyActivity(BaseModel):
    """Memories created in one calendar month, split by type."""

    month: str
    total: int = 0
    by_type: dict[str, int] = Field(default_factory=dict)


class AnalyticsSummary(BaseModel):
    """Everything the stats page shows, in one object."""

    total_memories: int
    liked_memories: int
    time_capsules: int
    type_breakdown: dict[str, int]
    mood_breakdown: dict[str, int]
    monthly_activity: list[MonthlyActivity]
    weekday_activity: dict[str, int]
    most_active_weekday: str | None


class ArchiveAnalytics:
    """Aggregations over a fixed list of memories."""

    def __init__(self, memories: Iterable[Memory]) -> None:
        self._memories = list(memories)

    def __len__(self) -> int:
        return len(self._memories)

    def type_breakdown(self) -> dict[str, int]:
        """Count per memory type; every type is present, zero included."""
        counts = Counter(m.type.value for m in self._memories)
        return {t.value: counts.get(t.value, 0) for t in MemoryType}

    def mood_breakdown(self) -> dict[str, int]:
        """Count per mood, for memories that have one."""
        counts = Counter(m.mood.value for m in self._memories if m.mood)
        return {mood.value: counts[mood.value] for mood in MoodType if counts[mood.value]}

    def monthly_activity(self) -> list[MonthlyActivity]:
        """Per-month creation counts (YYYY-MM of ``created_at``), oldest first."""
        by_month: dict[str, Counter[str]] = defaultdict(Counter)
        for memory in self._memories:
            by_month[memory.created_at.strftime("%Y-%m")][memory.type.value] += 1
        return [
            MonthlyActivity(
                month=month,
                total=sum(counts.values()),
                by_type={t.value: counts.get(t.value, 0) for t in MemoryType},
            )
            for month, counts in sorted(by_month.items())
        ]

    def weekday_activity(self) -> dict[str, int]:
        """Creation counts by weekday, Monday first."""
        counts = Counter(m.created_at.weekday() for m in self._memories)
        return {name: counts.get(index, 0) for index, name in enumerate(WEEKDAY_NAMES)}

    def most_active_weekday(self) -> str | None:
        """Weekday with the most memories created; earliest in the week wins ties."""
        if not self._memories:
            return None
        activity = self.weekday_activity()
        return max(activity, key=lambda name: activity[name])

    def summary(self) -> AnalyticsSummary:
        return AnalyticsSummary(
            total_memories=len(self._memories),
            liked_memories=sum(1 for m in self._memories if m.is_liked),
            time_capsules=sum(1 for m in self._memories if m.is_time_capsule),
            type_breakdown=self.type_breakdown(),
            mood_breakdown=self.mood_breakdown(),
            monthly_activity=self.monthly_activity(),
            weekday_activity=self.weekday_activity(),
            most_active_weekday=self.most_active_weekday(),
        )
