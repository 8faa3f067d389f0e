"""Achievements and streaks.

Achievements are static rules evaluated against a statistics snapshot of the
memory collection. Each definition names the statistic it reads and the
threshold it needs::

    progress    = min(stat_value, requirement)
    is_unlocked = stat_value >= requirement   (or unlocked before)

The first evaluation that satisfies a definition records ``unlocked_at`` in
the engine's :class:`AchievementState`. That timestamp is never overwritten or
cleared, so an achievement stays unlocked even after the statistic drops again
(a streak resets, a favorite is unliked).

Example:
    >>> stats = compute_user_stats(memories, today=date(2026, 10, 19))
    >>> engine = AchievementEngine(state)
    >>> report = engine.evaluate(stats, now=datetime.now(timezone.utc))
    >>> [a.definition.title for a in report.newly_unlocked]
    ['First Steps']
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import date, datetime, timedelta, timezone, tzinfo
from enum import Enum
from typing import Literal

from pydantic import BaseModel, Field, computed_field

from scrapbook.core.models import Memory
from scrapbook.storage.persistence import AchievementState

logger = logging.getLogger(__name__)


# =============================================================================
# Enums
# =============================================================================


class AchievementCategory(str, Enum):
    MEMORIES = "memories"
    STREAKS = "streaks"
    SOCIAL = "social"
    CREATIVE = "creative"
    EXPLORER = "explorer"
    COLLECTOR = "collector"


class AchievementRarity(str, Enum):
    COMMON = "common"
    RARE = "rare"
    EPIC = "epic"
    LEGENDARY = "legendary"


StatField = Literal[
    "total_memories",
    "favorite_memories",
    "current_streak",
    "longest_streak",
    "best_streak",
    "unique_locations",
    "unique_tags",
    "photos_with_effects",
    "collages_created",
]


# =============================================================================
# Definitions
# =============================================================================


class AchievementDefinition(BaseModel):
    """Static achievement rule."""

    id: str
    title: str
    description: str
    icon: str
    category: AchievementCategory
    requirement: int = Field(ge=1)
    rarity: AchievementRarity
    stat_field: StatField

    model_config = {"frozen": True}


def _define(
    id: str,
    title: str,
    description: str,
    icon: str,
    category: AchievementCategory,
    requirement: int,
    rarity: AchievementRarity,
    stat_field: StatField,
) -> AchievementDefinition:
    return AchievementDefinition(
        id=id,
        title=title,
        description=description,
        icon=icon,
        category=category,
        requirement=requirement,
        rarity=rarity,
        stat_field=stat_field,
    )


_C = AchievementCategory
_R = AchievementRarity

ACHIEVEMENT_DEFINITIONS: tuple[AchievementDefinition, ...] = (
    # Memory milestones
    _define("first_memory", "First Steps", "Create your very first memory", "🌟",
            _C.MEMORIES, 1, _R.COMMON, "total_memories"),
    _define("memory_collector_10", "Memory Collector", "Create 10 memories", "📚",
            _C.MEMORIES, 10, _R.COMMON, "total_memories"),
    _define("memory_enthusiast_50", "Memory Enthusiast", "Create 50 memories", "🎯",
            _C.MEMORIES, 50, _R.RARE, "total_memories"),
    _define("memory_master_100", "Memory Master", "Create 100 memories", "👑",
            _C.MEMORIES, 100, _R.EPIC, "total_memories"),
    _define("memory_legend_500", "Memory Legend", "Create 500 memories", "🏆",
            _C.MEMORIES, 500, _R.LEGENDARY, "total_memories"),
    # Streaks
    _define("streak_3", "Getting Started", "Create memories for 3 days in a row", "🔥",
            _C.STREAKS, 3, _R.COMMON, "best_streak"),
    _define("streak_7", "Week Warrior", "Create memories for 7 days in a row", "⚡",
            _C.STREAKS, 7, _R.RARE, "best_streak"),
    _define("streak_30", "Monthly Master", "Create memories for 30 days in a row", "💎",
            _C.STREAKS, 30, _R.EPIC, "best_streak"),
    _define("streak_100", "Centurion", "Create memories for 100 days in a row", "🌟",
            _C.STREAKS, 100, _R.LEGENDARY, "best_streak"),
    # Social
    _define("first_favorite", "Heart Warmer", "Mark your first memory as favorite", "❤️",
            _C.SOCIAL, 1, _R.COMMON, "favorite_memories"),
    _define("favorite_collector_10", "Favorite Collector", "Have 10 favorite memories", "💕",
            _C.SOCIAL, 10, _R.RARE, "favorite_memories"),
    _define("favorite_enthusiast_25", "Love Enthusiast", "Have 25 favorite memories", "💖",
            _C.SOCIAL, 25, _R.EPIC, "favorite_memories"),
    # Creative
    _define("first_collage", "Creative Spark", "Create your first collage", "🎨",
            _C.CREATIVE, 1, _R.COMMON, "collages_created"),
    _define("photo_editor", "Photo Artist", "Apply effects to 5 photos", "🖼️",
            _C.CREATIVE, 5, _R.RARE, "photos_with_effects"),
    _define("collage_master", "Collage Master", "Create 10 collages", "🖌️",
            _C.CREATIVE, 10, _R.EPIC, "collages_created"),
    # Explorer
    _define("first_location", "First Journey", "Add location to your first memory", "📍",
            _C.EXPLORER, 1, _R.COMMON, "unique_locations"),
    _define("location_explorer_5", "Local Explorer", "Visit 5 different locations", "🗺️",
            _C.EXPLORER, 5, _R.RARE, "unique_locations"),
    _define("world_traveler_20", "World Traveler", "Visit 20 different locations", "🌍",
            _C.EXPLORER, 20, _R.EPIC, "unique_locations"),
    # Collector
    _define("tag_starter", "Tag Starter", "Use 5 different tags", "🏷️",
            _C.COLLECTOR, 5, _R.COMMON, "unique_tags"),
    _define("tag_collector_20", "Tag Collector", "Use 20 different tags", "📋",
            _C.COLLECTOR, 20, _R.RARE, "unique_tags"),
    _define("tag_master_50", "Tag Master", "Use 50 different tags", "📊",
            _C.COLLECTOR, 50, _R.EPIC, "unique_tags"),
)


# =============================================================================
# Statistics
# =============================================================================


class UserStats(BaseModel):
    """Aggregate statistics over the memory collection."""

    total_memories: int = 0
    favorite_memories: int = 0
    current_streak: int = 0
    longest_streak: int = 0
    unique_locations: int = 0
    unique_tags: int = 0
    photos_with_effects: int = 0
    collages_created: int = 0
    last_memory_date: datetime | None = None

    @computed_field
    @property
    def best_streak(self) -> int:
        """Longest run ever achieved, counting the one in progress."""
        return max(self.current_streak, self.longest_streak)

    def value_of(self, stat_field: StatField) -> int:
        return int(getattr(self, stat_field))


def compute_streaks(days: Iterable[date], today: date) -> tuple[int, int]:
    """Current and longest runs of consecutive calendar days.

    The current streak is the run ending today, or yesterday if nothing was
    recorded yet today. A gap of two days or more resets it to 0; the longest
    streak keeps the historical maximum.

    Args:
        days: Days with at least one memory (duplicates allowed).
        today: Reference day.

    Returns:
        ``(current_streak, longest_streak)``
    """
    distinct = sorted(set(days))
    if not distinct:
        return 0, 0

    longest = run = 1
    for previous, day in zip(distinct, distinct[1:]):
        if day - previous == timedelta(days=1):
            run += 1
            longest = max(longest, run)
        else:
            run = 1

    present = set(distinct)
    cursor = today if today in present else today - timedelta(days=1)
    current = 0
    while cursor in present:
        current += 1
        cursor -= timedelta(days=1)

    return current, longest


def compute_user_stats(
    memories: Iterable[Memory],
    today: date,
    collages_created: int = 0,
    tz: tzinfo = timezone.utc,
) -> UserStats:
    """Build the statistics snapshot the achievement rules read.

    Streak days are the calendar days (in ``tz``) on which memories were
    created. Locations and tags are counted case-insensitively.
    """
    memories = list(memories)
    creation_days = [m.created_at.astimezone(tz).date() for m in memories]
    current, longest = compute_streaks(creation_days, today)

    return UserStats(
        total_memories=len(memories),
        favorite_memories=sum(1 for m in memories if m.is_liked),
        current_streak=current,
        longest_streak=longest,
        unique_locations=len({m.location.lower() for m in memories if m.location}),
        unique_tags=len({tag.lower() for m in memories for tag in m.tags}),
        photos_with_effects=sum(1 for m in memories if m.applied_filter),
        collages_created=collages_created,
        last_memory_date=max((m.created_at for m in memories), default=None),
    )


# =============================================================================
# Evaluation
# =============================================================================


class AchievementProgress(BaseModel):
    """One achievement as evaluated against a statistics snapshot."""

    definition: AchievementDefinition
    progress: int
    is_unlocked: bool
    unlocked_at: datetime | None = None

    @property
    def percent(self) -> int:
        return round(100 * self.progress / self.definition.requirement)


class AchievementReport(BaseModel):
    """Result of an evaluation pass."""

    achievements: list[AchievementProgress] = Field(default_factory=list)
    newly_unlocked: list[AchievementProgress] = Field(default_factory=list)

    @property
    def unlocked(self) -> list[AchievementProgress]:
        return [a for a in self.achievements if a.is_unlocked]

    def by_category(self, category: AchievementCategory) -> list[AchievementProgress]:
        return [a for a in self.achievements if a.definition.category == category]


class AchievementEngine:
    """Evaluates achievement rules and owns the first-unlock timestamps.

    Attributes:
        definitions: Rules evaluated on each pass.
    """

    def __init__(
        self,
        state: AchievementState | None = None,
        definitions: Iterable[AchievementDefinition] = ACHIEVEMENT_DEFINITIONS,
    ) -> None:
        self._state = state.model_copy(deep=True) if state else AchievementState()
        self.definitions = tuple(definitions)
        self._logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    @property
    def state(self) -> AchievementState:
        """Copy of the persisted part of the engine."""
        return self._state.model_copy(deep=True)

    @property
    def collages_created(self) -> int:
        return self._state.collages_created

    def record_collage(self) -> None:
        self._state.collages_created += 1

    def evaluate(self, stats: UserStats, now: datetime) -> AchievementReport:
        """Evaluate every definition, recording first unlocks at ``now``."""
        report = AchievementReport()
        for definition in self.definitions:
            value = stats.value_of(definition.stat_field)
            unlocked_at = self._state.unlocked_at.get(definition.id)
            newly = False
            if unlocked_at is None and value >= definition.requirement:
                unlocked_at = now
                self._state.unlocked_at[definition.id] = now
                newly = True
                self._logger.info(f"Achievement unlocked: {definition.title}")

            entry = AchievementProgress(
                definition=definition,
                progress=min(value, definition.requirement),
                is_unlocked=unlocked_at is not None,
                unlocked_at=unlocked_at,
            )
            report.achievements.append(entry)
            if newly:
                report.newly_unlocked.append(entry)
        return report
