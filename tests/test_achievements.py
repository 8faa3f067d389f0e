"""Tests for streaks, statistics and the achievement engine.

Tests cover:
- compute_streaks(): current vs longest runs, gaps, duplicates
- compute_user_stats(): case-insensitive uniques, effects, favorites
- The static achievement catalogue
- AchievementEngine: progress, first unlocks, permanence
"""

from datetime import date, datetime, timedelta, timezone

import pytest

from scrapbook.core.models import Memory, MemoryType
from scrapbook.insights.achievements import (
    ACHIEVEMENT_DEFINITIONS,
    AchievementCategory,
    AchievementEngine,
    UserStats,
    compute_streaks,
    compute_user_stats,
)
from scrapbook.storage.persistence import AchievementState

TODAY = date(2026, 10, 19)
T1 = datetime(2026, 10, 19, 9, 0, tzinfo=timezone.utc)
T2 = datetime(2026, 11, 30, 9, 0, tzinfo=timezone.utc)


def days_back(*offsets: int) -> list[date]:
    return [TODAY - timedelta(days=n) for n in offsets]


def by_id(report, achievement_id: str):
    return next(a for a in report.achievements if a.definition.id == achievement_id)


class TestStreaks:
    """Tests for compute_streaks()."""

    def test_no_days(self):
        assert compute_streaks([], TODAY) == (0, 0)

    def test_run_ending_today(self):
        assert compute_streaks(days_back(0, 1, 2), TODAY) == (3, 3)

    def test_run_ending_yesterday_still_counts(self):
        assert compute_streaks(days_back(1, 2), TODAY) == (2, 2)

    def test_two_day_gap_resets_current(self):
        assert compute_streaks(days_back(2, 3, 4, 5), TODAY) == (0, 4)

    def test_longest_is_historical_maximum(self):
        days = days_back(0, 1) + days_back(10, 11, 12, 13, 14)
        assert compute_streaks(days, TODAY) == (2, 5)

    def test_duplicate_days_count_once(self):
        assert compute_streaks(days_back(0, 0, 1, 1), TODAY) == (2, 2)


class TestUserStats:
    """Tests for compute_user_stats()."""

    @staticmethod
    def memory(created: datetime, **fields) -> Memory:
        return Memory(
            title=fields.pop("title", "m"),
            date=date(2024, 1, 1),
            type=fields.pop("type", MemoryType.PHOTO),
            created_at=created,
            **fields,
        )

    def test_counts(self):
        memories = [
            self.memory(T1, location="Paris", tags=["Travel", "food"], is_liked=True),
            self.memory(T1 - timedelta(days=1), location="paris", tags=["travel"]),
            self.memory(T1 - timedelta(days=2), location="Rome", applied_filter="sepia"),
            self.memory(T1 - timedelta(days=5), type=MemoryType.TEXT),
        ]

        stats = compute_user_stats(memories, today=TODAY, collages_created=2)

        assert stats.total_memories == 4
        assert stats.favorite_memories == 1
        assert stats.unique_locations == 2
        assert stats.unique_tags == 2
        assert stats.photos_with_effects == 1
        assert stats.collages_created == 2
        assert stats.current_streak == 3
        assert stats.longest_streak == 3
        assert stats.last_memory_date == T1

    def test_empty_collection(self):
        stats = compute_user_stats([], today=TODAY)
        assert stats.total_memories == 0
        assert stats.best_streak == 0
        assert stats.last_memory_date is None

    def test_streak_days_use_given_time_zone(self):
        early_morning = datetime(2026, 10, 19, 2, 0, tzinfo=timezone.utc)
        new_york = timezone(timedelta(hours=-4))
        memories = [self.memory(early_morning), self.memory(early_morning - timedelta(days=1))]

        utc_stats = compute_user_stats(memories, today=TODAY)
        local_stats = compute_user_stats(memories, today=TODAY, tz=new_york)

        assert utc_stats.current_streak == 2
        # Both fall a calendar day earlier in New York; the run ends yesterday there.
        assert local_stats.current_streak == 2
        assert local_stats.longest_streak == 2

    def test_best_streak(self):
        assert UserStats(current_streak=2, longest_streak=9).best_streak == 9
        assert UserStats(current_streak=4, longest_streak=4).best_streak == 4


class TestCatalogue:
    """Tests for the static definitions."""

    def test_definition_count_and_unique_ids(self):
        ids = [d.id for d in ACHIEVEMENT_DEFINITIONS]
        assert len(ids) == 21
        assert len(set(ids)) == 21

    def test_every_category_is_used(self):
        used = {d.category for d in ACHIEVEMENT_DEFINITIONS}
        assert used == set(AchievementCategory)

    def test_stat_fields_exist_on_stats(self):
        stats = UserStats()
        for definition in ACHIEVEMENT_DEFINITIONS:
            assert stats.value_of(definition.stat_field) == 0


class TestEngine:
    """Tests for AchievementEngine.evaluate()."""

    def test_progress_is_capped_at_requirement(self):
        report = AchievementEngine().evaluate(UserStats(total_memories=12), now=T1)

        collector = by_id(report, "memory_collector_10")
        enthusiast = by_id(report, "memory_enthusiast_50")

        assert collector.progress == 10
        assert collector.is_unlocked is True
        assert enthusiast.progress == 12
        assert enthusiast.is_unlocked is False
        assert enthusiast.percent == 24

    def test_first_unlock_recorded(self):
        engine = AchievementEngine()

        report = engine.evaluate(UserStats(total_memories=1), now=T1)

        assert [a.definition.id for a in report.newly_unlocked] == ["first_memory"]
        assert by_id(report, "first_memory").unlocked_at == T1
        assert engine.state.unlocked_at == {"first_memory": T1}

    def test_second_evaluation_reports_nothing_new(self):
        engine = AchievementEngine()
        engine.evaluate(UserStats(total_memories=1), now=T1)

        report = engine.evaluate(UserStats(total_memories=2), now=T2)

        assert report.newly_unlocked == []
        assert by_id(report, "first_memory").unlocked_at == T1

    def test_unlock_is_permanent_after_streak_reset(self):
        engine = AchievementEngine()
        engine.evaluate(UserStats(current_streak=3, longest_streak=3), now=T1)

        report = engine.evaluate(UserStats(current_streak=0, longest_streak=0), now=T2)
        streak = by_id(report, "streak_3")

        assert streak.is_unlocked is True
        assert streak.unlocked_at == T1
        assert streak.progress == 0

    def test_restored_state_is_respected(self):
        state = AchievementState(unlocked_at={"first_favorite": T1})
        engine = AchievementEngine(state)

        report = engine.evaluate(UserStats(), now=T2)

        assert by_id(report, "first_favorite").is_unlocked is True
        assert report.newly_unlocked == []

    def test_state_is_a_copy(self):
        engine = AchievementEngine()
        engine.state.unlocked_at["first_memory"] = T1

        assert engine.state.unlocked_at == {}

    def test_record_collage_feeds_creative_achievements(self):
        engine = AchievementEngine()
        engine.record_collage()

        stats = UserStats(collages_created=engine.collages_created)
        report = engine.evaluate(stats, now=T1)

        assert by_id(report, "first_collage").is_unlocked is True
        assert engine.state.collages_created == 1

    def test_by_category(self):
        report = AchievementEngine().evaluate(UserStats(), now=T1)
        streaks = report.by_category(AchievementCategory.STREAKS)

        assert [a.definition.requirement for a in streaks] == [3, 7, 30, 100]
        assert report.unlocked == []

    @pytest.mark.parametrize(
        "stats, achievement_id",
        [
            (UserStats(favorite_memories=10), "favorite_collector_10"),
            (UserStats(photos_with_effects=5), "photo_editor"),
            (UserStats(unique_locations=5), "location_explorer_5"),
            (UserStats(unique_tags=20), "tag_collector_20"),
            (UserStats(current_streak=7), "streak_7"),
        ],
    )
    def test_threshold_unlocks(self, stats, achievement_id):
        report = AchievementEngine().evaluate(stats, now=T1)
        assert by_id(report, achievement_id).is_unlocked is True
