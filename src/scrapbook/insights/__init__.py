"""Views derived from the memory collection on every read.

Exports:
    - TimeCapsuleScheduler: lock state and unlock progress of time capsules
    - AchievementEngine: achievement rules with permanent unlocks
    - ArchiveAnalytics: activity breakdowns for the stats page
"""

from scrapbook.insights.achievements import (
    ACHIEVEMENT_DEFINITIONS,
    AchievementCategory,
    AchievementDefinition,
    AchievementEngine,
    AchievementProgress,
    AchievementRarity,
    AchievementReport,
    UserStats,
    compute_streaks,
    compute_user_stats,
)
from scrapbook.insights.analytics import AnalyticsSummary, ArchiveAnalytics, MonthlyActivity
from scrapbook.insights.capsules import CapsuleStatus, TimeCapsuleScheduler, days_between

__all__ = [
    # Time capsules
    "CapsuleStatus",
    "TimeCapsuleScheduler",
    "days_between",
    # Achievements
    "ACHIEVEMENT_DEFINITIONS",
    "AchievementCategory",
    "AchievementDefinition",
    "AchievementEngine",
    "AchievementProgress",
    "AchievementRarity",
    "AchievementReport",
    "UserStats",
    "compute_streaks",
    "compute_user_stats",
    # Analytics
    "AnalyticsSummary",
    "ArchiveAnalytics",
    "MonthlyActivity",
]
