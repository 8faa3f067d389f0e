"""Persistence substrates, the archive adapter, and backup formats."""

from scrapbook.storage.backup import export_csv, export_json, parse_backup
from scrapbook.storage.persistence import (
    ACHIEVEMENTS_KEY,
    ALBUMS_KEY,
    MEMORIES_KEY,
    AchievementState,
    ArchiveSnapshot,
    InMemoryStore,
    JsonFileStore,
    KeyValueStore,
    PersistenceAdapter,
)

__all__ = [
    "ACHIEVEMENTS_KEY",
    "ALBUMS_KEY",
    "MEMORIES_KEY",
    "AchievementState",
    "ArchiveSnapshot",
    "InMemoryStore",
    "JsonFileStore",
    "KeyValueStore",
    "PersistenceAdapter",
    "export_csv",
    "export_json",
    "parse_backup",
]
