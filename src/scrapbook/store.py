"""ArchiveStore: the composition root of the scrapbook data layer.

The store owns one MemoryRepository, one AlbumRepository and the
PersistenceAdapter they are saved through, and exposes a single facade for
reads and writes. Consumers construct one store at process start and pass it
around explicitly.

Lifecycle::

    uninitialized --open()--> loading --load done--> ready

Mutations are rejected with NotReadyError until the store is ready, so a
slow initial load can never be overwritten by an empty default state. Once
ready, every successful mutation is applied in memory first and then saved.
A failed save does not roll the mutation back: the in-memory archive is the
source of truth for the session and the next successful save catches up.

Example:
    >>> store = ArchiveStore.from_config()
    >>> store.open()
    >>> memory_id = store.create_memory(
    ...     {"title": "Graduation", "date": date(2024, 6, 1), "type": "photo"}
    ... )
    >>> album_id = store.create_album({"title": "2024"})
    >>> store.add_memory_to_album(album_id, memory_id)
    >>> store.delete_memory(memory_id)  # also leaves the album
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Mapping
from datetime import date, datetime, timezone, tzinfo
from enum import Enum
from typing import Any, Literal

from scrapbook.config import AppConfig, StorageBackend, get_config
from scrapbook.core.albums import AlbumRepository
from scrapbook.core.memories import MemoryRepository
from scrapbook.core.models import Album, Memory, utc_now
from scrapbook.errors import DeserializationError, NotReadyError, WriteError
from scrapbook.insights.achievements import (
    AchievementEngine,
    AchievementReport,
    UserStats,
    compute_user_stats,
)
from scrapbook.insights.analytics import ArchiveAnalytics
from scrapbook.insights.capsules import CapsuleStatus, TimeCapsuleScheduler
from scrapbook.storage.backup import export_csv, export_json, parse_backup
from scrapbook.storage.persistence import (
    AchievementState,
    ArchiveSnapshot,
    InMemoryStore,
    JsonFileStore,
    KeyValueStore,
    PersistenceAdapter,
)
from scrapbook.utils.logging import LogContext

logger = logging.getLogger(__name__)

ExportFormat = Literal["json", "csv"]


class StoreState(str, Enum):
    """Lifecycle of an ArchiveStore."""

    UNINITIALIZED = "uninitialized"
    LOADING = "loading"
    READY = "ready"


class ArchiveStore:
    """Read/write facade over the memory and album collections.

    Args:
        adapter: Persistence adapter the archive is loaded from and saved to.
        clock: Source of "now" for timestamps and derived views.
        raise_on_write_error: Re-raise WriteError after recording it.
        on_warning: Called with the text of every persistence warning.
        tz: Time zone whose calendar days count toward streaks.
    """

    def __init__(
        self,
        adapter: PersistenceAdapter,
        clock: Callable[[], datetime] = utc_now,
        raise_on_write_error: bool = False,
        on_warning: Callable[[str], None] | None = None,
        tz: tzinfo = timezone.utc,
    ) -> None:
        self._adapter = adapter
        self._clock = clock
        self._raise_on_write_error = raise_on_write_error
        self._on_warning = on_warning
        self._tz = tz

        self._state = StoreState.UNINITIALIZED
        self._warnings: list[str] = []
        self._memories = MemoryRepository(clock=clock)
        self._albums = AlbumRepository(self._memories, clock=clock)
        self._scheduler = TimeCapsuleScheduler(clock=clock)
        self._engine = AchievementEngine()
        self._logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    @classmethod
    def from_config(
        cls,
        config: AppConfig | None = None,
        **kwargs: Any,
    ) -> "ArchiveStore":
        """Build a store for the configured backend (not yet opened)."""
        config = config or get_config()
        substrate: KeyValueStore
        if config.storage.backend == StorageBackend.MEMORY:
            substrate = InMemoryStore()
        else:
            substrate = JsonFileStore(config.storage.data_dir)
        kwargs.setdefault("raise_on_write_error", config.storage.raise_on_write_error)
        return cls(PersistenceAdapter(substrate), **kwargs)

    # =========================================================================
    # Lifecycle
    # =========================================================================

    @property
    def state(self) -> StoreState:
        return self._state

    @property
    def loading(self) -> bool:
        """True until the initial load has completed."""
        return self._state is not StoreState.READY

    @property
    def warnings(self) -> list[str]:
        """Persistence warnings raised during this session, oldest first."""
        return list(self._warnings)

    def open(self) -> "ArchiveStore":
        """Load the archive synchronously and become ready.

        Opening a ready store is a no-op.
        """
        if self._state is StoreState.READY:
            return self
        self._state = StoreState.LOADING
        try:
            self._load()
        except BaseException:
            self._state = StoreState.UNINITIALIZED
            raise
        self._state = StoreState.READY
        return self

    async def open_async(self) -> "ArchiveStore":
        """Load the archive in a worker thread; mutations fail until it finishes."""
        if self._state is StoreState.READY:
            return self
        self._state = StoreState.LOADING
        try:
            await asyncio.to_thread(self._load)
        except BaseException:
            self._state = StoreState.UNINITIALIZED
            raise
        self._state = StoreState.READY
        return self

    def _load(self) -> None:
        with LogContext("Loading archive", logger=self._logger):
            # Each record loads on its own; an unreadable one starts empty
            try:
                memories = self._adapter.load_memories()
            except DeserializationError as e:
                self._warn(f"{e}. Starting with no memories.")
                memories = []

            try:
                albums = self._adapter.load_albums()
            except DeserializationError as e:
                self._warn(f"{e}. Starting with no albums.")
                albums = []

            try:
                achievements = self._adapter.load_achievements()
            except DeserializationError as e:
                self._warn(f"{e}. Achievement history was reset.")
                achievements = AchievementState()

            self._memories.load(memories)
            self._albums.load(albums)
            self._engine = AchievementEngine(achievements)
        self._logger.info(
            f"Archive ready: {len(self._memories)} memories, {len(self._albums)} albums"
        )

    def _require_ready(self) -> None:
        if self._state is not StoreState.READY:
            raise NotReadyError(f"Archive is {self._state.value}; mutations are not allowed yet")

    # =========================================================================
    # Persistence
    # =========================================================================

    def _warn(self, message: str) -> None:
        self._logger.warning(message)
        self._warnings.append(message)
        if self._on_warning is not None:
            self._on_warning(message)

    def _persist(self) -> None:
        self._write(lambda: self._adapter.save(self._memories.list(), self._albums.list()))

    def _persist_achievements(self) -> None:
        self._write(lambda: self._adapter.save_achievements(self._engine.state))

    def _write(self, save: Callable[[], None]) -> None:
        try:
            save()
        except WriteError as e:
            self._warn(f"{e}. Changes are kept for this session only.")
            if self._raise_on_write_error:
                raise

    # =========================================================================
    # Reads
    # =========================================================================

    @property
    def memories(self) -> list[Memory]:
        """All memories in insertion order."""
        return self._memories.list()

    @property
    def albums(self) -> list[Album]:
        """All albums in insertion order."""
        return self._albums.list()

    def get_memory(self, memory_id: str) -> Memory:
        return self._memories.get(memory_id)

    def find_memory(self, memory_id: str) -> Memory | None:
        return self._memories.find(memory_id)

    def get_album(self, album_id: str) -> Album:
        return self._albums.get(album_id)

    def find_album(self, album_id: str) -> Album | None:
        return self._albums.find(album_id)

    def album_memories(self, album_id: str) -> list[Memory]:
        return self._albums.memories_of(album_id)

    def favorites(self) -> list[Memory]:
        return self._memories.favorites()

    def search(self, query: str) -> list[Memory]:
        return self._memories.search(query)

    def memories_tagged(self, tag: str) -> list[Memory]:
        return self._memories.by_tag(tag)

    def memories_between(self, start: date | datetime, end: date | datetime) -> list[Memory]:
        return self._memories.in_date_range(start, end)

    def on_this_day(self, day: date | None = None) -> dict[int, list[Memory]]:
        day = day or self._clock().astimezone(self._tz).date()
        return self._memories.on_this_day(day)

    def tag_counts(self) -> dict[str, int]:
        return self._memories.tag_counts()

    # =========================================================================
    # Memory mutations
    # =========================================================================

    def create_memory(self, draft: Mapping[str, Any]) -> str:
        self._require_ready()
        memory_id = self._memories.create(draft)
        self._persist()
        return memory_id

    def update_memory(self, memory_id: str, changes: Mapping[str, Any]) -> None:
        """Merge field changes into a memory.

        The photo editor writes its results back through this call with
        ``{"mediaUrl": ..., "appliedFilter": ...}``.
        """
        self._require_ready()
        self._memories.update(memory_id, changes)
        self._persist()

    def delete_memory(self, memory_id: str) -> None:
        """Delete a memory and remove it from every album in the same step."""
        self._require_ready()
        self._memories.delete(memory_id)
        self._persist()

    def toggle_like(self, memory_id: str) -> None:
        self._require_ready()
        self._memories.toggle_like(memory_id)
        self._persist()

    def apply_filter(self, memory_id: str, filter_name: str | None) -> None:
        self._require_ready()
        self._memories.apply_filter(memory_id, filter_name)
        self._persist()

    # =========================================================================
    # Album mutations
    # =========================================================================

    def create_album(self, draft: Mapping[str, Any]) -> str:
        self._require_ready()
        album_id = self._albums.create(draft)
        self._persist()
        return album_id

    def update_album(self, album_id: str, changes: Mapping[str, Any]) -> None:
        self._require_ready()
        self._albums.update(album_id, changes)
        self._persist()

    def delete_album(self, album_id: str) -> None:
        self._require_ready()
        self._albums.delete(album_id)
        self._persist()

    def add_memory_to_album(self, album_id: str, memory_id: str) -> None:
        self._require_ready()
        self._albums.add_memory(album_id, memory_id)
        self._persist()

    def remove_memory_from_album(self, album_id: str, memory_id: str) -> None:
        self._require_ready()
        self._albums.remove_memory(album_id, memory_id)
        self._persist()

    # =========================================================================
    # Derived views
    # =========================================================================

    def time_capsules(self, now: datetime | None = None) -> list[CapsuleStatus]:
        """Every time capsule with its lock state, soonest unlock first."""
        return self._scheduler.schedule(self._memories.list(), now or self._clock())

    def stats(self, now: datetime | None = None) -> UserStats:
        now = now or self._clock()
        return compute_user_stats(
            self._memories.list(),
            today=now.astimezone(self._tz).date(),
            collages_created=self._engine.collages_created,
            tz=self._tz,
        )

    def achievements(self, now: datetime | None = None) -> AchievementReport:
        """Evaluate achievements, persisting any first unlocks.

        Raises:
            NotReadyError: Before the initial load, since unlocks are written.
        """
        self._require_ready()
        now = now or self._clock()
        report = self._engine.evaluate(self.stats(now), now)
        if report.newly_unlocked:
            self._persist_achievements()
        return report

    def record_collage(self) -> int:
        """Count one collage created by the collage generator.

        Returns:
            Total collages created so far.
        """
        self._require_ready()
        self._engine.record_collage()
        self._persist_achievements()
        return self._engine.collages_created

    def analytics(self) -> ArchiveAnalytics:
        return ArchiveAnalytics(self._memories.list())

    # =========================================================================
    # Backup
    # =========================================================================

    def export_backup(self, format: ExportFormat = "json") -> str:
        """Serialize the archive as a JSON backup or a CSV listing of memories."""
        if format == "json":
            return export_json(self._memories.list(), self._albums.list(), self._clock())
        if format == "csv":
            return export_csv(self._memories.list())
        raise ValueError(f"Unsupported export format: {format}")

    def restore_backup(self, text: str) -> ArchiveSnapshot:
        """Replace the archive with the contents of a JSON backup and save it.

        Album references to memories missing from the backup are dropped.

        Returns:
            The archive as restored.

        Raises:
            NotReadyError: Before the initial load.
            DeserializationError: If the backup is malformed; nothing changes.
        """
        self._require_ready()
        snapshot = parse_backup(text)
        self._memories.load(snapshot.memories)
        self._albums.load(snapshot.albums)
        self._persist()
        self._logger.info(
            f"Restored backup: {len(self._memories)} memories, {len(self._albums)} albums"
        )
        return ArchiveSnapshot(memories=self._memories.list(), albums=self._albums.list())
