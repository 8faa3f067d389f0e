"""Tests for ArchiveStore, the composition root.

Tests cover:
- Lifecycle: uninitialized -> loading -> ready, sync and async
- Write gating before the initial load completes
- Loading persisted data, corrupt records and dangling album references
- Persistence after mutations and write-failure handling
- Derived views: time capsules, achievements, analytics
- Backup export and restore
"""

import asyncio
import json
import threading
from datetime import date, timedelta

import pytest

from scrapbook.config import AppConfig
from scrapbook.core.models import Album
from scrapbook.errors import (
    DanglingReferenceError,
    DeserializationError,
    NotReadyError,
    ValidationError,
    WriteError,
)
from scrapbook.storage.persistence import (
    ACHIEVEMENTS_KEY,
    ALBUMS_KEY,
    MEMORIES_KEY,
    InMemoryStore,
    JsonFileStore,
    PersistenceAdapter,
)
from scrapbook.store import ArchiveStore, StoreState


class GatedStore(InMemoryStore):
    """InMemoryStore whose reads block until the test releases them."""

    def __init__(self) -> None:
        super().__init__()
        self.entered = threading.Event()
        self.release = threading.Event()

    def get(self, key: str) -> str | None:
        self.entered.set()
        self.release.wait(timeout=5)
        return super().get(key)


class FailingStore(InMemoryStore):
    """InMemoryStore that rejects writes to the keys in ``failing``."""

    def __init__(self) -> None:
        super().__init__()
        self.failing: set[str] = set()

    def set(self, key: str, value: str) -> None:
        if key in self.failing:
            raise WriteError(key, "disk full")
        super().set(key, value)


# =============================================================================
# Lifecycle
# =============================================================================


class TestLifecycle:
    """State transitions and write gating."""

    def test_new_store_is_uninitialized(self, adapter, clock):
        store = ArchiveStore(adapter, clock=clock)

        assert store.state is StoreState.UNINITIALIZED
        assert store.loading is True

    def test_mutation_before_open_is_rejected(self, adapter, kv_store, clock, make_draft):
        store = ArchiveStore(adapter, clock=clock)

        with pytest.raises(NotReadyError):
            store.create_memory(make_draft())
        with pytest.raises(NotReadyError):
            store.create_album({"title": "x"})

        assert kv_store.writes == 0

    def test_open_makes_ready(self, adapter, clock):
        store = ArchiveStore(adapter, clock=clock).open()

        assert store.state is StoreState.READY
        assert store.loading is False

    def test_open_twice_is_noop(self, store, make_draft):
        store.create_memory(make_draft())
        store.open()
        assert len(store.memories) == 1

    def test_open_async(self, adapter, clock):
        store = ArchiveStore(adapter, clock=clock)
        asyncio.run(store.open_async())
        assert store.state is StoreState.READY

    def test_mutation_while_loading_is_rejected(self, clock, make_draft):
        substrate = GatedStore()
        store = ArchiveStore(PersistenceAdapter(substrate), clock=clock)

        async def scenario() -> None:
            task = asyncio.create_task(store.open_async())
            await asyncio.to_thread(substrate.entered.wait, 5)

            assert store.state is StoreState.LOADING
            assert store.loading is True
            with pytest.raises(NotReadyError):
                store.create_memory(make_draft())
            with pytest.raises(NotReadyError):
                store.toggle_like("anything")

            substrate.release.set()
            await task

        asyncio.run(scenario())

        assert substrate.writes == 0
        assert store.state is StoreState.READY
        assert store.memories == []


# =============================================================================
# Loading
# =============================================================================


class TestLoading:
    """Reading persisted state at open()."""

    def test_loads_saved_archive(self, kv_store, clock, make_draft):
        first = ArchiveStore(PersistenceAdapter(kv_store), clock=clock).open()
        memory_id = first.create_memory(make_draft())
        album_id = first.create_album({"title": "Summer", "memories": [memory_id]})

        second = ArchiveStore(PersistenceAdapter(kv_store), clock=clock).open()

        assert second.memories == first.memories
        assert second.get_album(album_id).memories == [memory_id]

    def test_corrupt_record_starts_empty_with_warning(self, clock):
        substrate = InMemoryStore({MEMORIES_KEY: "{broken"})
        seen: list[str] = []

        store = ArchiveStore(PersistenceAdapter(substrate), clock=clock, on_warning=seen.append).open()

        assert store.state is StoreState.READY
        assert store.memories == []
        assert len(store.warnings) == 1
        assert "memories" in store.warnings[0]
        assert seen == store.warnings

    def test_corrupt_albums_keep_memories(self, kv_store, clock, make_draft):
        first = ArchiveStore(PersistenceAdapter(kv_store), clock=clock).open()
        kept = first.create_memory(make_draft())
        kv_store.data[ALBUMS_KEY] = "{broken"

        store = ArchiveStore(PersistenceAdapter(kv_store), clock=clock).open()
        added = store.create_memory(make_draft(title="New"))

        assert [m.id for m in store.memories] == [kept, added]
        assert len(store.warnings) == 1
        assert "albums" in store.warnings[0]
        assert [r["id"] for r in json.loads(kv_store.data[MEMORIES_KEY])] == [kept, added]

    def test_undecodable_file_starts_empty(self, tmp_path, clock):
        (tmp_path / "memories.json").write_bytes(b"[\xff\xfe]")

        store = ArchiveStore(PersistenceAdapter(JsonFileStore(tmp_path)), clock=clock).open()

        assert store.state is StoreState.READY
        assert store.memories == []
        assert "UTF-8" in store.warnings[0]

    def test_corrupt_achievements_reset(self, clock):
        substrate = InMemoryStore({ACHIEVEMENTS_KEY: "oops"})
        store = ArchiveStore(PersistenceAdapter(substrate), clock=clock).open()

        assert "achievements" in store.warnings[0]

    def test_dangling_album_references_pruned(self, clock):
        album = Album(title="Old", memories=["ghost"])
        substrate = InMemoryStore({ALBUMS_KEY: json.dumps([album.to_record()])})

        store = ArchiveStore(PersistenceAdapter(substrate), clock=clock).open()

        assert store.get_album(album.id).memories == []

    def test_files_backend(self, tmp_path, clock, make_draft):
        config = AppConfig(storage={"data_dir": tmp_path, "backend": "file"})

        ArchiveStore.from_config(config, clock=clock).open().create_memory(make_draft())

        assert (tmp_path / "memories.json").exists()
        assert len(ArchiveStore.from_config(config).open().memories) == 1

    def test_memory_backend(self, clock, make_draft):
        config = AppConfig(storage={"backend": "memory"})
        store = ArchiveStore.from_config(config, clock=clock).open()
        store.create_memory(make_draft())

        assert len(store.memories) == 1
        assert len(ArchiveStore.from_config(config).open().memories) == 0


# =============================================================================
# Persistence
# =============================================================================


class TestPersistence:
    """Saving after mutations."""

    def test_every_mutation_saves(self, store, kv_store, make_draft):
        memory_id = store.create_memory(make_draft())
        after_create = kv_store.writes

        store.toggle_like(memory_id)

        assert after_create > 0
        assert kv_store.writes > after_create
        assert json.loads(kv_store.data[MEMORIES_KEY])[0]["isLiked"] is True

    def test_failed_mutation_does_not_save(self, store, kv_store, make_draft):
        with pytest.raises(ValidationError):
            store.create_memory(make_draft(title=""))
        assert kv_store.writes == 0

    def test_delete_cascade_is_persisted(self, populated_store, kv_store):
        album = populated_store.albums[0]
        removed = album.memories[0]

        populated_store.delete_memory(removed)
        stored_albums = json.loads(kv_store.data[ALBUMS_KEY])

        assert removed not in stored_albums[0]["memories"]
        assert len(stored_albums[0]["memories"]) == 1

    def test_delete_twice_is_idempotent(self, populated_store):
        memory_id = populated_store.memories[0].id

        populated_store.delete_memory(memory_id)
        once = (populated_store.memories, populated_store.albums)
        populated_store.delete_memory(memory_id)

        assert (populated_store.memories, populated_store.albums) == once

    def test_add_missing_memory_to_album(self, populated_store):
        album = populated_store.albums[0]

        with pytest.raises(DanglingReferenceError):
            populated_store.add_memory_to_album(album.id, "ghost")

        assert populated_store.get_album(album.id) == album

    def test_write_error_becomes_warning(self, clock, make_draft):
        substrate = InMemoryStore(read_only=True)
        seen: list[str] = []
        store = ArchiveStore(PersistenceAdapter(substrate), clock=clock, on_warning=seen.append).open()

        memory_id = store.create_memory(make_draft())

        assert store.get_memory(memory_id).title == "Sunset at the pier"
        assert len(store.warnings) == 1
        assert "quota" in store.warnings[0]
        assert seen == store.warnings

    def test_write_error_can_be_raised(self, clock, make_draft):
        substrate = InMemoryStore(read_only=True)
        store = ArchiveStore(PersistenceAdapter(substrate), clock=clock, raise_on_write_error=True)
        store.open()

        with pytest.raises(WriteError):
            store.create_memory(make_draft())

        assert len(store.memories) == 1

    def test_failed_album_write_leaves_no_dangling_reference(self, clock, make_draft):
        substrate = FailingStore()
        store = ArchiveStore(PersistenceAdapter(substrate), clock=clock).open()
        victim = store.create_memory(make_draft())
        kept = store.create_memory(make_draft(title="Kept"))
        store.create_album({"title": "Both", "memories": [victim, kept]})
        substrate.failing = {ALBUMS_KEY}

        store.delete_memory(victim)

        stored_memories = {r["id"] for r in json.loads(substrate.data[MEMORIES_KEY])}
        stored_refs = {
            mid for r in json.loads(substrate.data[ALBUMS_KEY]) for mid in r["memories"]
        }
        assert stored_refs <= stored_memories
        assert len(store.warnings) == 1
        assert store.get_album(store.albums[0].id).memories == [kept]

    def test_photo_editor_update(self, populated_store):
        memory_id = populated_store.memories[0].id

        populated_store.update_memory(
            memory_id, {"mediaUrl": "file:///edited.jpg", "appliedFilter": "noir"}
        )

        assert populated_store.get_memory(memory_id).applied_filter == "noir"


# =============================================================================
# Derived views
# =============================================================================


class TestDerivedViews:
    """Time capsules, achievements and analytics through the facade."""

    def test_time_capsules_use_store_clock(self, store, clock, make_draft):
        store.create_memory(
            make_draft(is_time_capsule=True, unlock_date=clock.now + timedelta(days=1))
        )
        clock.advance(hours=12)

        [status] = store.time_capsules()

        assert status.progress_percent == 50
        assert status.is_locked is True

    def test_achievements_unlock_once_and_persist(self, store, kv_store, make_draft, clock):
        store.create_memory(make_draft())

        first = store.achievements()
        clock.advance(days=1)
        second = store.achievements()

        assert "first_memory" in [a.definition.id for a in first.newly_unlocked]
        assert second.newly_unlocked == []
        stored = json.loads(kv_store.data[ACHIEVEMENTS_KEY])
        assert "first_memory" in stored["unlocked_at"]

    def test_unlock_survives_unlike(self, store, make_draft, clock):
        memory_id = store.create_memory(make_draft())
        store.toggle_like(memory_id)
        unlocked_at = next(
            a.unlocked_at
            for a in store.achievements().achievements
            if a.definition.id == "first_favorite"
        )

        store.toggle_like(memory_id)
        clock.advance(days=3)
        entry = next(
            a for a in store.achievements().achievements if a.definition.id == "first_favorite"
        )

        assert entry.is_unlocked is True
        assert entry.unlocked_at == unlocked_at

    def test_achievements_restored_on_reopen(self, kv_store, clock, make_draft):
        store = ArchiveStore(PersistenceAdapter(kv_store), clock=clock).open()
        store.create_memory(make_draft())
        store.achievements()

        reopened = ArchiveStore(PersistenceAdapter(kv_store), clock=clock).open()

        assert reopened.achievements().newly_unlocked == []

    def test_record_collage(self, store):
        assert store.record_collage() == 1
        report = store.achievements()
        assert "first_collage" in [a.definition.id for a in report.unlocked]

    def test_streak_stats(self, populated_store):
        stats = populated_store.stats()
        assert stats.current_streak == 3
        assert stats.total_memories == 3

    def test_analytics(self, populated_store):
        breakdown = populated_store.analytics().type_breakdown()
        assert breakdown == {"photo": 1, "video": 1, "audio": 0, "text": 1}

    def test_queries(self, populated_store):
        assert [m.title for m in populated_store.search("recipe")] == ["Grandma's recipe"]
        assert [m.title for m in populated_store.memories_tagged("music")] == ["Concert"]
        assert len(populated_store.memories_between(date(2023, 1, 1), date(2024, 12, 31))) == 2
        album = populated_store.albums[0]
        assert [m.title for m in populated_store.album_memories(album.id)] == [
            "Sunset at the pier",
            "Concert",
        ]


# =============================================================================
# Backup
# =============================================================================


class TestBackup:
    """Export and restore through the facade."""

    def test_json_backup_restores_into_new_store(self, populated_store, clock):
        backup = populated_store.export_backup("json")
        target = ArchiveStore(PersistenceAdapter(InMemoryStore()), clock=clock).open()

        snapshot = target.restore_backup(backup)

        assert snapshot.memories == populated_store.memories
        assert target.albums == populated_store.albums

    def test_csv_export(self, populated_store):
        lines = populated_store.export_backup("csv").splitlines()
        assert len(lines) == 4

    def test_unknown_format(self, store):
        with pytest.raises(ValueError, match="Unsupported export format"):
            store.export_backup("xml")

    def test_malformed_restore_changes_nothing(self, populated_store):
        before = populated_store.memories

        with pytest.raises(DeserializationError):
            populated_store.restore_backup("{}")

        assert populated_store.memories == before
