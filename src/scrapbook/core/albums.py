"""Album repository: the owner of the Album collection.

Albums reference memories by id. This repository is the single place where
that reference is checked: ``add_memory`` refuses ids the memory repository
does not hold, and a delete listener strips a deleted memory's id from every
album before the caller regains control.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping
from datetime import datetime
from typing import Any

from scrapbook.core.memories import MemoryRepository
from scrapbook.core.models import Album, Memory, build, new_id, normalize_changes, utc_now
from scrapbook.errors import DanglingReferenceError, ImmutableFieldError, NotFoundError

ASSIGNED_FIELDS = ("id", "created_at", "updated_at")

IMMUTABLE_FIELDS = ("id", "created_at")


class AlbumRepository:
    """In-memory store of Album entities, validated against a MemoryRepository."""

    def __init__(
        self,
        memories: MemoryRepository,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._albums: dict[str, Album] = {}
        self._memories = memories
        self._clock = clock
        self._logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")
        memories.on_delete(self._strip_memory)

    # =========================================================================
    # Collection management
    # =========================================================================

    def load(self, albums: Iterable[Album]) -> int:
        """Replace the collection, pruning references to missing memories.

        Returns:
            Number of dangling references removed.
        """
        self._albums = {}
        pruned = 0
        for album in albums:
            kept = [mid for mid in album.memories if self._memories.exists(mid)]
            dropped = len(album.memories) - len(kept)
            if dropped:
                self._logger.warning(
                    f"Album {album.id} referenced {dropped} missing memories; removed"
                )
                album = album.model_copy(update={"memories": kept})
                pruned += dropped
            self._albums[album.id] = album
        self._logger.debug(f"Loaded {len(self._albums)} albums")
        return pruned

    def __len__(self) -> int:
        return len(self._albums)

    def __contains__(self, album_id: object) -> bool:
        return album_id in self._albums

    def list(self) -> list[Album]:
        """All albums in insertion order (copies)."""
        return [a.model_copy(deep=True) for a in self._albums.values()]

    def get(self, album_id: str) -> Album:
        """Return a copy of the album.

        Raises:
            NotFoundError: If no album has this id.
        """
        return self._require(album_id).model_copy(deep=True)

    def find(self, album_id: str) -> Album | None:
        album = self._albums.get(album_id)
        return album.model_copy(deep=True) if album else None

    def memories_of(self, album_id: str) -> list[Memory]:
        """Resolve an album's members, in album order."""
        return [self._memories.get(mid) for mid in self._require(album_id).memories]

    def albums_containing(self, memory_id: str) -> list[Album]:
        return [a.model_copy(deep=True) for a in self._albums.values() if memory_id in a.memories]

    def _require(self, album_id: str) -> Album:
        album = self._albums.get(album_id)
        if album is None:
            raise NotFoundError("Album", album_id)
        return album

    def _check_members(self, album_id: str, memory_ids: Iterable[str]) -> None:
        for memory_id in memory_ids:
            if not self._memories.exists(memory_id):
                raise DanglingReferenceError(album_id, memory_id)

    # =========================================================================
    # Mutations
    # =========================================================================

    def create(self, draft: Mapping[str, Any]) -> str:
        """Create an album.

        Raises:
            ValidationError: Empty title, unknown field, or duplicate members.
            DanglingReferenceError: If ``memories`` names a missing memory.
        """
        fields = normalize_changes(Album, draft)
        for name in ASSIGNED_FIELDS:
            fields.pop(name, None)

        album_id = new_id()
        while album_id in self._albums:
            album_id = new_id()

        now = self._clock()
        album = build(Album, {**fields, "id": album_id, "created_at": now, "updated_at": now})
        self._check_members(album_id, album.memories)

        self._albums[album_id] = album
        self._logger.debug(f"Created album {album_id} '{album.title}'")
        return album_id

    def update(self, album_id: str, changes: Mapping[str, Any]) -> None:
        """Merge ``changes`` into an existing album.

        Raises:
            NotFoundError: If the id is absent.
            ImmutableFieldError: If ``id`` or ``created_at`` would change.
            ValidationError: If the merged album is invalid.
            DanglingReferenceError: If a new member list names a missing memory.
        """
        current = self._require(album_id)
        fields = normalize_changes(Album, changes)
        fields.pop("updated_at", None)

        merged = build(Album, {**current.model_dump(), **fields, "updated_at": self._clock()})
        for name in IMMUTABLE_FIELDS:
            if name in fields and getattr(merged, name) != getattr(current, name):
                raise ImmutableFieldError(name)
        if "memories" in fields:
            self._check_members(album_id, merged.memories)

        self._albums[album_id] = merged
        self._logger.debug(f"Updated album {album_id}: {', '.join(sorted(fields))}")

    def delete(self, album_id: str) -> None:
        """Remove an album. Missing ids are a no-op; member memories are kept."""
        if self._albums.pop(album_id, None) is None:
            self._logger.debug(f"Delete of missing album {album_id} ignored")
            return
        self._logger.debug(f"Deleted album {album_id}")

    def add_memory(self, album_id: str, memory_id: str) -> None:
        """Append a memory to an album. Already-present ids are a no-op.

        Raises:
            NotFoundError: If the album is absent.
            DanglingReferenceError: If the memory does not exist.
        """
        album = self._require(album_id)
        self._check_members(album_id, [memory_id])
        if memory_id in album.memories:
            return
        self._albums[album_id] = album.model_copy(
            update={"memories": [*album.memories, memory_id], "updated_at": self._clock()}
        )

    def remove_memory(self, album_id: str, memory_id: str) -> None:
        """Remove a memory from an album if present.

        Raises:
            NotFoundError: If the album is absent.
        """
        album = self._require(album_id)
        if memory_id not in album.memories:
            return
        self._albums[album_id] = album.model_copy(
            update={
                "memories": [mid for mid in album.memories if mid != memory_id],
                "updated_at": self._clock(),
            }
        )

    def _strip_memory(self, memory_id: str) -> None:
        """Delete listener: drop ``memory_id`` from every album holding it."""
        now = self._clock()
        for album_id, album in self._albums.items():
            if memory_id in album.memories:
                self._albums[album_id] = album.model_copy(
                    update={
                        "memories": [mid for mid in album.memories if mid != memory_id],
                        "updated_at": now,
                    }
                )
                self._logger.debug(f"Removed deleted memory {memory_id} from album {album_id}")
