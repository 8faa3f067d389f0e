"""Persistence adapter for the scrapbook archive.

The archive is stored in a key-value substrate as independently keyed
records: ``memories`` and ``albums`` (JSON arrays of entity records) and
``achievements`` (unlock timestamps and counters owned by the achievement
engine). All datetimes are written as ISO-8601 strings, which sort and parse
back to the same instant.

Two substrates ship with the package:

- :class:`JsonFileStore` keeps one ``<key>.json`` file per record and writes
  through a temp file plus rename, so a crash never leaves half a record.
- :class:`InMemoryStore` keeps records in a dict; it backs tests and
  throwaway sessions and can simulate a full medium.

Example:
    >>> adapter = PersistenceAdapter(JsonFileStore(Path("~/.scrapbook/data")))
    >>> snapshot = adapter.load()
    >>> adapter.save(snapshot.memories, snapshot.albums)
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path
from typing import Any, Iterable

from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from scrapbook.core.models import Album, ArchiveModel, Memory
from scrapbook.errors import DeserializationError, WriteError

logger = logging.getLogger(__name__)

MEMORIES_KEY = "memories"
ALBUMS_KEY = "albums"
ACHIEVEMENTS_KEY = "achievements"


# =============================================================================
# Data Structures
# =============================================================================


class ArchiveSnapshot(BaseModel):
    """Entity collections as read from storage."""

    memories: list[Memory] = Field(default_factory=list)
    albums: list[Album] = Field(default_factory=list)


class AchievementState(BaseModel):
    """Persisted achievement state.

    Attributes:
        unlocked_at: First-unlock time per achievement id. Entries are never
            overwritten or removed.
        collages_created: Collages reported by the collage generator.
    """

    unlocked_at: dict[str, datetime] = Field(default_factory=dict)
    collages_created: int = Field(default=0, ge=0)


# =============================================================================
# Substrates
# =============================================================================


class KeyValueStore(ABC):
    """Durable string storage addressed by key."""

    @abstractmethod
    def get(self, key: str) -> str | None:
        """Return the stored value, or None if the key was never written.

        Raises:
            DeserializationError: If the stored value cannot be read back.
        """

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        """Store ``value`` under ``key``.

        Raises:
            WriteError: If the medium rejects the write.
        """


class InMemoryStore(KeyValueStore):
    """Dict-backed store.

    Args:
        initial: Optional records to start with.
        read_only: When True every ``set`` fails as if the medium were full.
    """

    def __init__(self, initial: dict[str, str] | None = None, read_only: bool = False) -> None:
        self.data: dict[str, str] = dict(initial or {})
        self.read_only = read_only
        self.writes = 0

    def get(self, key: str) -> str | None:
        return self.data.get(key)

    def set(self, key: str, value: str) -> None:
        if self.read_only:
            raise WriteError(key, "storage quota exceeded")
        self.data[key] = value
        self.writes += 1


class JsonFileStore(KeyValueStore):
    """One JSON file per key inside ``directory``, written atomically."""

    def __init__(self, directory: Path) -> None:
        self._directory = Path(directory).expanduser().resolve()
        self._logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    @property
    def directory(self) -> Path:
        return self._directory

    def _path(self, key: str) -> Path:
        return self._directory / f"{key}.json"

    def get(self, key: str) -> str | None:
        path = self._path(key)
        if not path.exists():
            return None
        try:
            return path.read_text(encoding="utf-8")
        except UnicodeDecodeError as e:
            raise DeserializationError(key, f"not valid UTF-8 (byte {e.start})") from e
        except OSError as e:
            raise DeserializationError(key, f"unreadable ({type(e).__name__}: {e})") from e

    def set(self, key: str, value: str) -> None:
        path = self._path(key)
        try:
            self._directory.mkdir(parents=True, exist_ok=True)

            # Temp file in the same directory keeps the rename on one filesystem
            fd, temp_path = tempfile.mkstemp(dir=self._directory, suffix=".tmp", prefix=f".{key}_")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    f.write(value)
                Path(temp_path).replace(path)
            except BaseException:
                Path(temp_path).unlink(missing_ok=True)
                raise
        except OSError as e:
            raise WriteError(key, f"{type(e).__name__}: {e}") from e
        self._logger.debug(f"Wrote {len(value)} bytes to {path.name}")


# =============================================================================
# Adapter
# =============================================================================


class PersistenceAdapter:
    """Serializes archive collections to and from a KeyValueStore."""

    def __init__(self, store: KeyValueStore) -> None:
        self._store = store
        # Memory ids in the stored memories record, as far as this adapter knows
        self._stored_memory_ids: set[str] = set()
        self._logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    @property
    def store(self) -> KeyValueStore:
        return self._store

    def load(self) -> ArchiveSnapshot:
        """Read both entity collections.

        Missing records load as empty collections.

        Raises:
            DeserializationError: If a record is present but malformed.
        """
        memories = self.load_memories()
        albums = self.load_albums()
        return ArchiveSnapshot(memories=memories, albums=albums)

    def load_memories(self) -> list[Memory]:
        """Read the memories record on its own.

        An unreadable record counts as empty when saving albums later.

        Raises:
            DeserializationError: If the record is present but malformed.
        """
        self._stored_memory_ids = set()
        memories = self._read_records(MEMORIES_KEY, Memory)
        self._stored_memory_ids = {m.id for m in memories}
        self._logger.debug(f"Loaded {len(memories)} memories")
        return memories

    def load_albums(self) -> list[Album]:
        """Read the albums record on its own.

        Raises:
            DeserializationError: If the record is present but malformed.
        """
        albums = self._read_records(ALBUMS_KEY, Album)
        self._logger.debug(f"Loaded {len(albums)} albums")
        return albums

    def save(self, memories: Iterable[Memory], albums: Iterable[Album]) -> None:
        """Write both entity collections.

        The writes are ordered so that a failure part-way never leaves a stored
        album referring to a memory missing from the stored memories record:

        1. albums, limited to memories present both before and after the save
        2. memories
        3. albums in full, if step 1 had to leave references out

        Raises:
            WriteError: If the medium rejects a write. Failures are not
                retried.
        """
        memories = list(memories)
        albums = list(albums)
        new_ids = {m.id for m in memories}
        stable_ids = new_ids & self._stored_memory_ids

        interim = [
            a.model_copy(update={"memories": [mid for mid in a.memories if mid in stable_ids]})
            for a in albums
        ]
        complete = all(i.memories == a.memories for i, a in zip(interim, albums))

        self._write(ALBUMS_KEY, [a.to_record() for a in interim])
        self._write(MEMORIES_KEY, [m.to_record() for m in memories])
        self._stored_memory_ids = new_ids
        if not complete:
            self._write(ALBUMS_KEY, [a.to_record() for a in albums])

    def load_achievements(self) -> AchievementState:
        """Read achievement state; a missing record is empty state.

        Raises:
            DeserializationError: If the record is present but malformed.
        """
        raw = self._store.get(ACHIEVEMENTS_KEY)
        if raw is None:
            return AchievementState()
        try:
            return AchievementState.model_validate_json(raw)
        except PydanticValidationError as e:
            raise DeserializationError(ACHIEVEMENTS_KEY, _first_error(e)) from e

    def save_achievements(self, state: AchievementState) -> None:
        """Write achievement state.

        Raises:
            WriteError: If the medium rejects the write.
        """
        self._store.set(ACHIEVEMENTS_KEY, state.model_dump_json(indent=2))

    def _read_records(self, key: str, model_cls: type[ArchiveModel]) -> list[Any]:
        raw = self._store.get(key)
        if raw is None:
            return []
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise DeserializationError(key, f"not valid JSON ({e.msg})") from e
        if not isinstance(data, list):
            raise DeserializationError(key, f"expected a list, got {type(data).__name__}")

        records = []
        for index, item in enumerate(data):
            if not isinstance(item, dict):
                raise DeserializationError(key, f"entry {index} is not an object")
            try:
                records.append(model_cls.model_validate(item))
            except PydanticValidationError as e:
                raise DeserializationError(key, f"entry {index}: {_first_error(e)}") from e
        duplicate = find_duplicate_id(records)
        if duplicate is not None:
            raise DeserializationError(key, f"duplicate id {duplicate}")
        return records

    def _write(self, key: str, records: list[dict[str, Any]]) -> None:
        self._store.set(key, json.dumps(records, indent=2, ensure_ascii=False))


def find_duplicate_id(records: Iterable[Memory | Album]) -> str | None:
    """Return the first id that occurs twice, or None."""
    seen: set[str] = set()
    for record in records:
        if record.id in seen:
            return record.id
        seen.add(record.id)
    return None


def _first_error(e: PydanticValidationError) -> str:
    err = e.errors()[0]
    location = ".".join(str(p) for p in err["loc"])
    return f"{location}: {err['msg']}" if location else err["msg"]
