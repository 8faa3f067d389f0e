"""Memory repository: the owner of the Memory collection.

All mutations run synchronously against an in-memory dict keyed by id. The
repository validates every change before applying it, so a failed call never
leaves a partially-updated memory behind.

Deleting a memory notifies registered delete listeners in the same call. The
album repository subscribes here to strip the id from every album, which keeps
the cascade inside one in-memory step.

Example:
    >>> repo = MemoryRepository()
    >>> memory_id = repo.create({"title": "First day", "date": date(2024, 9, 1), "type": "text"})
    >>> repo.toggle_like(memory_id)
    >>> repo.get(memory_id).is_liked
    True
"""

from __future__ import annotations

import logging
from collections import Counter, defaultdict
from collections.abc import Callable, Iterable, Iterator, Mapping
from datetime import date, datetime, time, timezone
from typing import Any

from scrapbook.core.models import Memory, build, new_id, normalize_changes, utc_now
from scrapbook.errors import ImmutableFieldError, NotFoundError, ValidationError

# Fields assigned by the repository at creation
ASSIGNED_FIELDS = ("id", "created_at", "updated_at", "is_liked")

IMMUTABLE_FIELDS = ("id", "type", "created_at")


def _bound(value: date | datetime, end_of_day: bool) -> datetime:
    """Turn a date or datetime into an aware datetime bound."""
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    return datetime.combine(value, time.max if end_of_day else time.min, tzinfo=timezone.utc)


class MemoryRepository:
    """In-memory store of Memory entities with validated mutations.

    Attributes:
        _memories: Memories keyed by id, in insertion order.
        _clock: Source of "now" for createdAt/updatedAt.
        _delete_listeners: Callbacks invoked with the id of each deleted memory.
    """

    def __init__(self, clock: Callable[[], datetime] = utc_now) -> None:
        self._memories: dict[str, Memory] = {}
        self._clock = clock
        self._delete_listeners: list[Callable[[str], None]] = []
        self._logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    # =========================================================================
    # Collection management
    # =========================================================================

    def load(self, memories: Iterable[Memory]) -> None:
        """Replace the collection with already-validated memories."""
        self._memories = {m.id: m for m in memories}
        self._logger.debug(f"Loaded {len(self._memories)} memories")

    def on_delete(self, listener: Callable[[str], None]) -> None:
        """Register a callback run synchronously after each deletion."""
        self._delete_listeners.append(listener)

    def __len__(self) -> int:
        return len(self._memories)

    def __contains__(self, memory_id: object) -> bool:
        return memory_id in self._memories

    def __iter__(self) -> Iterator[Memory]:
        return iter(self.list())

    def exists(self, memory_id: str) -> bool:
        return memory_id in self._memories

    def list(self) -> list[Memory]:
        """All memories in insertion order (copies)."""
        return [m.model_copy(deep=True) for m in self._memories.values()]

    def get(self, memory_id: str) -> Memory:
        """Return a copy of the memory.

        Raises:
            NotFoundError: If no memory has this id.
        """
        return self._require(memory_id).model_copy(deep=True)

    def find(self, memory_id: str) -> Memory | None:
        """Like :meth:`get` but returns None for a missing id."""
        memory = self._memories.get(memory_id)
        return memory.model_copy(deep=True) if memory else None

    def _require(self, memory_id: str) -> Memory:
        memory = self._memories.get(memory_id)
        if memory is None:
            raise NotFoundError("Memory", memory_id)
        return memory

    # =========================================================================
    # Mutations
    # =========================================================================

    def create(self, draft: Mapping[str, Any]) -> str:
        """Create a memory from user-supplied fields.

        The repository assigns ``id``, ``created_at`` and ``updated_at`` and
        starts every memory unliked; values for those fields in ``draft`` are
        ignored.

        Args:
            draft: Field values keyed by field name or camelCase alias.

        Returns:
            The new memory's id.

        Raises:
            ValidationError: Empty title, missing date, unknown field, duplicate
                tags, or a time capsule without an unlock date after creation.
        """
        fields = normalize_changes(Memory, draft)
        for name in ASSIGNED_FIELDS:
            if name in fields:
                fields.pop(name)
                self._logger.debug(f"Ignoring '{name}' supplied in memory draft")

        memory_id = new_id()
        while memory_id in self._memories:
            memory_id = new_id()

        now = self._clock()
        memory = build(
            Memory,
            {**fields, "id": memory_id, "created_at": now, "updated_at": now, "is_liked": False},
        )
        self._check_unlock_order(memory)

        self._memories[memory_id] = memory
        self._logger.debug(f"Created {memory.type.value} memory {memory_id}")
        return memory_id

    def update(self, memory_id: str, changes: Mapping[str, Any]) -> None:
        """Merge ``changes`` into an existing memory.

        Raises:
            NotFoundError: If the id is absent.
            ImmutableFieldError: If ``id``, ``type`` or ``created_at`` would change.
            ValidationError: If the merged memory is invalid.
        """
        current = self._require(memory_id)
        fields = normalize_changes(Memory, changes)
        fields.pop("updated_at", None)

        merged = build(Memory, {**current.model_dump(), **fields, "updated_at": self._clock()})
        for name in IMMUTABLE_FIELDS:
            if name in fields and getattr(merged, name) != getattr(current, name):
                raise ImmutableFieldError(name)
        if "unlock_date" in fields or "is_time_capsule" in fields:
            self._check_unlock_order(merged)

        self._memories[memory_id] = merged
        self._logger.debug(f"Updated memory {memory_id}: {', '.join(sorted(fields))}")

    def delete(self, memory_id: str) -> None:
        """Remove a memory and cascade to listeners. Missing ids are a no-op."""
        if self._memories.pop(memory_id, None) is None:
            self._logger.debug(f"Delete of missing memory {memory_id} ignored")
            return
        for listener in self._delete_listeners:
            listener(memory_id)
        self._logger.debug(f"Deleted memory {memory_id}")

    def toggle_like(self, memory_id: str) -> None:
        """Flip ``is_liked``.

        Raises:
            NotFoundError: If the id is absent.
        """
        current = self._require(memory_id)
        self._memories[memory_id] = current.model_copy(
            update={"is_liked": not current.is_liked, "updated_at": self._clock()}
        )

    def apply_filter(self, memory_id: str, filter_name: str | None) -> None:
        """Set or clear (``None`` or blank) the cosmetic filter.

        Raises:
            NotFoundError: If the id is absent.
        """
        current = self._require(memory_id)
        name = filter_name.strip() if filter_name else None
        self._memories[memory_id] = current.model_copy(
            update={"applied_filter": name or None, "updated_at": self._clock()}
        )

    def _check_unlock_order(self, memory: Memory) -> None:
        if (
            memory.is_time_capsule
            and memory.unlock_date is not None
            and memory.unlock_date <= memory.created_at
        ):
            raise ValidationError(
                "Unlock date must be after the memory's creation time",
                fields=["unlock_date"],
            )

    # =========================================================================
    # Queries
    # =========================================================================

    def favorites(self) -> list[Memory]:
        return [m for m in self.list() if m.is_liked]

    def search(self, query: str) -> list[Memory]:
        """Case-insensitive search over title, description and tags."""
        return [m for m in self.list() if m.matches(query)]

    def by_tag(self, tag: str) -> list[Memory]:
        return [m for m in self.list() if tag in m.tags]

    def in_date_range(self, start: date | datetime, end: date | datetime) -> list[Memory]:
        """Memories whose ``date`` lies within [start, end].

        A bare ``end`` date includes the whole of that day.
        """
        lo = _bound(start, end_of_day=False)
        hi = _bound(end, end_of_day=True)
        return [m for m in self.list() if lo <= m.date <= hi]

    def on_this_day(self, day: date) -> dict[int, list[Memory]]:
        """Memories sharing ``day``'s month and day, grouped by year (newest first)."""
        groups: dict[int, list[Memory]] = defaultdict(list)
        for memory in self.list():
            if (memory.date.month, memory.date.day) == (day.month, day.day):
                groups[memory.date.year].append(memory)
        return {year: groups[year] for year in sorted(groups, reverse=True)}

    def tag_counts(self) -> dict[str, int]:
        """Number of memories per tag, in first-seen order."""
        counts: Counter[str] = Counter()
        for memory in self._memories.values():
            counts.update(memory.tags)
        return dict(counts)
