"""Exception taxonomy for the scrapbook archive.

Every error raised by the data layer derives from :class:`ScrapbookError` so
callers (the CLI, or any other consumer of the store facade) can handle the
whole family in one place.

Repository errors are raised before any state change. Persistence errors are
raised by the adapter; the store decides whether to surface or record them.
"""

from __future__ import annotations


class ScrapbookError(Exception):
    """Base exception for all archive errors."""

    pass


class ValidationError(ScrapbookError):
    """Malformed input to a create or update call.

    Attributes:
        fields: Names of the offending fields, when known.
    """

    def __init__(self, message: str, fields: list[str] | None = None) -> None:
        super().__init__(message)
        self.fields = fields or []


class NotFoundError(ScrapbookError):
    """Operation on an id that does not exist."""

    def __init__(self, kind: str, entity_id: str) -> None:
        super().__init__(f"{kind} not found: {entity_id}")
        self.kind = kind
        self.entity_id = entity_id


class ImmutableFieldError(ScrapbookError):
    """Attempt to change a field that is fixed at creation."""

    def __init__(self, field: str) -> None:
        super().__init__(f"Field '{field}' cannot be changed after creation")
        self.field = field


class DanglingReferenceError(ScrapbookError):
    """Album membership referencing a memory that does not exist."""

    def __init__(self, album_id: str, memory_id: str) -> None:
        super().__init__(
            f"Album {album_id} cannot reference missing memory {memory_id}"
        )
        self.album_id = album_id
        self.memory_id = memory_id


class NotReadyError(ScrapbookError):
    """Mutation attempted before the initial load completed."""

    pass


class PersistenceError(ScrapbookError):
    """Base class for failures at the storage boundary."""

    pass


class DeserializationError(PersistenceError):
    """Stored payload is present but not well-formed."""

    def __init__(self, key: str, reason: str) -> None:
        super().__init__(f"Cannot read '{key}' record: {reason}")
        self.key = key
        self.reason = reason


class WriteError(PersistenceError):
    """The storage medium rejected a write."""

    def __init__(self, key: str, reason: str) -> None:
        super().__init__(f"Cannot write '{key}' record: {reason}")
        self.key = key
        self.reason = reason
