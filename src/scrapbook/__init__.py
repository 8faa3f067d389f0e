"""Digital Scrapbook: a local-first archive of memories, albums and time capsules.

The public entry point is :class:`ArchiveStore`; construct one per process and
pass it to whatever needs the archive.

Example:
    >>> from scrapbook import ArchiveStore
    >>> store = ArchiveStore.from_config().open()
    >>> store.create_memory({"title": "Hello", "date": "2026-10-19", "type": "text"})
"""

from scrapbook.core.models import Album, Memory, MemoryType, MoodType
from scrapbook.errors import (
    DanglingReferenceError,
    DeserializationError,
    ImmutableFieldError,
    NotFoundError,
    NotReadyError,
    PersistenceError,
    ScrapbookError,
    ValidationError,
    WriteError,
)
from scrapbook.store import ArchiveStore, StoreState

__version__ = "0.1.0"

__all__ = [
    # Store
    "ArchiveStore",
    "StoreState",
    # Models
    "Album",
    "Memory",
    "MemoryType",
    "MoodType",
    # Exceptions
    "ScrapbookError",
    "ValidationError",
    "NotFoundError",
    "ImmutableFieldError",
    "DanglingReferenceError",
    "NotReadyError",
    "PersistenceError",
    "DeserializationError",
    "WriteError",
]
