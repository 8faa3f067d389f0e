"""Entity models and the repositories that own them.

- **Memory** / **Album**: persisted entities
- **MemoryRepository**: validated mutations and queries over memories
- **AlbumRepository**: album membership, checked against the memory repository
"""

from scrapbook.core.albums import AlbumRepository
from scrapbook.core.memories import MemoryRepository
from scrapbook.core.models import (
    Album,
    ArchiveModel,
    Memory,
    MemoryType,
    MoodType,
    build,
    new_id,
    normalize_changes,
    utc_now,
)

__all__ = [
    # Models
    "Album",
    "ArchiveModel",
    "Memory",
    "MemoryType",
    "MoodType",
    # Repositories
    "AlbumRepository",
    "MemoryRepository",
    # Helpers
    "build",
    "new_id",
    "normalize_changes",
    "utc_now",
]
