"""Central Pytest Fixtures for the digital scrapbook.

Fixtures included:
- Time: clock (a settable clock shared by repositories and the store)
- Repositories: memory_repo, album_repo
- Storage: kv_store (in-memory substrate), adapter
- Store: store (opened, empty), populated_store (a few memories and an album)
- Data: make_draft (factory for memory drafts)
"""

from datetime import date, datetime, timedelta, timezone
from typing import Any, Callable

import pytest

from scrapbook.config import reset_config
from scrapbook.core.albums import AlbumRepository
from scrapbook.core.memories import MemoryRepository
from scrapbook.storage.persistence import InMemoryStore, PersistenceAdapter
from scrapbook.store import ArchiveStore

NOW = datetime(2026, 10, 19, 9, 0, tzinfo=timezone.utc)


# =============================================================================
# Helper Classes
# =============================================================================


class FakeClock:
    """Callable clock whose time only moves when a test says so."""

    def __init__(self, start: datetime = NOW) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def clear_config_cache():
    """Make sure no test sees configuration cached by another."""
    reset_config()
    yield
    reset_config()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def make_draft() -> Callable[..., dict[str, Any]]:
    """Factory for valid memory drafts; keyword arguments override fields."""

    def _make(**overrides: Any) -> dict[str, Any]:
        draft: dict[str, Any] = {
            "title": "Sunset at the pier",
            "date": date(2024, 7, 15),
            "type": "photo",
            "tags": ["beach", "summer"],
        }
        draft.update(overrides)
        return draft

    return _make


@pytest.fixture
def memory_repo(clock: FakeClock) -> MemoryRepository:
    return MemoryRepository(clock=clock)


@pytest.fixture
def album_repo(memory_repo: MemoryRepository, clock: FakeClock) -> AlbumRepository:
    return AlbumRepository(memory_repo, clock=clock)


@pytest.fixture
def kv_store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def adapter(kv_store: InMemoryStore) -> PersistenceAdapter:
    return PersistenceAdapter(kv_store)


@pytest.fixture
def store(adapter: PersistenceAdapter, clock: FakeClock) -> ArchiveStore:
    """An opened, empty archive backed by ``kv_store``."""
    return ArchiveStore(adapter, clock=clock).open()


@pytest.fixture
def populated_store(store: ArchiveStore, make_draft, clock: FakeClock) -> ArchiveStore:
    """Three memories over three consecutive days and one album holding two of them."""
    beach = store.create_memory(make_draft(location="Santa Monica", mood="happy"))
    clock.advance(days=1)
    store.create_memory(
        make_draft(
            title="Grandma's recipe",
            date=date(2023, 11, 2),
            type="text",
            tags=["family"],
            content="Two cups of flour",
        )
    )
    clock.advance(days=1)
    concert = store.create_memory(
        make_draft(title="Concert", date=date(2025, 3, 8), type="video", tags=["music"])
    )
    album_id = store.create_album({"title": "Highlights"})
    store.add_memory_to_album(album_id, beach)
    store.add_memory_to_album(album_id, concert)
    return store
