"""
Pytest configuration and shared fixtures.

Provides deterministic ids and clocks, temporary stores and fake
remote adapters for sync testing.
"""

import pytest
import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Generator, Optional

from quotesync.remote.client import RemoteUnavailable
from quotesync.storage.blob_store import MemoryBlobStore, SQLiteBlobStore, StorageError
from quotesync.storage.item_store import ItemStore
from quotesync.storage.models import Item, SequentialIds
from quotesync.sync.engine import SyncEngine
from quotesync.sync.ledger import ConflictLedger


BASE_TIME = datetime(2026, 1, 15, 10, 0, 0, tzinfo=timezone.utc)


class FixedClock:
    """Clock returning BASE_TIME plus one second per call."""

    def __init__(self, start: datetime = BASE_TIME):
        self.now = start

    def __call__(self) -> datetime:
        current = self.now
        self.now = self.now + timedelta(seconds=1)
        return current


class FakeRemote:
    """In-memory remote adapter recording pushes."""

    def __init__(self, snapshot: Optional[list[Item]] = None):
        self.snapshot = list(snapshot or [])
        self.pushed: list[Item] = []
        self.fetch_error: Optional[Exception] = None
        self.push_error: Optional[Exception] = None
        self.fetch_count = 0

    def fetch_snapshot(self) -> list[Item]:
        self.fetch_count += 1
        if self.fetch_error is not None:
            raise self.fetch_error
        return list(self.snapshot)

    def push_item(self, item: Item) -> Item:
        if self.push_error is not None:
            raise self.push_error
        self.pushed.append(item)
        return item


class FailingBlobStore(MemoryBlobStore):
    """Blob store whose writes fail while ``failing`` is set."""

    def __init__(self):
        super().__init__()
        self.failing = False

    def set(self, key: str, value: str) -> None:
        if self.failing:
            raise StorageError("disk full")
        super().set(key, value)


def make_item(item_id: str, text: str, category: str = "C1", offset: int = 0) -> Item:
    """Build an item with a timestamp ``offset`` seconds after BASE_TIME."""
    return Item(
        id=item_id,
        text=text,
        category=category,
        updated_at=BASE_TIME + timedelta(seconds=offset),
    )


# ============================================================================
# Model Fixtures
# ============================================================================

@pytest.fixture
def clock() -> FixedClock:
    """Deterministic clock."""
    return FixedClock()


@pytest.fixture
def ids() -> SequentialIds:
    """Deterministic id generator."""
    return SequentialIds("local")


@pytest.fixture
def sample_item() -> Item:
    """Create a sample item."""
    return make_item("a", "Stay hungry, stay foolish.", "Motivation")


@pytest.fixture
def item_record() -> dict:
    """Serialized form of sample_item."""
    return {
        "id": "a",
        "text": "Stay hungry, stay foolish.",
        "category": "Motivation",
        "updatedAt": "2026-01-15T10:00:00+00:00",
    }


# ============================================================================
# Storage Fixtures
# ============================================================================

@pytest.fixture
def temp_db_path() -> Generator[Path, None, None]:
    """Create a temporary database directory."""
    with tempfile.TemporaryDirectory() as tmp:
        yield Path(tmp) / "quotesync.db"


@pytest.fixture
def blob_store() -> MemoryBlobStore:
    """Fresh in-memory blob store."""
    return MemoryBlobStore()


@pytest.fixture
def failing_blob_store() -> FailingBlobStore:
    """In-memory blob store with switchable write failures."""
    return FailingBlobStore()


@pytest.fixture
def sqlite_blob_store(temp_db_path: Path) -> SQLiteBlobStore:
    """Fresh SQLite blob store in a temp directory."""
    return SQLiteBlobStore(temp_db_path)


@pytest.fixture
def item_store(blob_store: MemoryBlobStore, ids: SequentialIds, clock: FixedClock) -> ItemStore:
    """Empty, unloaded item store over an in-memory blob store."""
    return ItemStore(blob_store, id_generator=ids, clock=clock)


# ============================================================================
# Sync Fixtures
# ============================================================================

@pytest.fixture
def fake_remote() -> FakeRemote:
    """Remote adapter with an empty snapshot."""
    return FakeRemote()


@pytest.fixture
def ledger(item_store: ItemStore) -> ConflictLedger:
    """Ledger bound to item_store."""
    return ConflictLedger(item_store)


@pytest.fixture
def engine(
    fake_remote: FakeRemote,
    item_store: ItemStore,
    ledger: ConflictLedger,
    ids: SequentialIds,
    clock: FixedClock,
) -> SyncEngine:
    """Sync engine wired to the fake remote and in-memory store."""
    return SyncEngine(
        remote=fake_remote,
        store=item_store,
        ledger=ledger,
        id_generator=ids,
        clock=clock,
    )


@pytest.fixture
def unavailable() -> RemoteUnavailable:
    """A transport failure."""
    return RemoteUnavailable("Remote GET failed: 503 Service Unavailable", status_code=503)


# ============================================================================
# Environment Fixtures
# ============================================================================

@pytest.fixture
def mock_env(monkeypatch, tmp_path):
    """Environment with every setting provided."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("QUOTESYNC_REMOTE_URL", "https://quotes.test/api/items/")
    monkeypatch.setenv("QUOTESYNC_REMOTE_TIMEOUT", "5")
    monkeypatch.setenv("QUOTESYNC_MAX_RETRIES", "2")
    monkeypatch.setenv("QUOTESYNC_SNAPSHOT_LIMIT", "10")
    monkeypatch.setenv("QUOTESYNC_DEFAULT_CATEGORY", "Remote")
    monkeypatch.setenv("QUOTESYNC_POLL_INTERVAL", "30")
    monkeypatch.setenv("QUOTESYNC_DATABASE_PATH", str(tmp_path / "sync.db"))
