"""
Sync cycle orchestration.

Runs one fetch → reconcile → persist cycle against the item store and
handles creation of new local items. Failures never escape a cycle;
they are reported through the returned CycleResult.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from ..remote.client import RemoteAdapter, RemoteUnavailable
from ..storage.blob_store import StorageError
from ..storage.item_store import ItemStore
from ..storage.models import Clock, IdGenerator, Item, random_id, utc_now
from .ledger import ConflictLedger
from .reconcile import reconcile

logger = logging.getLogger(__name__)


SYNCED_BANNER_MS = 3000


class CycleStatus(Enum):
    """Outcome of a sync cycle."""
    SYNCED = "synced"
    SYNCED_WITH_CONFLICTS = "synced_with_conflicts"
    FAILED = "failed"
    ALREADY_RUNNING = "already_running"


@dataclass
class SyncStats:
    """Statistics from a sync cycle."""
    fetched: int = 0
    server_added: int = 0
    unchanged: int = 0
    conflicts: int = 0
    local_only: int = 0
    total: int = 0

    def __str__(self) -> str:
        return (
            f"Sync complete: {self.fetched} fetched, "
            f"{self.server_added} added from server, {self.unchanged} unchanged, "
            f"{self.conflicts} conflicts, {self.local_only} local only, "
            f"{self.total} total"
        )


@dataclass
class CycleResult:
    """
    Result of one sync cycle.

    Attributes:
        status: Cycle outcome
        conflicts: Number of conflicts auto-resolved in favour of the remote
        reason: Failure description for FAILED cycles
        stats: Reconciliation counts (zero for failed fetches)
    """
    status: CycleStatus
    conflicts: int = 0
    reason: Optional[str] = None
    stats: SyncStats = field(default_factory=SyncStats)

    @property
    def ok(self) -> bool:
        return self.status in (CycleStatus.SYNCED, CycleStatus.SYNCED_WITH_CONFLICTS)

    @classmethod
    def failed(cls, reason: str, stats: Optional[SyncStats] = None) -> "CycleResult":
        return cls(status=CycleStatus.FAILED, reason=reason, stats=stats or SyncStats())

    @classmethod
    def already_running(cls) -> "CycleResult":
        return cls(status=CycleStatus.ALREADY_RUNNING, reason="A sync cycle is already running")


@dataclass(frozen=True)
class Banner:
    """Status banner data for the presentation layer."""
    message: str
    auto_dismiss_ms: Optional[int] = None


def banner_for(result: CycleResult) -> Optional[Banner]:
    """
    Project a cycle result onto banner data.

    Returns None when the banner should not change (failed or rejected
    cycles).
    """
    if result.status is CycleStatus.SYNCED:
        return Banner("Synced with server.", SYNCED_BANNER_MS)
    if result.status is CycleStatus.SYNCED_WITH_CONFLICTS:
        return Banner(f"{result.conflicts} conflicts auto-resolved (server version kept).")
    return None


@dataclass
class AddResult:
    """Outcome of creating a local item."""
    item: Item
    pushed: bool
    error: Optional[str] = None


class SyncEngine:
    """
    Orchestrates reconciliation between the item store and the remote.

    Core principles:
    - The local set is read after the fetch, under the store lock, so
      items added while the fetch was in flight are never lost
    - A failed fetch leaves every piece of state untouched
    - Remote wins on conflict; every overwritten local version is kept
      in the ledger for manual recovery

    Usage:
        engine = SyncEngine(remote=remote, store=store, ledger=ledger)
        result = engine.sync()
        print(result.status, result.stats)
    """

    def __init__(
        self,
        remote: RemoteAdapter,
        store: ItemStore,
        ledger: ConflictLedger,
        id_generator: IdGenerator = random_id,
        clock: Clock = utc_now,
    ):
        """
        Initialize sync engine.

        Args:
            remote: Remote adapter to fetch snapshots from and push items to
            store: Local item store
            ledger: Ledger receiving each cycle's conflicts
            id_generator: Id source for new local items
            clock: Timestamp source for new local items
        """
        self.remote = remote
        self.store = store
        self.ledger = ledger
        self._id_generator = id_generator
        self._clock = clock

    def sync(self) -> CycleResult:
        """
        Execute one synchronization cycle.

        Steps:
        1. Fetch the remote snapshot
        2. Reconcile it against the store's current items
        3. Replace and persist the store contents
        4. Hand the conflicts to the ledger

        Returns:
            CycleResult describing the outcome
        """
        logger.info("Starting sync cycle...")

        try:
            remote_items = self.remote.fetch_snapshot()
        except RemoteUnavailable as e:
            logger.error(f"Sync skipped, remote unavailable: {e}")
            return CycleResult.failed(f"Remote unavailable: {e}")

        storage_error = None
        with self.store.locked():
            result = reconcile(self.store.items, remote_items)
            try:
                self.store.replace_all(result.merged)
            except StorageError as e:
                storage_error = e

        self.ledger.set_pending(result.conflicts)

        stats = SyncStats(
            fetched=len(remote_items),
            server_added=result.server_added,
            unchanged=result.unchanged,
            conflicts=len(result.conflicts),
            local_only=result.local_only,
            total=len(result.merged),
        )
        logger.info(str(stats))

        for conflict in result.conflicts:
            logger.info(f"Conflict on item {conflict.id} resolved with server version")
            logger.debug(f"  local: {conflict.local.text!r} ({conflict.local.category})")
            logger.debug(f"  remote: {conflict.remote.text!r} ({conflict.remote.category})")

        if storage_error is not None:
            logger.error(f"Merged items could not be persisted: {storage_error}")
            return CycleResult.failed(f"Storage write failed: {storage_error}", stats)

        if result.has_conflicts:
            return CycleResult(
                status=CycleStatus.SYNCED_WITH_CONFLICTS,
                conflicts=len(result.conflicts),
                stats=stats,
            )
        return CycleResult(status=CycleStatus.SYNCED, stats=stats)

    def add_item(self, text: str, category: str) -> AddResult:
        """
        Create a local item and notify the remote.

        The item is committed to the store before the push; a push
        failure is logged and reported, never raised.

        Args:
            text: Item text
            category: Item category

        Returns:
            AddResult with the new item and the push outcome

        Raises:
            ValueError: If text or category is empty
            StorageError: If persisting fails (the item is kept in memory)
        """
        text = (text or "").strip()
        category = (category or "").strip()
        if not text or not category:
            raise ValueError("Both text and category are required")

        item = Item.create(text, category, self._id_generator, self._clock)
        self.store.upsert(item)
        logger.info(f"Added item {item.id} in category {category}")

        try:
            self.remote.push_item(item)
        except RemoteUnavailable as e:
            logger.warning(f"Failed to push item {item.id} to remote: {e}")
            return AddResult(item=item, pushed=False, error=str(e))

        return AddResult(item=item, pushed=True)
