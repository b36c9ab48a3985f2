"""
In-memory item collection with write-through persistence.

The ItemStore is the single owner of the local item set. Every
mutation swaps an immutable snapshot under a lock, so readers never
observe a duplicate id or a half-applied change.
"""

import json
import logging
import threading
from contextlib import contextmanager
from typing import Iterable, Iterator, Optional

from .blob_store import BlobStore, MemoryBlobStore, StorageError
from .models import Clock, IdGenerator, Item, random_id, utc_now

logger = logging.getLogger(__name__)


ITEMS_KEY = "dq_quotes_v1"
SELECTED_CATEGORY_KEY = "dq_selectedCategory"
LAST_DISPLAYED_KEY = "lastQuote"

ALL_CATEGORIES = "all"

SEED_QUOTES = (
    ("The only limit to our realization of tomorrow is our doubts of today.", "Motivation"),
    ("In the middle of every difficulty lies opportunity.", "Inspiration"),
    ("Success is not final, failure is not fatal: it is the courage to continue that counts.", "Perseverance"),
)


def categories_of(items: Iterable[Item]) -> list[str]:
    """Return the sorted distinct categories of ``items``."""
    return sorted({item.category for item in items})


class ItemStore:
    """
    Ordered collection of items keyed by id.

    Usage:
        store = ItemStore(SQLiteBlobStore(Path("data/quotesync.db")))
        store.load()

        store.upsert(Item.create("Stay hungry.", "Motivation"))
        print(store.categories_of(store.items))
    """

    def __init__(
        self,
        blob_store: BlobStore,
        session_store: Optional[BlobStore] = None,
        id_generator: IdGenerator = random_id,
        clock: Clock = utc_now,
    ):
        """
        Initialize item store.

        Args:
            blob_store: Durable key-value store for the item set
            session_store: Store for values that must not survive a restart
            id_generator: Id source for seed items
            clock: Timestamp source for seed items
        """
        self._blobs = blob_store
        self._session = session_store if session_store is not None else MemoryBlobStore()
        self._id_generator = id_generator
        self._clock = clock

        self._lock = threading.RLock()
        self._items: tuple[Item, ...] = ()

    @property
    def items(self) -> tuple[Item, ...]:
        """Current snapshot of the item set."""
        return self._items

    def __len__(self) -> int:
        return len(self._items)

    def get(self, item_id: str) -> Optional[Item]:
        for item in self._items:
            if item.id == item_id:
                return item
        return None

    @contextmanager
    def locked(self) -> Iterator["ItemStore"]:
        """Hold the store lock across a read-compute-replace sequence."""
        with self._lock:
            yield self

    categories_of = staticmethod(categories_of)

    def items_in(self, category: str = ALL_CATEGORIES) -> list[Item]:
        """Return the items of one category, or all items for ``"all"``."""
        if category == ALL_CATEGORIES:
            return list(self._items)
        return [item for item in self._items if item.category == category]

    def load(self) -> list[Item]:
        """
        Restore persisted items, or install the seed set.

        The seed set is installed and persisted when nothing was stored
        before, or the stored blob cannot be decoded, so the first load is
        never empty. A stored empty set is restored as empty.

        Returns:
            The loaded item list

        Raises:
            StorageError: If reading fails, or persisting the seed fails
        """
        raw = self._blobs.get(ITEMS_KEY)
        items = self._decode(raw) if raw is not None else None

        with self._lock:
            if items is not None:
                self._items = tuple(items)
                logger.info(f"Loaded {len(items)} items")
                return list(self._items)

            logger.info("No stored items, installing seed set")
            seed = [
                Item.create(text, category, self._id_generator, self._clock)
                for text, category in SEED_QUOTES
            ]
            self._items = tuple(seed)
            self._persist()
            return list(self._items)

    def replace_all(self, items: Iterable[Item]) -> None:
        """
        Swap the whole item set and persist it.

        Raises:
            ValueError: If ``items`` holds a duplicate id (state untouched)
            StorageError: If persisting fails (in-memory state is updated)
        """
        new_items = tuple(items)
        ids = [item.id for item in new_items]
        if len(ids) != len(set(ids)):
            raise ValueError("Item set contains duplicate ids")

        with self._lock:
            self._items = new_items
            self._persist()

    def upsert(self, item: Item) -> None:
        """
        Insert ``item``, or replace the item with the same id in place.

        Raises:
            StorageError: If persisting fails (in-memory state is updated)
        """
        with self._lock:
            current = list(self._items)
            for index, existing in enumerate(current):
                if existing.id == item.id:
                    current[index] = item
                    break
            else:
                current.append(item)

            self._items = tuple(current)
            self._persist()

    def save(self) -> None:
        """Persist the current in-memory set again, e.g. after a StorageError."""
        with self._lock:
            self._persist()

    @property
    def selected_category(self) -> str:
        return self._blobs.get(SELECTED_CATEGORY_KEY) or ALL_CATEGORIES

    def select_category(self, category: str) -> None:
        self._blobs.set(SELECTED_CATEGORY_KEY, category)

    @property
    def last_displayed(self) -> Optional[Item]:
        raw = self._session.get(LAST_DISPLAYED_KEY)
        if raw is None:
            return None
        try:
            return Item.from_dict(json.loads(raw))
        except (ValueError, KeyError, TypeError) as e:
            logger.warning(f"Discarding unreadable last displayed item: {e}")
            return None

    def remember_displayed(self, item: Item) -> None:
        self._session.set(LAST_DISPLAYED_KEY, json.dumps(item.to_dict()))

    def _persist(self) -> None:
        payload = json.dumps([item.to_dict() for item in self._items])
        try:
            self._blobs.set(ITEMS_KEY, payload)
        except StorageError:
            logger.error(f"Failed to persist {len(self._items)} items")
            raise
        except OSError as e:
            logger.error(f"Failed to persist {len(self._items)} items: {e}")
            raise StorageError(f"Failed to persist items: {e}") from e

        logger.debug(f"Persisted {len(self._items)} items")

    def _decode(self, raw: str) -> Optional[list[Item]]:
        try:
            records = json.loads(raw)
        except ValueError as e:
            logger.warning(f"Stored item set is not valid JSON, ignoring it: {e}")
            return None

        if not isinstance(records, list):
            logger.warning("Stored item set is not a list, ignoring it")
            return None

        items = []
        seen = set()
        for record in records:
            try:
                item = Item.from_dict(record)
            except (KeyError, ValueError, TypeError) as e:
                logger.warning(f"Skipping malformed stored item: {e}")
                continue

            if item.id in seen:
                logger.warning(f"Skipping duplicate stored item {item.id}")
                continue
            seen.add(item.id)
            items.append(item)

        if records and not items:
            logger.warning("No stored item could be decoded, ignoring the set")
            return None
        return items
