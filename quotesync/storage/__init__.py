"""Local item storage module."""

from .blob_store import BlobStore, MemoryBlobStore, SQLiteBlobStore, StorageError
from .item_store import ItemStore, categories_of
from .models import Conflict, Item, SequentialIds, random_id

__all__ = [
    "BlobStore",
    "MemoryBlobStore",
    "SQLiteBlobStore",
    "StorageError",
    "ItemStore",
    "categories_of",
    "Conflict",
    "Item",
    "SequentialIds",
    "random_id",
]
