"""
Normalization of remote records into items.

The remote endpoint returns loosely shaped records (the default mock
endpoint serves blog posts). Each record is converted to an Item with
the remote id, its text or title, a category and a fresh timestamp.
"""

from typing import Any, Optional

from ..storage.models import Clock, Item, utc_now


DEFAULT_CATEGORY = "Server"


class MalformedRemoteItem(ValueError):
    """Raised when a remote record lacks an id, text or category."""

    def __init__(self, message: str, record: Optional[Any] = None):
        super().__init__(message)
        self.record = record


def _field(record: dict, *names: str) -> str:
    for name in names:
        value = record.get(name)
        if value is None:
            continue
        value = str(value).strip()
        if value:
            return value
    return ""


def item_from_record(
    record: Any,
    default_category: str = DEFAULT_CATEGORY,
    clock: Clock = utc_now,
) -> Item:
    """
    Convert a remote record to an Item.

    Rules:
    - id: the record's ``id``, stringified
    - text: ``text`` if present, else ``title``
    - category: the record's ``category``, else ``default_category``
    - updated_at: ``clock()``, remote records carry no usable timestamp

    Args:
        record: Decoded JSON record
        default_category: Category for records that do not name one
        clock: Timestamp source

    Returns:
        Normalized Item

    Raises:
        MalformedRemoteItem: If the record is not an object or lacks a field
    """
    if not isinstance(record, dict):
        raise MalformedRemoteItem(f"Remote record is not an object: {record!r}", record)

    item_id = _field(record, "id")
    if not item_id:
        raise MalformedRemoteItem("Remote record has no id", record)

    text = _field(record, "text", "title")
    if not text:
        raise MalformedRemoteItem(f"Remote record {item_id} has no text", record)

    category = _field(record, "category") or default_category.strip()
    if not category:
        raise MalformedRemoteItem(f"Remote record {item_id} has no category", record)

    return Item(id=item_id, text=text, category=category, updated_at=clock())
