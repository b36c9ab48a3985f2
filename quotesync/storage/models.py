"""
Item and conflict data models.

Items are immutable value records keyed by a stable string id.
Updates replace an item, they never mutate it in place.
"""

import itertools
import secrets
import string
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional


IdGenerator = Callable[[], str]
Clock = Callable[[], datetime]

_BASE36 = string.digits + string.ascii_lowercase


def utc_now() -> datetime:
    """Default clock: current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def _to_base36(value: int) -> str:
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_BASE36[rem])
    return "".join(reversed(digits)) or "0"


def random_id() -> str:
    """
    Generate a fresh item id.

    Seven random base-36 characters followed by the current epoch
    milliseconds in base 36, e.g. ``"k3j9x0a-lq2w8f1c"``.
    """
    prefix = "".join(secrets.choice(_BASE36) for _ in range(7))
    return f"{prefix}-{_to_base36(int(time.time() * 1000))}"


class SequentialIds:
    """Deterministic id generator: ``prefix-1``, ``prefix-2``, ..."""

    def __init__(self, prefix: str = "item"):
        self.prefix = prefix
        self._counter = itertools.count(1)

    def __call__(self) -> str:
        return f"{self.prefix}-{next(self._counter)}"


@dataclass(frozen=True)
class Item:
    """
    A short text record.

    Identity is ``id``. Two items carry the same content when their
    text and category match; ``updated_at`` is ignored for that check.

    Attributes:
        id: Opaque stable identifier
        text: Record text (non-empty)
        category: Category label (non-empty)
        updated_at: Last modification time
    """
    id: str
    text: str
    category: str
    updated_at: datetime

    def __post_init__(self):
        if not isinstance(self.id, str) or not self.id:
            raise ValueError(f"Item id must be a non-empty string, got {self.id!r}")
        if not isinstance(self.text, str) or not self.text.strip():
            raise ValueError(f"Item {self.id} text must be a non-empty string")
        if not isinstance(self.category, str) or not self.category.strip():
            raise ValueError(f"Item {self.id} category must be a non-empty string")

    def same_content(self, other: "Item") -> bool:
        """Check whether text and category match, ignoring timestamps."""
        return self.text == other.text and self.category == other.category

    def to_dict(self) -> dict:
        """Convert to the persisted/wire representation."""
        return {
            "id": self.id,
            "text": self.text,
            "category": self.category,
            "updatedAt": self.updated_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Item":
        """
        Create from the persisted representation.

        Raises:
            KeyError: If a required field is missing
            ValueError: If a field is empty or the timestamp is invalid
        """
        updated_at = datetime.fromisoformat(
            str(data["updatedAt"]).replace("Z", "+00:00")
        )
        return cls(
            id=str(data["id"]),
            text=data["text"],
            category=data["category"],
            updated_at=updated_at,
        )

    @classmethod
    def create(
        cls,
        text: str,
        category: str,
        id_generator: IdGenerator = random_id,
        clock: Clock = utc_now,
    ) -> "Item":
        """Create a new local item with a fresh id and timestamp."""
        return cls(
            id=id_generator(),
            text=text,
            category=category,
            updated_at=clock(),
        )


@dataclass(frozen=True)
class Conflict:
    """
    A divergence between the local and remote versions of one item.

    Attributes:
        id: Shared item identifier
        local: Local version from before the sync cycle
        remote: Fetched remote version (kept by default)
    """
    id: str
    local: Item
    remote: Item

    def variant(self, choice: str) -> Optional[Item]:
        """Return the item for a ``"local"`` or ``"remote"`` choice."""
        if choice == "local":
            return self.local
        if choice == "remote":
            return self.remote
        return None

