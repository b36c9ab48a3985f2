"""
Three-way reconciliation of local and remote item sets.

Compares the local collection against a fetched remote snapshot and
produces the new authoritative collection plus the conflicts that were
resolved in favour of the remote.
"""

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Iterable

from ..storage.models import Conflict, Item


class ChangeType(Enum):
    """Outcome for one item id during reconciliation."""

    # Only the remote has it - appended after existing items
    SERVER_ADDED = auto()

    # Both sides agree on text and category - local copy kept
    UNCHANGED = auto()

    # Both sides have it with different content - remote kept
    CONFLICT = auto()

    # Only the local side has it - kept after remote-derived items
    LOCAL_ONLY = auto()


@dataclass
class ReconcileResult:
    """
    Result of reconciling a local set against a remote snapshot.

    Attributes:
        merged: New item set, one entry per distinct id
        conflicts: One entry per id whose content differed
        changes: Outcome per item id
    """
    merged: list[Item] = field(default_factory=list)
    conflicts: list[Conflict] = field(default_factory=list)
    changes: dict[str, ChangeType] = field(default_factory=dict)

    def count(self, change_type: ChangeType) -> int:
        return sum(1 for c in self.changes.values() if c is change_type)

    @property
    def server_added(self) -> int:
        return self.count(ChangeType.SERVER_ADDED)

    @property
    def unchanged(self) -> int:
        return self.count(ChangeType.UNCHANGED)

    @property
    def local_only(self) -> int:
        return self.count(ChangeType.LOCAL_ONLY)

    @property
    def has_conflicts(self) -> bool:
        return len(self.conflicts) > 0

    def __repr__(self) -> str:
        return (
            f"ReconcileResult(merged={len(self.merged)}, "
            f"conflicts={[c.id for c in self.conflicts]})"
        )


def reconcile(local: Iterable[Item], remote: Iterable[Item]) -> ReconcileResult:
    """
    Merge a remote snapshot into the local item set.

    Rules, walking the remote snapshot in order:
    - id unknown locally → remote item appended (SERVER_ADDED)
    - same text and category → local item appended (UNCHANGED)
    - content differs → remote item appended, conflict recorded (CONFLICT)

    Local items never matched by a remote id are appended afterwards in
    their original order (LOCAL_ONLY).

    This function is pure: same inputs, same output, no I/O.

    Args:
        local: Current local items, at most one per id
        remote: Fetched remote items

    Returns:
        ReconcileResult with the merged set and the conflicts
    """
    result = ReconcileResult()
    pending = {item.id: item for item in local}

    for remote_item in remote:
        if remote_item.id in result.changes:
            # Repeated id within the snapshot; the first occurrence wins.
            continue

        local_item = pending.pop(remote_item.id, None)

        if local_item is None:
            result.merged.append(remote_item)
            result.changes[remote_item.id] = ChangeType.SERVER_ADDED
        elif local_item.same_content(remote_item):
            result.merged.append(local_item)
            result.changes[remote_item.id] = ChangeType.UNCHANGED
        else:
            result.merged.append(remote_item)
            result.conflicts.append(
                Conflict(id=remote_item.id, local=local_item, remote=remote_item)
            )
            result.changes[remote_item.id] = ChangeType.CONFLICT

    for local_item in pending.values():
        result.merged.append(local_item)
        result.changes[local_item.id] = ChangeType.LOCAL_ONLY

    return result
