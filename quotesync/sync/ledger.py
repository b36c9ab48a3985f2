"""
Pending conflict bookkeeping.

Holds the conflicts auto-resolved by the latest sync cycle and lets a
user override individual resolutions afterwards.
"""

import logging
import threading
from enum import Enum
from typing import Iterable, Mapping

from ..storage.item_store import ItemStore
from ..storage.models import Conflict

logger = logging.getLogger(__name__)


class Resolution(str, Enum):
    """Which side of a conflict to keep."""
    LOCAL = "local"
    REMOTE = "remote"


class ConflictLedger:
    """
    Pending conflicts of the latest sync cycle.

    A new cycle's conflicts replace any unresolved ones from the
    previous cycle.

    Usage:
        ledger = ConflictLedger(store)
        ledger.set_pending(result.conflicts)

        for conflict in ledger.list_pending():
            print(conflict.id, conflict.local.text, conflict.remote.text)

        ledger.apply_resolutions({"42": "local"})
    """

    def __init__(self, store: ItemStore):
        self._store = store
        self._lock = threading.Lock()
        self._pending: list[Conflict] = []

    def __len__(self) -> int:
        return len(self._pending)

    @property
    def has_pending(self) -> bool:
        return len(self._pending) > 0

    def set_pending(self, conflicts: Iterable[Conflict]) -> None:
        """Replace the pending list with ``conflicts``."""
        conflicts = list(conflicts)
        with self._lock:
            if self._pending:
                logger.info(
                    f"Discarding {len(self._pending)} unresolved conflicts "
                    f"from the previous cycle"
                )
            self._pending = conflicts

        if conflicts:
            logger.info(f"{len(conflicts)} conflicts pending resolution")

    def list_pending(self) -> list[Conflict]:
        """Return a copy of the pending conflicts."""
        with self._lock:
            return list(self._pending)

    def apply_resolutions(self, choices: Mapping[str, str]) -> int:
        """
        Apply user choices to the item store.

        For each pending conflict with a choice, the stored item is
        replaced by the chosen variant. Conflicts without a choice keep
        the value already in the store. Choices for unknown conflict ids
        and invalid choice values are ignored.

        Once at least one choice applies, the pending list is cleared and
        the store persisted. When none applies, both stay untouched so a
        stale submission cannot discard pending conflicts.

        Args:
            choices: Conflict id to ``"local"`` or ``"remote"``

        Returns:
            Number of stored items that changed

        Raises:
            StorageError: If persisting fails (in-memory state is updated)
        """
        with self._lock:
            pending = {conflict.id: conflict for conflict in self._pending}

        replacements = {}
        for conflict_id, choice in choices.items():
            conflict = pending.get(conflict_id)
            if conflict is None:
                logger.debug(f"Ignoring choice for unknown conflict {conflict_id}")
                continue

            chosen = conflict.variant(choice)
            if chosen is None:
                logger.warning(f"Ignoring invalid choice {choice!r} for conflict {conflict_id}")
                continue

            replacements[conflict_id] = chosen

        if not replacements:
            logger.info(f"No applicable resolutions, {len(pending)} conflicts still pending")
            return 0

        with self._lock:
            self._pending = []

        with self._store.locked():
            changed = 0
            merged = []
            for item in self._store.items:
                chosen = replacements.get(item.id)
                if chosen is not None and chosen != item:
                    merged.append(chosen)
                    changed += 1
                else:
                    merged.append(item)

            self._store.replace_all(merged)

        logger.info(f"Applied {len(replacements)} resolutions, {changed} items changed")
        return changed
