"""Reconciliation and sync scheduling module."""

from .engine import AddResult, Banner, CycleResult, CycleStatus, SyncEngine, SyncStats, banner_for
from .ledger import ConflictLedger, Resolution
from .reconcile import ChangeType, ReconcileResult, reconcile
from .scheduler import SchedulerState, SyncScheduler

__all__ = [
    "AddResult",
    "Banner",
    "CycleResult",
    "CycleStatus",
    "SyncEngine",
    "SyncStats",
    "banner_for",
    "ConflictLedger",
    "Resolution",
    "ChangeType",
    "ReconcileResult",
    "reconcile",
    "SchedulerState",
    "SyncScheduler",
]
