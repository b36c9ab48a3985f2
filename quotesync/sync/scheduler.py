"""
Periodic sync scheduling.

Drives recurring sync cycles on a background thread and exposes the
cycle state to observers. At most one cycle runs at a time.
"""

import logging
import threading
from enum import Enum
from typing import Callable, Optional

from .engine import CycleResult, SyncEngine

logger = logging.getLogger(__name__)


class SchedulerState(Enum):
    """Observable scheduler state."""
    IDLE = "idle"
    SYNCING = "syncing"
    CONFLICTS_PENDING = "conflicts_pending"
    ERROR = "error"


StateListener = Callable[[SchedulerState, Optional[CycleResult]], None]


class SyncScheduler:
    """
    Runs sync cycles now or on a fixed interval.

    A cycle requested while another is running is rejected with an
    ALREADY_RUNNING result, never queued. Stopping only prevents future
    cycles; an in-flight cycle completes.

    Usage:
        scheduler = SyncScheduler(engine)
        scheduler.add_listener(lambda state, result: print(state))
        scheduler.start(15.0)
        ...
        scheduler.stop()
    """

    def __init__(self, engine: SyncEngine):
        self.engine = engine

        self._cycle_lock = threading.Lock()
        self._schedule_lock = threading.Lock()
        self._state_lock = threading.Lock()

        self._state = SchedulerState.IDLE
        self._last_result: Optional[CycleResult] = None
        self._listeners: list[StateListener] = []

        self._stop_event: Optional[threading.Event] = None
        self._thread: Optional[threading.Thread] = None

    @property
    def state(self) -> SchedulerState:
        return self._state

    @property
    def last_result(self) -> Optional[CycleResult]:
        return self._last_result

    @property
    def is_running(self) -> bool:
        """Whether recurring cycles are scheduled."""
        with self._schedule_lock:
            return self._stop_event is not None and not self._stop_event.is_set()

    def add_listener(self, listener: StateListener) -> None:
        """Register a callback invoked on every state change."""
        self._listeners.append(listener)

    def start(self, interval: float, run_immediately: bool = False) -> None:
        """
        Begin recurring sync cycles.

        Restarting replaces the previous schedule; it never runs two.

        Args:
            interval: Seconds between cycles
            run_immediately: Run the first cycle now instead of after
                one interval

        Raises:
            ValueError: If interval is not positive
        """
        if interval <= 0:
            raise ValueError(f"Sync interval must be positive, got {interval}")

        with self._schedule_lock:
            self._stop_locked()

            stop_event = threading.Event()
            thread = threading.Thread(
                target=self._run_loop,
                args=(stop_event, interval, run_immediately),
                name="quotesync-scheduler",
                daemon=True,
            )
            self._stop_event = stop_event
            self._thread = thread
            thread.start()

        logger.info(f"Sync scheduled every {interval}s")

    def stop(self) -> None:
        """Halt recurring cycles. Safe to call when not running."""
        with self._schedule_lock:
            stopped = self._stop_locked()

        if stopped:
            logger.info("Sync schedule stopped")

    def _stop_locked(self) -> bool:
        if self._stop_event is None:
            return False
        self._stop_event.set()
        self._stop_event = None
        self._thread = None
        return True

    def run_cycle_now(self) -> CycleResult:
        """
        Run one sync cycle in the calling thread.

        Returns:
            The cycle result, or an ALREADY_RUNNING result if a cycle is
            in progress
        """
        if not self._cycle_lock.acquire(blocking=False):
            logger.info("Sync cycle requested while another is running, skipping")
            return CycleResult.already_running()

        try:
            self._set_state(SchedulerState.SYNCING, None)
            try:
                result = self.engine.sync()
            except Exception as e:
                logger.error(f"Unexpected error during sync cycle: {e}", exc_info=True)
                result = CycleResult.failed(f"Unexpected error: {e}")

            self._last_result = result
            self._set_state(self._state_after(result), result)
            return result
        finally:
            self._cycle_lock.release()

    def _state_after(self, result: CycleResult) -> SchedulerState:
        if not result.ok:
            return SchedulerState.ERROR
        if self.engine.ledger.has_pending:
            return SchedulerState.CONFLICTS_PENDING
        return SchedulerState.IDLE

    def _set_state(self, state: SchedulerState, result: Optional[CycleResult]) -> None:
        with self._state_lock:
            self._state = state

        for listener in list(self._listeners):
            try:
                listener(state, result)
            except Exception:
                logger.exception("Sync state listener failed")

    def _run_loop(self, stop_event: threading.Event, interval: float, run_immediately: bool) -> None:
        if run_immediately and not stop_event.is_set():
            self.run_cycle_now()

        while not stop_event.wait(interval):
            self.run_cycle_now()

        logger.debug("Scheduler loop exited")
