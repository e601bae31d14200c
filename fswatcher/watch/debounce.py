# fswatcher/watch/debounce.py

"""
Trailing-edge debouncing for change notifications
"""
import logging
import threading
from concurrent.futures import Executor
from datetime import datetime
from typing import Any, Callable, Dict, Optional

logger = logging.getLogger(__name__)


class Debouncer:
    """
    Collapses bursts of stimuli into a single action

    Every call to `debounce` bumps a generation counter and reschedules the
    action `interval` seconds later. A timer only fires its action while its
    generation is still the current one, so superseded timers are inert even
    if cancelling them raced with their expiry.
    """

    def __init__(self, interval: float = 0.5, executor: Optional[Executor] = None):
        """
        Initialize debouncer

        Args:
            interval: Quiet period in seconds before the action fires
            executor: Executor the action runs on (timer thread if None)
        """
        if interval < 0:
            raise ValueError(f"Debounce interval must not be negative: {interval}")

        self.interval = interval
        self.executor = executor

        self._lock = threading.Lock()
        # Held while an action runs; cancel() acquires it to wait for the action
        self._run_lock = threading.RLock()
        self._generation = 0
        self._timer: Optional[threading.Timer] = None
        self._action: Optional[Callable[[], Any]] = None
        self._last_stimulus: Optional[datetime] = None

        self.stats = {
            'stimuli': 0,
            'fired': 0,
            'cancelled': 0,
            'errors': 0,
        }

    def debounce(self, action: Callable[[], Any]):
        """
        Schedule action after the quiet period, replacing any pending one

        Args:
            action: Callable run once the stimuli stop
        """
        with self._lock:
            self.stats['stimuli'] += 1
            self._generation += 1
            generation = self._generation

            if self._timer is not None:
                self._timer.cancel()

            timer = threading.Timer(self.interval, self._expire, args=(generation,))
            timer.daemon = True
            self._timer = timer
            self._action = action
            self._last_stimulus = datetime.now()
            timer.start()

    def cancel(self):
        """
        Discard any pending action without running it

        Blocks until an action that is already running has returned, so
        nothing fires after this call completes. Safe to call from inside
        the action.
        """
        with self._lock:
            self._generation += 1
            if self._timer is not None:
                self._timer.cancel()
                self.stats['cancelled'] += 1
            self._timer = None
            self._action = None
            self._last_stimulus = None

        with self._run_lock:
            pass

    def flush(self) -> bool:
        """
        Run the pending action immediately on the calling thread

        Returns:
            True if an action was pending and ran
        """
        with self._lock:
            action = self._action
            if action is None:
                return False
            self._generation += 1
            if self._timer is not None:
                self._timer.cancel()
            self._timer = None
            self._action = None
            self._last_stimulus = None

        with self._run_lock:
            self._run_action(action)
        return True

    @property
    def is_pending(self) -> bool:
        """Whether an action is scheduled and has not fired yet"""
        with self._lock:
            return self._action is not None

    def _expire(self, generation: int):
        """Timer callback, hands the action to the configured executor"""
        if self.executor is not None:
            try:
                self.executor.submit(self._fire, generation)
            except RuntimeError as e:
                # Executor already shut down
                logger.warning(f"Dropping debounced action: {e}")
        else:
            self._fire(generation)

    def _fire(self, generation: int):
        with self._run_lock:
            with self._lock:
                if generation != self._generation or self._action is None:
                    return
                action = self._action
                self._timer = None
                self._action = None
                self._last_stimulus = None

            self._run_action(action)

    def _run_action(self, action: Callable[[], Any]):
        self.stats['fired'] += 1
        try:
            action()
        except Exception as e:
            self.stats['errors'] += 1
            logger.error(f"Error in debounced action: {e}", exc_info=True)

    def get_stats(self) -> Dict[str, Any]:
        """Get debouncer statistics"""
        with self._lock:
            return {
                **self.stats,
                'pending': self._action is not None,
                'last_stimulus': self._last_stimulus,
                'interval': self.interval,
            }
