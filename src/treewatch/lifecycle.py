"""Lifecycle state machine guarding watcher start and stop."""

import logging
import threading
from typing import Optional

from .exceptions import WatcherStoppedError
from .models import LifecycleState

logger = logging.getLogger(__name__)


class Lifecycle:
    """
    Thread-safe PREPARED -> RUNNING -> STOPPED state machine.
    
    STOPPED is terminal. The poll loop reports its exit through
    mark_finished() so callers can wait for it.
    """

    def __init__(self):
        """Initialize in the PREPARED state."""
        self._state = LifecycleState.PREPARED
        self._lock = threading.Lock()
        self._stop_event = threading.Event()
        self._finished = threading.Event()
        self._loop_started = False

    @property
    def state(self) -> LifecycleState:
        with self._lock:
            return self._state

    @property
    def is_running(self) -> bool:
        with self._lock:
            return self._state is LifecycleState.RUNNING

    def begin(self) -> bool:
        """
        Atomically move from PREPARED to RUNNING.
        
        Returns:
            True if this call started the watcher, False if it was
            already running
            
        Raises:
            WatcherStoppedError: If the watcher has been stopped
        """
        with self._lock:
            if self._state is LifecycleState.RUNNING:
                return False
            if self._state is LifecycleState.STOPPED:
                raise WatcherStoppedError("Watcher has already been stopped")
            self._state = LifecycleState.RUNNING
            self._loop_started = True
            return True

    def stop(self) -> bool:
        """
        Move to STOPPED from any state.
        
        Returns:
            True if the state changed
        """
        with self._lock:
            changed = self._state is not LifecycleState.STOPPED
            self._state = LifecycleState.STOPPED
        self._stop_event.set()
        if changed:
            logger.info("Watcher stopped")
        return changed

    def wait_stopped(self, timeout: float) -> bool:
        """
        Sleep up to timeout seconds, waking early on stop().
        
        Returns:
            True if the watcher has been stopped
        """
        return self._stop_event.wait(timeout)

    def mark_finished(self) -> None:
        """Record that the poll loop has exited."""
        self._finished.set()

    def join(self, timeout: Optional[float] = None) -> bool:
        """
        Wait for the poll loop to exit.
        
        A watcher whose loop never started counts as finished once it
        is stopped.
        
        Returns:
            True if the loop has exited (or will never run)
        """
        with self._lock:
            never_started = not self._loop_started
            stopped = self._state is LifecycleState.STOPPED
        if never_started:
            return stopped
        return self._finished.wait(timeout)
