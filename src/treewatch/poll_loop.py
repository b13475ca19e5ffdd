"""Round-robin poll loop draining native change handles."""

import logging
from pathlib import Path
from typing import Callable, Iterator, Optional

from .exceptions import HandleClosedError
from .lifecycle import Lifecycle
from .models import ChangeEvent, ChangeKind, WatchEntry
from .watch_set import WatchSet

logger = logging.getLogger(__name__)

Callback = Callable[[Path], None]


class PollLoop:
    """
    Visits watch entries in round-robin order and dispatches their events.
    
    Queued additions and removals are merged at every wrap-around. The
    loop ends when the lifecycle leaves RUNNING or when no entries are
    left, closing every remaining handle on the way out.
    """

    def __init__(
        self,
        watch_set: WatchSet,
        lifecycle: Lifecycle,
        on_create: Callback,
        on_modify: Callback,
        on_delete: Callback,
        interceptor: Optional[Callable[[Path], object]] = None,
        idle_backoff: float = 0.0,
    ):
        """
        Initialize the poll loop.
        
        Args:
            watch_set: Entries to poll
            lifecycle: Lifecycle observed for termination
            on_create: Called with the path of each created child
            on_modify: Called with the path of each modified child
            on_delete: Called with the path of each deleted child
            interceptor: Called before on_create for every creation
            idle_backoff: Seconds to wait after a cycle that dispatched nothing
        """
        self.watch_set = watch_set
        self.lifecycle = lifecycle
        self.on_create = on_create
        self.on_modify = on_modify
        self.on_delete = on_delete
        self.interceptor = interceptor
        self.idle_backoff = idle_backoff
        self._cycle: Optional[Iterator[WatchEntry]] = None
        self._dispatched = False

    def next_entry(self) -> Optional[WatchEntry]:
        """
        Advance to the next entry, merging pending changes on wrap-around.
        
        Returns:
            The next entry, or None if the loop should terminate
        """
        if self._cycle is not None:
            entry = next(self._cycle, None)
            if entry is not None:
                return entry
            
            if not self._dispatched and self.idle_backoff > 0:
                self.lifecycle.wait_stopped(self.idle_backoff)
            if not self.lifecycle.is_running:
                return None
        
        self._dispatched = False
        if self.watch_set.merge_pending() == 0:
            logger.info("No directories left to watch")
            self.lifecycle.stop()
            return None
        
        self._cycle = self.watch_set.iter_cycle()
        return next(self._cycle)

    def visit(self, entry: WatchEntry) -> None:
        """Poll one entry, dispatch its events and re-arm it."""
        try:
            events = entry.handle.poll()
        except HandleClosedError:
            logger.debug(f"Handle for {entry.root} is closed, removing")
            self.watch_set.discard(entry)
            return
        
        pending = entry.take_backlog()
        if events is None and not pending:
            return
        if events:
            pending.extend(event for event in events if not entry.is_duplicate(event))
        
        for event in pending:
            if not self.lifecycle.is_running:
                return
            self.dispatch(entry, event)
        
        if events is not None and not entry.handle.re_arm():
            logger.debug(f"{entry.root} can no longer be watched, removing")
            self.watch_set.discard(entry)
            if self.interceptor is not None:
                # The path may already hold a new directory.
                self._invoke(self.interceptor, entry.root)

    def dispatch(self, entry: WatchEntry, event: ChangeEvent) -> None:
        """Route one event to its callback."""
        if event.kind is ChangeKind.OVERFLOW:
            logger.debug(f"Event buffer overflowed for {entry.root}, events were lost")
            return
        
        path = entry.resolve(event)
        self._dispatched = True
        
        if event.kind is ChangeKind.CREATE:
            if self.interceptor is not None:
                self._invoke(self.interceptor, path)
            self._invoke(self.on_create, path)
        elif event.kind is ChangeKind.MODIFY:
            self._invoke(self.on_modify, path)
        elif event.kind is ChangeKind.DELETE:
            self._invoke(self.on_delete, path)

    def _invoke(self, callback: Callable[[Path], object], path: Path) -> None:
        try:
            callback(path)
        except Exception:
            logger.exception(f"Callback failed for {path}")

    def run(self) -> None:
        """Poll until the lifecycle leaves RUNNING, then close all handles."""
        logger.info(f"Poll loop started with {len(self.watch_set) + self.watch_set.pending_additions} entry(ies)")
        try:
            while True:
                entry = self.next_entry()
                if entry is not None:
                    self.visit(entry)
                if not self.lifecycle.is_running:
                    break
        except Exception:
            logger.exception("Poll loop failed")
            self.lifecycle.stop()
        finally:
            closed = self.watch_set.close_all()
            logger.info(f"Poll loop exited, closed {closed} handle(s)")
