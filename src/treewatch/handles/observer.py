"""Native change handles backed by a shared watchdog observer."""

import logging
import os
import threading
from collections import deque
from contextlib import suppress
from dataclasses import dataclass, field
from pathlib import Path
from typing import Deque, Dict, List, Optional, Set

from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer
from watchdog.observers.api import ObservedWatch

from ..exceptions import HandleClosedError, HandleError
from ..models import ChangeEvent, ChangeKind, Identity, file_identity
from .base import ChangeHandle, HandleFactory

logger = logging.getLogger(__name__)


class DirectoryEventHandler(FileSystemEventHandler):
    """Handler that converts watchdog events for one directory to ChangeEvents."""

    def __init__(self, directory: str, handle: "ObserverChangeHandle"):
        super().__init__()
        self.directory = directory
        self.handle = handle

    def _child_name(self, path) -> Optional[str]:
        """Return the name of a direct child of the directory, else None."""
        parent, name = os.path.split(os.fsdecode(path))
        if name and os.path.normpath(parent) == self.directory:
            return name
        return None

    def _is_self(self, path) -> bool:
        return os.path.normpath(os.fsdecode(path)) == self.directory

    def _emit(self, kind: ChangeKind, path) -> None:
        name = self._child_name(path)
        if name:
            self.handle.push(ChangeEvent(kind, name))

    def on_created(self, event):
        self._emit(ChangeKind.CREATE, event.src_path)

    def on_deleted(self, event):
        if self._is_self(event.src_path):
            self.handle.mark_gone()
            return
        self._emit(ChangeKind.DELETE, event.src_path)

    def on_modified(self, event):
        self._emit(ChangeKind.MODIFY, event.src_path)

    def on_moved(self, event):
        if self._is_self(event.src_path):
            self.handle.mark_gone()
            return
        self._emit(ChangeKind.DELETE, event.src_path)
        self._emit(ChangeKind.CREATE, event.dest_path)


class ObserverChangeHandle(ChangeHandle):
    """
    Change handle for one directory scheduled on a shared observer.
    
    Events are buffered by the observer thread and drained by poll().
    Once the buffer holds max_events entries a single OVERFLOW event is
    appended and further events are dropped until the next drain.
    """

    def __init__(self, factory: Optional["ObserverHandleFactory"], directory: str, max_events: int = 512):
        self.directory = directory
        self.max_events = max_events
        self.handler = DirectoryEventHandler(directory, self)
        self._factory = factory
        self._events: Deque[ChangeEvent] = deque()
        self._overflowed = False
        self._gone = False
        self._closed = False
        self._lock = threading.Lock()

    def push(self, event: ChangeEvent) -> None:
        """Buffer an event (called from the observer thread)."""
        with self._lock:
            if self._closed or self._overflowed:
                return
            if len(self._events) >= self.max_events:
                self._events.append(ChangeEvent(ChangeKind.OVERFLOW))
                self._overflowed = True
                return
            self._events.append(event)

    def mark_gone(self) -> None:
        """Flag the watched directory as deleted or moved away."""
        with self._lock:
            self._gone = True

    @property
    def gone(self) -> bool:
        with self._lock:
            return self._gone

    def poll(self) -> Optional[List[ChangeEvent]]:
        with self._lock:
            if self._closed:
                raise HandleClosedError(f"Handle is closed: {self.directory}")
            if not self._events and not self._gone:
                return None
            events = list(self._events)
            self._events.clear()
            self._overflowed = False
            return events

    def re_arm(self) -> bool:
        with self._lock:
            if self._closed or self._gone:
                return False
        if self._factory is not None and not self._factory.is_active(self):
            return False
        return os.path.isdir(self.directory)

    def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
            self._events.clear()
        if self._factory is not None:
            self._factory.release(self)

    @property
    def closed(self) -> bool:
        with self._lock:
            return self._closed

    def __repr__(self) -> str:
        return f"ObserverChangeHandle({self.directory!r}, closed={self._closed})"


@dataclass(eq=False)
class _Schedule:
    """A scheduled observer watch and the handles sharing it."""
    watch: ObservedWatch
    identity: Identity
    handles: Set[ObserverChangeHandle] = field(default_factory=set)


class ObserverHandleFactory(HandleFactory):
    """
    Opens change handles on one lazily started watchdog observer.
    
    Each handle is a non-recursive watch on a single directory. Handles
    for the same physical directory share the observer's emitter; the
    emitter is unscheduled when the last of them is closed. A watch whose
    emitter has stopped, or whose path now names a different directory,
    is never shared: it is unscheduled, its handles are marked gone and
    a fresh watch is scheduled.
    """

    def __init__(self, max_buffered_events: int = 512):
        """
        Initialize the factory.
        
        Args:
            max_buffered_events: Buffer limit for each handle before overflow
        """
        self.max_buffered_events = max_buffered_events
        self._observer: Optional[Observer] = None
        self._schedules: Dict[str, _Schedule] = {}
        self._shutdown = False
        self._lock = threading.Lock()

    def _ensure_observer(self) -> Observer:
        # The observer must be alive before scheduling so that emitters
        # start immediately and a bad path fails inside open().
        if self._shutdown:
            raise HandleError("Handle factory has been shut down")
        if self._observer is None:
            observer = Observer()
            observer.start()
            self._observer = observer
            logger.debug("Started watchdog observer")
        return self._observer

    @staticmethod
    def _emitting(observer: Observer, watch: ObservedWatch) -> bool:
        for emitter in observer.emitters:
            if emitter.watch == watch:
                return emitter.is_alive() and emitter.should_keep_running()
        return False

    def _is_stale(self, observer: Observer, schedule: _Schedule, identity: Identity) -> bool:
        if schedule.identity != identity:
            return True
        if any(handle.gone for handle in schedule.handles):
            return True
        return not self._emitting(observer, schedule.watch)

    def _drop(self, observer: Observer, directory: str, schedule: _Schedule) -> None:
        del self._schedules[directory]
        for handle in schedule.handles:
            handle.mark_gone()
        with suppress(KeyError):
            observer.unschedule(schedule.watch)
        logger.debug(f"Dropped stale watch on {directory}")

    def open(self, path: Path) -> ObserverChangeHandle:
        directory = os.path.realpath(os.fspath(path))
        if not os.path.isdir(directory):
            raise NotADirectoryError(f"Not a directory: {path}")
        identity = file_identity(directory)
        
        handle = ObserverChangeHandle(self, directory, self.max_buffered_events)
        
        with self._lock:
            observer = self._ensure_observer()
            schedule = self._schedules.get(directory)
            if schedule is not None and self._is_stale(observer, schedule, identity):
                self._drop(observer, directory, schedule)
                schedule = None
            
            try:
                watch = observer.schedule(handle.handler, directory, recursive=False)
            except OSError:
                with suppress(KeyError):
                    observer.remove_handler_for_watch(
                        handle.handler, ObservedWatch(directory, False)
                    )
                raise
            
            if schedule is None:
                schedule = _Schedule(watch, identity)
                self._schedules[directory] = schedule
            schedule.handles.add(handle)
        
        return handle

    def is_active(self, handle: ObserverChangeHandle) -> bool:
        """Check that a handle is still attached to a running emitter."""
        with self._lock:
            observer = self._observer
            schedule = self._schedules.get(handle.directory)
            if observer is None or schedule is None or handle not in schedule.handles:
                return False
            return self._emitting(observer, schedule.watch)

    def release(self, handle: ObserverChangeHandle) -> None:
        """
        Detach a closed handle from the observer.
        
        Args:
            handle: The closed handle
        """
        with self._lock:
            observer = self._observer
            if observer is None or self._shutdown:
                return
            
            schedule = self._schedules.get(handle.directory)
            if schedule is None or handle not in schedule.handles:
                return
            
            schedule.handles.discard(handle)
            if schedule.handles:
                with suppress(KeyError):
                    observer.remove_handler_for_watch(handle.handler, schedule.watch)
                return
            
            del self._schedules[handle.directory]
            with suppress(KeyError):
                observer.unschedule(schedule.watch)

    def shutdown(self) -> None:
        with self._lock:
            if self._shutdown:
                return
            self._shutdown = True
            observer = self._observer
            self._schedules.clear()
        
        if observer is not None:
            observer.stop()
            if observer is not threading.current_thread():
                observer.join(timeout=5.0)
            logger.debug("Stopped watchdog observer")

    @property
    def is_shutdown(self) -> bool:
        with self._lock:
            return self._shutdown

    def __len__(self) -> int:
        """Return the number of scheduled watches."""
        with self._lock:
            return len(self._schedules)
