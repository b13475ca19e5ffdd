"""Watcher facade composing registration, polling and lifecycle."""

import logging
import threading
from concurrent.futures import Executor
from dataclasses import replace
from pathlib import Path
from typing import Callable, List, Optional

from .config import WatcherConfig
from .handles.base import HandleFactory
from .handles.observer import ObserverHandleFactory
from .lifecycle import Lifecycle
from .models import LifecycleState
from .poll_loop import PollLoop
from .registrar import PathLike, Registrar
from .watch_set import WatchSet

logger = logging.getLogger(__name__)

Callback = Callable[[Path], None]


class Watcher:
    """
    Reports creation, modification and deletion beneath a set of directories.
    
    All directories are registered at construction. start() runs the poll
    loop in the background, stop() asks it to finish and clean() releases
    every handle synchronously. A stopped watcher cannot be restarted.
    
    Example:
        watcher = Watcher(print, print, print, "/tmp/inbox",
                          config=WatcherConfig(adaptive=True))
        watcher.start()
        ...
        watcher.stop()
        watcher.clean()
    """

    def __init__(
        self,
        on_create: Callback,
        on_modify: Callback,
        on_delete: Callback,
        *paths: PathLike,
        config: Optional[WatcherConfig] = None,
        handle_factory: Optional[HandleFactory] = None,
    ):
        """
        Initialize the watcher and register its directories.
        
        Paths that cannot be watched are skipped.
        
        Args:
            on_create: Called with the absolute path of each created child
            on_modify: Called with the absolute path of each modified child
            on_delete: Called with the absolute path of each deleted child
            *paths: Directories to watch
            config: Watcher configuration
            handle_factory: Source of change handles (defaults to a watchdog
                observer owned by this watcher)
        """
        self.config = config or WatcherConfig()
        self.on_create = on_create
        self.on_modify = on_modify
        self.on_delete = on_delete
        
        self._owns_factory = handle_factory is None
        self._handle_factory = handle_factory or ObserverHandleFactory(
            max_buffered_events=self.config.max_buffered_events,
        )
        self._watch_set = WatchSet()
        self._lifecycle = Lifecycle()
        self._registrar = Registrar(
            self._watch_set,
            self._handle_factory,
            recursive=self.config.recursive,
        )
        self._loop = PollLoop(
            self._watch_set,
            self._lifecycle,
            on_create,
            on_modify,
            on_delete,
            interceptor=self._registrar.intercept_created if self.config.adaptive else None,
            idle_backoff=self.config.idle_backoff,
        )
        self._thread: Optional[threading.Thread] = None
        self._release_lock = threading.Lock()
        
        registered = self._registrar.register(*paths)
        logger.info(f"Registered {len(registered)} directory(ies) from {len(paths)} path(s)")

    @property
    def recursive(self) -> bool:
        return self.config.recursive

    @property
    def adaptive(self) -> bool:
        return self.config.adaptive

    @property
    def state(self) -> LifecycleState:
        """Current lifecycle state."""
        return self._lifecycle.state

    @property
    def is_running(self) -> bool:
        return self._lifecycle.is_running

    def roots(self) -> List[Path]:
        """Return the roots of every live and pending watch entry."""
        return [entry.root for entry in self._watch_set.snapshot()]

    def start(self, executor: Optional[Executor] = None) -> None:
        """
        Start the poll loop in the background.
        
        Does nothing if already running.
        
        Args:
            executor: Executor to run the loop on; an internally managed
                thread is used when omitted
            
        Raises:
            WatcherStoppedError: If the watcher has been stopped
        """
        if not self._lifecycle.begin():
            return
        
        logger.info(f"Starting watcher over {len(self.roots())} directory(ies)")
        if executor is not None:
            try:
                executor.submit(self._run)
            except RuntimeError:
                self._lifecycle.stop()
                raise
            return
        
        self._thread = threading.Thread(target=self._run, name=self.config.thread_name)
        self._thread.daemon = True
        self._thread.start()

    def _run(self) -> None:
        try:
            self._loop.run()
        finally:
            self._release_backend()
            self._lifecycle.mark_finished()

    def stop(self) -> None:
        """
        Ask the poll loop to finish.
        
        Returns immediately; the loop releases its handles after its
        current iteration. Use clean() or join() for deterministic release.
        """
        self._lifecycle.stop()

    def clean(self) -> None:
        """Close every handle still held. Safe to call repeatedly."""
        closed = self._watch_set.close_all()
        self._release_backend()
        logger.debug(f"Cleaned {closed} handle(s)")

    def _release_backend(self) -> None:
        if not self._owns_factory:
            return
        with self._release_lock:
            self._handle_factory.shutdown()

    def join(self, timeout: Optional[float] = None) -> bool:
        """
        Wait for the poll loop to exit.
        
        Args:
            timeout: Maximum seconds to wait, None to wait forever
            
        Returns:
            True if the loop has exited, or was never started and the
            watcher is stopped
        """
        return self._lifecycle.join(timeout)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.stop()
        self.clean()
        return False

    def __repr__(self) -> str:
        return (
            f"Watcher(state={self.state.value}, entries={len(self._watch_set)}, "
            f"recursive={self.recursive}, adaptive={self.adaptive})"
        )


def create(on_create: Callback, on_modify: Callback, on_delete: Callback, *paths: PathLike, **kwargs) -> Watcher:
    """Create a watcher over exactly the given directories."""
    return Watcher(on_create, on_modify, on_delete, *paths, **kwargs)


def create_recursive(on_create: Callback, on_modify: Callback, on_delete: Callback, *paths: PathLike, **kwargs) -> Watcher:
    """Create a watcher over the given directories and all their subdirectories."""
    config = replace(kwargs.pop("config", None) or WatcherConfig(), recursive=True)
    return Watcher(on_create, on_modify, on_delete, *paths, config=config, **kwargs)


def create_recursive_adaptive(on_create: Callback, on_modify: Callback, on_delete: Callback, *paths: PathLike, **kwargs) -> Watcher:
    """
    Create a recursive watcher that also watches directories created later.
    
    A directory created beneath a watched one is registered before the
    creation callback for it fires.
    """
    config = replace(kwargs.pop("config", None) or WatcherConfig(), recursive=True, adaptive=True)
    return Watcher(on_create, on_modify, on_delete, *paths, config=config, **kwargs)
