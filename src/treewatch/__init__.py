"""
treewatch

A recursive, adaptive directory-change watcher. Given a set of root
directories it reports creation, modification and deletion beneath them
through three callbacks.

Features:
- One watch entry per directory, polled round-robin by a background loop
- Same-file deduplication of directories registered under different spellings
- Recursive registration of whole subtrees without following symlinks
- Adaptive registration of directories created while running
- Graceful removal of watched directories that are deleted
"""

from .models import (
    ChangeKind,
    ChangeEvent,
    LifecycleState,
    WatchEntry,
)

from .config import WatcherConfig

from .exceptions import (
    WatcherError,
    WatcherStateError,
    WatcherStoppedError,
    HandleError,
    HandleClosedError,
    RegistrationError,
)

from .handles import (
    ChangeHandle,
    HandleFactory,
    ObserverChangeHandle,
    ObserverHandleFactory,
)
from .tree import iter_directories
from .watch_set import WatchSet
from .registrar import Registrar
from .lifecycle import Lifecycle
from .poll_loop import PollLoop
from .watcher import Watcher, create, create_recursive, create_recursive_adaptive


__all__ = [
    # Models
    "ChangeKind",
    "ChangeEvent",
    "LifecycleState",
    "WatchEntry",
    # Config
    "WatcherConfig",
    # Exceptions
    "WatcherError",
    "WatcherStateError",
    "WatcherStoppedError",
    "HandleError",
    "HandleClosedError",
    "RegistrationError",
    # Handles
    "ChangeHandle",
    "HandleFactory",
    "ObserverChangeHandle",
    "ObserverHandleFactory",
    # Components
    "iter_directories",
    "WatchSet",
    "Registrar",
    "Lifecycle",
    "PollLoop",
    # Facade
    "Watcher",
    "create",
    "create_recursive",
    "create_recursive_adaptive",
]

__version__ = "0.1.0"
