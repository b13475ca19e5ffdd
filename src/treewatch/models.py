"""Data models for the treewatch package."""

import logging
import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Dict, List, Optional, Tuple

if TYPE_CHECKING:
    from .handles.base import ChangeHandle

logger = logging.getLogger(__name__)


class ChangeKind(Enum):
    """Kinds of change reported by a native handle."""
    CREATE = "create"
    MODIFY = "modify"
    DELETE = "delete"
    OVERFLOW = "overflow"


class LifecycleState(Enum):
    """Lifecycle states of a watcher."""
    PREPARED = "prepared"
    RUNNING = "running"
    STOPPED = "stopped"


@dataclass(frozen=True)
class ChangeEvent:
    """
    A single change drained from a native handle.
    
    Attributes:
        kind: The kind of change
        name: Name of the affected child relative to the watched directory,
            None for OVERFLOW
    """
    kind: ChangeKind
    name: Optional[str] = None

    def __post_init__(self):
        if self.kind is not ChangeKind.OVERFLOW and not self.name:
            raise ValueError(f"{self.kind.value} event requires a name")


Identity = Tuple[int, int]


def file_identity(path, follow_symlinks: bool = True) -> Identity:
    """Return the (device, inode) pair naming the file at a path."""
    st = os.stat(path, follow_symlinks=follow_symlinks)
    return (st.st_dev, st.st_ino)


@dataclass(eq=False)
class WatchEntry:
    """
    One registered directory paired with its change handle.
    
    Attributes:
        root: Absolute path the directory was registered under
        handle: Native change handle for the directory
        identity: (device, inode) of the directory when it was registered
    """
    root: Path
    handle: "ChangeHandle"
    identity: Optional[Identity] = None
    _backlog: List[ChangeEvent] = field(default_factory=list, init=False, repr=False)
    _seeded: Dict[str, Identity] = field(default_factory=dict, init=False, repr=False)

    def resolve(self, event: ChangeEvent) -> Path:
        """Return the absolute path of the child an event refers to."""
        return self.root / event.name

    def seed_existing(self) -> int:
        """
        Queue CREATE events for the children already present in the directory.
        
        Used for directories that appeared while running, whose children
        may have been created before the handle was opened. A later native
        CREATE for the same child is recognised by is_duplicate().
        
        Returns:
            Number of children queued
        """
        with os.scandir(self.root) as it:
            for child in it:
                try:
                    identity = file_identity(child.path, follow_symlinks=False)
                except OSError:
                    continue
                self._seeded[child.name] = identity
                self._backlog.append(ChangeEvent(ChangeKind.CREATE, child.name))
        return len(self._backlog)

    def take_backlog(self) -> List[ChangeEvent]:
        """Return and clear the queued seed events."""
        backlog, self._backlog = self._backlog, []
        return backlog

    def is_duplicate(self, event: ChangeEvent) -> bool:
        """Check whether a native event repeats a seeded creation."""
        if event.kind is ChangeKind.DELETE:
            self._seeded.pop(event.name, None)
            return False
        if event.kind is not ChangeKind.CREATE or event.name not in self._seeded:
            return False
        
        seeded = self._seeded.pop(event.name)
        try:
            return file_identity(self.resolve(event), follow_symlinks=False) == seeded
        except OSError:
            return True

    def close(self) -> None:
        """Close the handle, logging instead of raising on failure."""
        try:
            self.handle.close()
        except Exception as e:
            logger.warning(f"Failed to close handle for {self.root}: {e}")
