"""
Base classes for native change handles.
"""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import List, Optional

from ..models import ChangeEvent


class ChangeHandle(ABC):
    """Abstract per-directory change-notification handle."""

    @abstractmethod
    def poll(self) -> Optional[List[ChangeEvent]]:
        """
        Drain pending events without blocking.
        
        Returns:
            None if nothing is ready, otherwise the drained events in the
            order they were reported (possibly empty)
            
        Raises:
            HandleClosedError: If the handle has been closed
        """
        pass

    @abstractmethod
    def re_arm(self) -> bool:
        """
        Re-arm the handle after draining.
        
        Returns:
            False if the watched directory is gone and the handle should
            be discarded
        """
        pass

    @abstractmethod
    def close(self) -> None:
        """Close the handle. Closing twice is a no-op."""
        pass

    @property
    @abstractmethod
    def closed(self) -> bool:
        """Return True once the handle has been closed."""
        pass


class HandleFactory(ABC):
    """Abstract source of change handles sharing one backend."""

    @abstractmethod
    def open(self, path: Path) -> ChangeHandle:
        """
        Open a handle watching a single directory.
        
        Args:
            path: Directory to watch
            
        Returns:
            A new change handle
            
        Raises:
            OSError: If the directory cannot be watched
        """
        pass

    def shutdown(self) -> None:
        """Release the shared backend. Must be idempotent."""
        pass
