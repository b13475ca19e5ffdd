"""
Native change handles.
"""

from .base import ChangeHandle, HandleFactory
from .observer import DirectoryEventHandler, ObserverChangeHandle, ObserverHandleFactory

__all__ = [
    "ChangeHandle",
    "HandleFactory",
    "DirectoryEventHandler",
    "ObserverChangeHandle",
    "ObserverHandleFactory",
]
