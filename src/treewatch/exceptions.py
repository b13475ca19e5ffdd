"""Custom exceptions for the treewatch package."""


class WatcherError(Exception):
    """Base exception for all watcher errors."""
    pass


class WatcherStateError(WatcherError):
    """Illegal lifecycle transition."""
    pass


class WatcherStoppedError(WatcherStateError):
    """Watcher has been stopped and cannot be started again."""
    pass


class HandleError(WatcherError):
    """Error related to a native change handle."""
    pass


class HandleClosedError(HandleError):
    """Change handle was polled after being closed."""
    pass


class RegistrationError(WatcherError):
    """A single directory could not be registered."""
    pass
