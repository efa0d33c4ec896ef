"""Custom exceptions for the analysis watcher package."""


class WatcherError(Exception):
    """Base exception for all watcher errors."""
    pass


class ConfigurationError(WatcherError):
    """Watcher configuration is invalid or unreadable."""
    pass


class AnalysisError(WatcherError):
    """The analysis collaborator failed to produce a result."""
    pass


class AnalysisTimeoutError(AnalysisError):
    """The analysis collaborator did not answer in time."""
    pass


class WatcherNotRunningError(WatcherError):
    """Watcher is not running."""
    pass


class WatcherAlreadyRunningError(WatcherError):
    """Watcher is already running."""
    pass
