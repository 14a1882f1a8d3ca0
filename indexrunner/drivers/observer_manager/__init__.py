"""Observer manager implementations."""

from indexrunner.drivers.observer_manager.local import LocalObserverManager, LoggingErrorHandler

__all__ = ["LocalObserverManager", "LoggingErrorHandler"]
