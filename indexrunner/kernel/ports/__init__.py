"""Port interfaces for indexrunner."""

from indexrunner.kernel.ports.build_job import BuildJob, ProgressReporter
from indexrunner.kernel.ports.index_builder import IndexBuilder, IndexBuilderFactory
from indexrunner.kernel.ports.observer_manager import (
    AsyncObserverFunc,
    Observer,
    ObserverFunc,
    ObserverManager,
)

__all__ = [
    "AsyncObserverFunc",
    "BuildJob",
    "IndexBuilder",
    "IndexBuilderFactory",
    "Observer",
    "ObserverFunc",
    "ObserverManager",
    "ProgressReporter",
]
