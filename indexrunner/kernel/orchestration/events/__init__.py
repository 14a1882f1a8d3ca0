"""Event system for indexrunner orchestration runs.

- events.py: Event data classes (just data, no behavior)
- observers.py: Observer implementations
"""

from .events import (
    Event,
    JobCancelled,
    JobCompleted,
    JobDisposed,
    JobFailed,
    JobProgressed,
    JobStarted,
    RunFinished,
    RunStarted,
)
from .observers import LoggingObserver

# Event taxonomy - grouped event types for observer filtering
JOB_LIFECYCLE_EVENTS = (JobStarted, JobCompleted, JobFailed, JobCancelled, JobDisposed)
RUN_EVENTS = (RunStarted, RunFinished)
ALL_EVENTS = (*RUN_EVENTS, *JOB_LIFECYCLE_EVENTS, JobProgressed)

__all__ = [
    "ALL_EVENTS",
    "JOB_LIFECYCLE_EVENTS",
    "RUN_EVENTS",
    "Event",
    "JobCancelled",
    "JobCompleted",
    "JobDisposed",
    "JobFailed",
    "JobProgressed",
    "JobStarted",
    "LoggingObserver",
    "RunFinished",
    "RunStarted",
]
