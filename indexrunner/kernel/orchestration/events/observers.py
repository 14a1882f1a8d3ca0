"""Built-in observers for orchestration events."""

from __future__ import annotations

from indexrunner.kernel.logging import get_logger

from .events import (
    Event,
    JobCancelled,
    JobDisposed,
    JobFailed,
    JobProgressed,
)

logger = get_logger(__name__)


class LoggingObserver:
    """Observer that logs events through Loguru.

    Uses ``event.log_message()`` for consistent formatting. Progress events
    are logged at DEBUG unless they carry an error message.

    Example
    -------
        >>> observer_manager.register(LoggingObserver(), event_types=ALL_EVENTS)  # doctest: +SKIP
    """

    def __init__(self, verbose: bool = False):
        self.verbose = verbose

    async def handle(self, event: Event) -> None:
        if isinstance(event, JobProgressed):
            if event.is_error:
                logger.warning(event.log_message())
            elif self.verbose:
                logger.debug(event.log_message())

        elif isinstance(event, JobFailed):
            logger.error(event.log_message())

        elif isinstance(event, JobDisposed):
            if event.error is not None:
                logger.warning(event.log_message())
            elif self.verbose:
                logger.debug(event.log_message())

        elif isinstance(event, JobCancelled) and event.started:
            logger.warning(event.log_message())

        else:
            logger.info(event.log_message())
