"""Local Observer Manager - in-process implementation of the observer pattern.

Provides the ObserverManager port with event filtering, concurrency control,
per-observer timeouts, a thread pool for synchronous observers, and fault
isolation so a misbehaving observer can never disturb a running build.
"""

from __future__ import annotations

import asyncio
import inspect
import uuid
from collections.abc import Iterable
from concurrent.futures import ThreadPoolExecutor
from typing import TYPE_CHECKING, Any, Protocol, cast

from pydantic import BaseModel, ConfigDict, Field, field_validator

from indexrunner.kernel.exceptions import ValidationError
from indexrunner.kernel.logging import get_logger
from indexrunner.kernel.orchestration.events.events import Event, RunFinished

if TYPE_CHECKING:
    from collections.abc import Awaitable, Sequence

    from indexrunner.kernel.ports.observer_manager import (
        AsyncObserverFunc,
        Observer,
        ObserverFunc,
    )

logger = get_logger(__name__)

EventType = type[Event]
EventTypesInput = EventType | Iterable[EventType] | None


def normalize_event_types(event_types: EventTypesInput) -> set[EventType] | None:
    """Normalize user-provided event types to a validated set."""
    if event_types is None:
        return None

    if isinstance(event_types, type):
        event_types = (event_types,)

    if not isinstance(event_types, Iterable):
        raise ValidationError("event_types", "must be an Event subclass or iterable of them")

    normalized: set[EventType] = set()
    for item in event_types:
        if not isinstance(item, type) or not issubclass(item, Event):
            raise ValidationError("event_types", "must contain Event subclasses", item)
        normalized.add(item)
    return normalized


class ErrorHandler(Protocol):
    """Protocol for handling errors raised by observers."""

    def handle_error(self, error: Exception, context: dict[str, Any]) -> None:
        """Handle an error that occurred during event processing."""
        ...


class LoggingErrorHandler:
    """Default error handler that logs errors."""

    def __init__(self, log: Any | None = None):
        self.logger: Any = log if log is not None else logger

    def handle_error(self, error: Exception, context: dict[str, Any]) -> None:
        """Log the error with context."""
        handler_name = context.get("handler_name", "unknown")
        event_type = context.get("event_type", "unknown")

        if context.get("is_critical", False):
            self.logger.opt(exception=error).error(
                "Critical observer {handler} failed for {event}: {error}",
                handler=handler_name,
                event=event_type,
                error=error,
            )
        else:
            self.logger.warning(
                "Observer {handler} failed for {event}: {error}",
                handler=handler_name,
                event=event_type,
                error=error,
            )


class FunctionObserver:
    """Wrapper to make functions implement the Observer protocol."""

    def __init__(self, func: ObserverFunc | AsyncObserverFunc, executor: ThreadPoolExecutor):
        self._func = func
        self._executor = executor
        self.__name__ = getattr(func, "__name__", "anonymous_observer")

    async def handle(self, event: Event) -> None:
        """Handle the event by calling the wrapped function."""
        if inspect.iscoroutinefunction(self._func):
            await self._func(event)
        else:
            # Run sync function in thread pool to avoid blocking the loop
            loop = asyncio.get_running_loop()
            await loop.run_in_executor(self._executor, self._func, event)


# Default configuration constants
DEFAULT_MAX_CONCURRENT_OBSERVERS = 10
DEFAULT_OBSERVER_TIMEOUT = 5.0
DEFAULT_MAX_SYNC_WORKERS = 4

# Events whose observer failures are logged as errors rather than warnings
PRIORITY_EVENT_TYPES: tuple[EventType, ...] = (RunFinished,)


class ObserverRegistrationConfig(BaseModel):
    """Validated configuration for observer registration."""

    model_config = ConfigDict(extra="forbid", arbitrary_types_allowed=True)

    observer_id: str | None = None
    event_types: set[EventType] | None = None
    timeout: float | None = Field(None, gt=0)
    max_concurrency: int | None = Field(None, ge=1)

    @field_validator("event_types", mode="before")
    @classmethod
    def validate_event_types(cls, value: EventTypesInput) -> set[EventType] | None:
        return normalize_event_types(value)


class LocalObserverManager:
    """Local standalone implementation of the observer manager.

    This implementation provides:
    - Event type filtering (subclass aware)
    - Concurrent observer execution with a global limit
    - Fault isolation - observer failures don't affect the run
    - Timeout handling for slow observers
    - Thread pool for sync observers to avoid blocking the loop
    """

    def __init__(
        self,
        max_concurrent_observers: int = DEFAULT_MAX_CONCURRENT_OBSERVERS,
        observer_timeout: float | None = DEFAULT_OBSERVER_TIMEOUT,
        max_sync_workers: int = DEFAULT_MAX_SYNC_WORKERS,
        error_handler: ErrorHandler | None = None,
    ) -> None:
        """Initialize the local observer manager.

        Args
        ----
            max_concurrent_observers: Maximum number of observers to run concurrently
            observer_timeout: Default timeout in seconds for each observer (None = no limit)
            max_sync_workers: Maximum thread pool workers for sync observers
            error_handler: Optional error handler, defaults to LoggingErrorHandler
        """
        self._timeout = observer_timeout
        self._error_handler = error_handler or LoggingErrorHandler()

        self._semaphore = asyncio.Semaphore(max_concurrent_observers)
        self._executor = ThreadPoolExecutor(
            max_workers=max_sync_workers, thread_name_prefix="indexrunner-observer"
        )
        self._executor_shutdown = False

        self._handlers: dict[str, Observer] = {}
        self._event_filters: dict[str, set[EventType] | None] = {}
        self._observer_timeouts: dict[str, float | None] = {}
        self._observer_semaphores: dict[str, asyncio.Semaphore] = {}

    def register(
        self,
        handler: Observer | ObserverFunc | AsyncObserverFunc,
        *,
        observer_id: str | None = None,
        event_types: EventTypesInput = None,
        timeout: float | None = None,
        max_concurrency: int | None = None,
    ) -> str:
        """Register an observer with optional event type filtering."""
        config = ObserverRegistrationConfig(
            observer_id=observer_id,
            event_types=event_types,
            timeout=timeout,
            max_concurrency=max_concurrency,
        )

        resolved_id = config.observer_id or str(uuid.uuid4())
        if resolved_id in self._handlers:
            raise ValueError(f"Observer '{resolved_id}' already registered")

        if hasattr(handler, "handle"):
            observer = cast("Observer", handler)
        elif callable(handler):
            observer = FunctionObserver(handler, self._executor)
        else:
            raise TypeError(
                f"Observer must be callable or implement Observer protocol, got {type(handler)}"
            )

        self._handlers[resolved_id] = observer
        self._event_filters[resolved_id] = config.event_types

        if config.timeout is not None:
            self._observer_timeouts[resolved_id] = config.timeout
        if config.max_concurrency is not None:
            self._observer_semaphores[resolved_id] = asyncio.Semaphore(config.max_concurrency)

        return resolved_id

    def unregister(self, handler_id: str) -> bool:
        """Unregister an observer by ID."""
        found = self._handlers.pop(handler_id, None) is not None
        self._event_filters.pop(handler_id, None)
        self._observer_timeouts.pop(handler_id, None)
        self._observer_semaphores.pop(handler_id, None)
        return found

    async def notify(self, event: Event) -> None:
        """Notify all interested observers of an event.

        Errors are handled by the configured error handler and never raised.
        """
        observers = {
            observer_id: observer
            for observer_id, observer in self._handlers.items()
            if self._should_notify(observer_id, event)
        }
        if not observers:
            return

        tasks = [
            self._dispatch(observer_id, observer, event)
            for observer_id, observer in observers.items()
        ]
        await self._run_all(tasks)

    def clear(self) -> None:
        """Remove all registered observers."""
        self._handlers.clear()
        self._event_filters.clear()
        self._observer_timeouts.clear()
        self._observer_semaphores.clear()

    async def close(self) -> None:
        """Close the manager and cleanup resources."""
        self.clear()
        if not self._executor_shutdown:
            self._executor.shutdown(wait=True)
            self._executor_shutdown = True

    def __len__(self) -> int:
        return len(self._handlers)

    async def __aenter__(self) -> LocalObserverManager:
        return self

    async def __aexit__(self, _exc_type: Any, _exc_val: Any, _exc_tb: Any) -> None:
        await self.close()

    # Private helper methods

    async def _dispatch(self, observer_id: str, observer: Observer, event: Event) -> None:
        """Dispatch an event to one observer under concurrency control."""
        per_observer_semaphore = self._observer_semaphores.get(observer_id)

        if per_observer_semaphore is None:
            async with self._semaphore:
                await self._safe_invoke(observer_id, observer, event)
            return

        async with self._semaphore, per_observer_semaphore:
            await self._safe_invoke(observer_id, observer, event)

    async def _run_all(self, tasks: Sequence[Awaitable[Any]]) -> None:
        await asyncio.gather(*tasks, return_exceptions=True)

    def _should_notify(self, observer_id: str, event: Event) -> bool:
        """Check if observer should be notified of this event type."""
        event_filter = self._event_filters.get(observer_id)
        if event_filter is None:
            return True
        return isinstance(event, tuple(event_filter))

    async def _safe_invoke(self, observer_id: str, observer: Observer, event: Event) -> None:
        """Safely invoke an observer with timeout."""
        timeout_value = self._observer_timeouts.get(observer_id, self._timeout)
        try:
            if timeout_value is None:
                await observer.handle(event)
            else:
                await asyncio.wait_for(observer.handle(event), timeout=timeout_value)
        except Exception as exc:
            name = getattr(observer, "__name__", observer.__class__.__name__)
            self._error_handler.handle_error(
                exc,
                {
                    "handler_name": name,
                    "event_type": type(event).__name__,
                    "is_critical": isinstance(event, PRIORITY_EVENT_TYPES),
                },
            )
