"""Port for fanning orchestration events out to observers.

JobOrchestrator only calls ``notify``. The CLI presenter and LoggingObserver
subscribe through ``register``. Anything richer (unregistering, clearing,
closing) belongs to the concrete manager.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Iterable
from typing import Protocol

from indexrunner.kernel.orchestration.events.events import Event

ObserverFunc = Callable[[Event], None]
AsyncObserverFunc = Callable[[Event], Awaitable[None]]


class Observer(Protocol):
    """Anything with an async ``handle(event)``."""

    async def handle(self, event: Event) -> None: ...


class ObserverManager(Protocol):
    """Delivers run and job events to registered observers.

    A manager must keep observer failures and slow observers away from the
    caller of ``notify``: by the time ``notify`` returns every interested
    observer has either handled the event, failed, or timed out, and none of
    that is raised.
    """

    def register(
        self,
        handler: Observer | ObserverFunc | AsyncObserverFunc,
        *,
        observer_id: str | None = None,
        event_types: Iterable[type[Event]] | type[Event] | None = None,
        timeout: float | None = None,
        max_concurrency: int | None = None,
    ) -> str:
        """Subscribe ``handler`` and return its observer id.

        ``event_types`` narrows delivery to those event classes; None means
        every event.
        """
        ...

    async def notify(self, event: Event) -> None: ...
