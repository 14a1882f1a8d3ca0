"""Delivery of orchestration events to the observer manager.

Events raised on the event loop are awaited directly. Events raised on worker
threads (progress reports of synchronous jobs) are marshalled onto the loop
and tracked so the orchestrator can drain them before announcing the end of
a run.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

from indexrunner.kernel.logging import get_logger

if TYPE_CHECKING:
    from indexrunner.kernel.orchestration.events import Event
    from indexrunner.kernel.ports.observer_manager import ObserverManager

logger = get_logger(__name__)

__all__ = ["EventNotifier"]


class EventNotifier:
    """Publishes events of one run to an optional observer manager."""

    def __init__(
        self, observer_manager: ObserverManager | None, loop: asyncio.AbstractEventLoop
    ) -> None:
        self._observer_manager = observer_manager
        self._loop = loop
        self._pending: set[asyncio.Task[None]] = set()

    async def notify(self, event: Event) -> None:
        """Notify observer manager of an event if it exists."""
        if self._observer_manager is None:
            return
        try:
            await self._observer_manager.notify(event)
        except Exception as e:
            # Observer managers isolate their observers; this guards custom managers
            logger.warning(f"Observer manager failed for {type(event).__name__}: {e}")

    def notify_threadsafe(self, event: Event) -> None:
        """Schedule ``event`` for delivery from any thread. Never blocks."""
        if self._observer_manager is None:
            return
        try:
            self._loop.call_soon_threadsafe(self._schedule, event)
        except RuntimeError:
            # Loop already closed; nobody is left to observe
            logger.debug(f"Dropped {type(event).__name__}: event loop is closed")

    async def drain(self) -> None:
        """Wait until every scheduled event has been delivered."""
        # Let callbacks already queued by worker threads create their tasks
        await asyncio.sleep(0)
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
            await asyncio.sleep(0)

    def _schedule(self, event: Event) -> None:
        task = self._loop.create_task(self.notify(event))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
