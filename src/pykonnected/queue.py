"""Per-panel queue for callback updates."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

_LOGGER = logging.getLogger(__name__)


@dataclass
class QueuedUpdate:
    """A zone update received from a panel."""

    panel_id: str
    body: dict[str, Any]


class UpdateQueue:
    """Process updates in arrival order per panel.

    Each panel gets its own queue and worker, so a slow update from one
    panel never delays another, while updates from the same panel are never
    reordered.
    """

    def __init__(self, handler: Callable[[str, dict[str, Any]], Awaitable[None]]):
        """Initialize update queue.

        Args:
            handler: Coroutine function called with (panel_id, body)
        """
        self._handler = handler
        self._queues: dict[str, asyncio.Queue[QueuedUpdate]] = {}
        self._workers: dict[str, asyncio.Task[None]] = {}
        self._running = False

    async def start(self) -> None:
        """Start accepting updates."""
        self._running = True
        _LOGGER.debug("Update queue started")

    async def stop(self) -> None:
        """Stop workers after pending updates are processed."""
        if not self._running:
            return

        self._running = False
        await self.join()

        for worker in self._workers.values():
            if not worker.done():
                worker.cancel()
        for worker in self._workers.values():
            try:
                await worker
            except asyncio.CancelledError:
                pass

        self._workers.clear()
        self._queues.clear()
        _LOGGER.debug("Update queue stopped")

    def enqueue(self, panel_id: str, body: dict[str, Any]) -> None:
        """Queue an update for a panel.

        Raises:
            RuntimeError: If queue is not running
        """
        if not self._running:
            raise RuntimeError("Update queue is not running")

        queue = self._queues.get(panel_id)
        if queue is None:
            queue = self._queues[panel_id] = asyncio.Queue()
            self._workers[panel_id] = asyncio.create_task(self._worker(panel_id, queue))

        queue.put_nowait(QueuedUpdate(panel_id=panel_id, body=body))
        _LOGGER.debug(f"Update queued for panel {panel_id}, queue size: {queue.qsize()}")

    async def join(self) -> None:
        """Wait until every queued update has been processed."""
        for queue in list(self._queues.values()):
            await queue.join()

    async def _worker(self, panel_id: str, queue: asyncio.Queue[QueuedUpdate]) -> None:
        _LOGGER.debug(f"Update worker started for panel {panel_id}")
        while True:
            update = await queue.get()
            try:
                await self._handler(update.panel_id, update.body)
            except Exception as e:
                _LOGGER.error(f"Update from panel {panel_id} failed: {e}", exc_info=True)
            finally:
                queue.task_done()

    @property
    def is_running(self) -> bool:
        """Check if the queue accepts updates."""
        return self._running
