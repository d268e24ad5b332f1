"""Live reload: content watching and WebSocket event fanout.

A polling loop fingerprints the content tree, rebuilds the site when it
changes, and broadcasts a reload event to every connected client via
per-client asyncio queues.
"""

import asyncio
import logging
from typing import Any

from folio.core.site import SiteHolder

logger = logging.getLogger(__name__)


class ConnectionManager:
    """Manages WebSocket connections and fans out reload events."""

    def __init__(self) -> None:
        self._clients: dict[int, asyncio.Queue[dict[str, Any]]] = {}
        self._next_id: int = 0

    def connect(self) -> tuple[int, asyncio.Queue[dict[str, Any]]]:
        """Register a new client. Returns (client_id, queue)."""
        client_id = self._next_id
        self._next_id += 1
        queue: asyncio.Queue[dict[str, Any]] = asyncio.Queue(maxsize=256)
        self._clients[client_id] = queue
        logger.info(
            "WebSocket client %d connected (%d total)",
            client_id,
            len(self._clients),
        )
        return client_id, queue

    def disconnect(self, client_id: int) -> None:
        """Unregister a client."""
        self._clients.pop(client_id, None)
        logger.info(
            "WebSocket client %d disconnected (%d total)",
            client_id,
            len(self._clients),
        )

    @property
    def client_count(self) -> int:
        """Number of connected clients."""
        return len(self._clients)

    async def broadcast(self, msg: dict[str, Any]) -> None:
        """Send a message to all connected clients."""
        for client_id, queue in list(self._clients.items()):
            try:
                queue.put_nowait(msg)
            except asyncio.QueueFull:
                logger.warning("Client %d queue full, dropping event", client_id)


class ContentWatcher:
    """Polls the content tree and reloads the site when it changes."""

    def __init__(
        self,
        holder: SiteHolder,
        manager: ConnectionManager,
        interval: float = 1.0,
    ) -> None:
        self.holder = holder
        self.manager = manager
        self.interval = interval
        self._fingerprint: tuple | None = None
        self._task: asyncio.Task | None = None
        self._running: bool = False

    @property
    def is_watching(self) -> bool:
        return self._task is not None

    def start(self) -> None:
        """Start the background polling task."""
        if self._task is not None:
            return
        self._running = True
        self._fingerprint = self.holder.loader.fingerprint()
        self._task = asyncio.create_task(self._poll_loop())
        logger.info("Watching %s every %.1fs", self.holder.loader.root, self.interval)

    def stop(self) -> None:
        """Stop the background polling task."""
        self._running = False
        if self._task is not None:
            self._task.cancel()
            self._task = None
            logger.info("Content watching stopped")

    async def check(self) -> bool:
        """Reload once if the content tree changed. Returns True on reload."""
        fingerprint = await asyncio.to_thread(self.holder.loader.fingerprint)
        if fingerprint == self._fingerprint:
            return False
        result = await self.holder.reload()
        self._fingerprint = fingerprint
        await self.manager.broadcast(
            {"type": "reload", "documents": len(result.index.chronological)}
        )
        return True

    async def _poll_loop(self) -> None:
        """Check for changes until stopped."""
        while self._running:
            try:
                await self.check()
            except asyncio.CancelledError:
                break
            except Exception:
                logger.exception("Error reloading content")
            await asyncio.sleep(self.interval)
