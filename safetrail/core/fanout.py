"""WebSocket notification fan-out keyed by room."""

from __future__ import annotations

import asyncio
import json
import logging
from concurrent.futures import Future
from typing import Any

from fastapi import WebSocket

from safetrail.core.config import settings

logger = logging.getLogger(__name__)


class NotificationFanout:
    """Tracks WebSocket connections per room and publishes events to them.

    ``publish`` is fire-and-forget: it can be called from request threads,
    schedules delivery on the application loop and never raises.
    """

    def __init__(self, timeout_seconds: float | None = None) -> None:
        # room -> set of active websocket connections
        self._rooms: dict[str, set[WebSocket]] = {}
        self._loop: asyncio.AbstractEventLoop | None = None
        self._timeout = timeout_seconds if timeout_seconds is not None else settings.fanout_timeout_seconds

    def bind_loop(self, loop: asyncio.AbstractEventLoop | None) -> None:
        """Attach the event loop that owns the websocket connections."""
        self._loop = loop

    async def connect(self, websocket: WebSocket, rooms: list[str]) -> None:
        await websocket.accept()
        for room in rooms:
            self._rooms.setdefault(room, set()).add(websocket)
        logger.info("WS connected: rooms=%s (total=%s)", rooms, self.total_connections)

    def disconnect(self, websocket: WebSocket, rooms: list[str]) -> None:
        for room in rooms:
            conns = self._rooms.get(room)
            if conns:
                conns.discard(websocket)
                if not conns:
                    del self._rooms[room]
        logger.info("WS disconnected: rooms=%s (total=%s)", rooms, self.total_connections)

    async def send_to_room(self, room: str, event: str, data: Any) -> int:
        """Send event to every connection in a room; returns deliveries."""
        conns = self._rooms.get(room, set())
        payload = json.dumps({"event": event, "room": room, "data": data}, default=str)
        dead: list[WebSocket] = []
        delivered = 0
        for ws in list(conns):
            try:
                await ws.send_text(payload)
                delivered += 1
            except Exception:
                dead.append(ws)
        for ws in dead:
            conns.discard(ws)
        return delivered

    def publish(self, room: str, event: str, data: Any) -> None:
        """Schedule an event for a room without blocking or failing the caller."""
        try:
            self._schedule(room, event, data)
        except Exception:
            logger.exception("Failed to publish %s to %s", event, room)

    def _schedule(self, room: str, event: str, data: Any) -> None:
        loop = self._loop
        if loop is None or loop.is_closed():
            logger.debug("No event loop bound; dropping %s for %s", event, room)
            return
        coro = asyncio.wait_for(self.send_to_room(room, event, data), timeout=self._timeout)
        future = asyncio.run_coroutine_threadsafe(coro, loop)
        future.add_done_callback(lambda f: self._log_outcome(f, room, event))

    @staticmethod
    def _log_outcome(future: Future, room: str, event: str) -> None:
        if future.cancelled():
            logger.warning("Publish of %s to %s cancelled", event, room)
            return
        exc = future.exception()
        if isinstance(exc, asyncio.TimeoutError):
            logger.warning("Publish of %s to %s timed out", event, room)
        elif exc is not None:
            logger.error("Publish of %s to %s failed: %s", event, room, exc)

    @property
    def total_connections(self) -> int:
        return len({id(ws) for conns in self._rooms.values() for ws in conns})


# Singleton instance used across the app
fanout = NotificationFanout()
