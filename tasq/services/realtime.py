"""Real-time alert channel: per-user fan-out over WebSocket connections."""

import asyncio
import logging
from collections import defaultdict
from typing import Any, DefaultDict, Dict, List

from fastapi import WebSocket

logger = logging.getLogger(__name__)


class AlertChannel:
    """Holds every open WebSocket grouped by user id.

    A user may have several sockets open (one per browser tab).  Frames
    for a user are sent to all of them, one emission at a time, so each
    socket sees frames in the order they were emitted.  A socket that
    fails to accept a frame is dropped; reconnecting is the browser's job.
    """

    def __init__(self) -> None:
        self._connections: DefaultDict[str, List[WebSocket]] = defaultdict(list)
        self._locks: Dict[str, asyncio.Lock] = {}

    def _lock_for(self, user_id: str) -> asyncio.Lock:
        lock = self._locks.get(user_id)
        if lock is None:
            lock = self._locks[user_id] = asyncio.Lock()
        return lock

    async def connect(self, user_id: str, websocket: WebSocket) -> None:
        await websocket.accept()
        self._connections[user_id].append(websocket)
        logger.info(
            "Channel connected user=%s sockets=%d",
            user_id,
            len(self._connections[user_id]),
        )

    def disconnect(self, user_id: str, websocket: WebSocket) -> None:
        sockets = self._connections.get(user_id)
        if not sockets or websocket not in sockets:
            return
        sockets.remove(websocket)
        if not sockets:
            self._connections.pop(user_id, None)
        logger.info("Channel disconnected user=%s", user_id)

    def connection_count(self, user_id: str) -> int:
        return len(self._connections.get(user_id, []))

    async def send(self, user_id: str, frame: Dict[str, Any]) -> int:
        """Send *frame* to every socket of *user_id*.

        Returns the number of sockets that accepted it.
        """
        async with self._lock_for(user_id):
            delivered = 0
            for websocket in list(self._connections.get(user_id, [])):
                try:
                    await websocket.send_json(frame)
                    delivered += 1
                except Exception:
                    logger.warning(
                        "Dropping socket for user %s after failed send",
                        user_id,
                        exc_info=True,
                    )
                    self.disconnect(user_id, websocket)
            return delivered

    async def close_user(self, user_id: str, code: int = 1000) -> None:
        """Close and forget every socket of *user_id*."""
        sockets = self._connections.pop(user_id, [])
        for websocket in sockets:
            try:
                await websocket.close(code=code)
            except Exception:
                logger.debug("Socket for user %s already closed", user_id)
        self._locks.pop(user_id, None)
        if sockets:
            logger.info("Channel closed user=%s sockets=%d", user_id, len(sockets))
