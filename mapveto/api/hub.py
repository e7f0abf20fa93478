"""
Connection Hub - WebSocket subscribers per session.

Every accepted change is pushed to all sockets subscribed to the session.
A socket that fails on send is dropped.
"""

from __future__ import annotations
from typing import Any
import asyncio
import logging

from fastapi import WebSocket

logger = logging.getLogger(__name__)


class ConnectionHub:
    def __init__(self):
        self._connections: dict[str, list[WebSocket]] = {}
        self._pending: set[asyncio.Task] = set()

    def subscribe(self, session_id: str, websocket: WebSocket):
        self._connections.setdefault(session_id, []).append(websocket)

    def unsubscribe(self, session_id: str, websocket: WebSocket):
        sockets = self._connections.get(session_id)
        if not sockets:
            return
        if websocket in sockets:
            sockets.remove(websocket)
        if not sockets:
            del self._connections[session_id]

    def drop_session(self, session_id: str):
        self._connections.pop(session_id, None)

    async def broadcast(self, session_id: str, message: dict[str, Any]):
        """Send a message to every subscriber of a session."""
        dead_connections = []
        for ws in list(self._connections.get(session_id, [])):
            try:
                await ws.send_json(message)
            except Exception:
                dead_connections.append(ws)
        for ws in dead_connections:
            logger.debug("Dropping dead connection on session %s", session_id)
            self.unsubscribe(session_id, ws)

    def publish(self, session_id: str, snapshot: dict[str, Any]):
        """
        Registry publisher: schedule an `update_state` broadcast.

        Must be called from the event loop thread. Outside a running loop
        (CLI, tests without a server) there is nobody to notify.
        """
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running loop, update for %s not broadcast", session_id)
            return
        task = loop.create_task(
            self.broadcast(session_id, {"type": "update_state", "payload": snapshot})
        )
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
