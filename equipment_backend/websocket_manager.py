"""
WebSocket Manager - Handles real-time connections and broadcasts.

Every connected client receives a project_updated event after each
change; clients then fetch the new state via GET /api/project.
"""
import asyncio
import json
import logging
from typing import Optional, Set

from fastapi import WebSocket


logger = logging.getLogger(__name__)


class WebSocketManager:
    """Manages WebSocket connections and broadcasts."""

    def __init__(self):
        self._connections: Set[WebSocket] = set()
        self._lock = asyncio.Lock()

    async def connect(self, websocket: WebSocket):
        """Accept and register a new WebSocket connection."""
        await websocket.accept()
        async with self._lock:
            self._connections.add(websocket)
        logger.info("WebSocket connected. Total connections: %d", len(self._connections))

    async def disconnect(self, websocket: WebSocket):
        """Remove a WebSocket connection."""
        async with self._lock:
            self._connections.discard(websocket)
        logger.info("WebSocket disconnected. Total connections: %d", len(self._connections))

    async def broadcast(self, message: dict):
        """
        Broadcast a message to all connected clients.

        Clients whose send fails are dropped.
        """
        if not self._connections:
            return

        message_text = json.dumps(message)
        failed: Set[WebSocket] = set()

        async with self._lock:
            for websocket in self._connections:
                try:
                    await websocket.send_text(message_text)
                except Exception as e:
                    logger.debug("Dropping WebSocket client after failed send: %s", e)
                    failed.add(websocket)

            self._connections -= failed

    async def notify_project_updated(self, project_name: Optional[str] = None, can_undo: bool = False, can_redo: bool = False):
        """Tell all clients the project changed."""
        await self.broadcast({
            "type": "project_updated",
            "project_name": project_name,
            "can_undo": can_undo,
            "can_redo": can_redo,
        })

    @property
    def connection_count(self) -> int:
        """Get the number of active connections."""
        return len(self._connections)


# Global instance
ws_manager = WebSocketManager()
