"""
WebSocket Manager - Handles real-time connections and broadcasts.

This module manages WebSocket connections and broadcasts graph updates
and layout positions to all connected clients.
"""
import asyncio
import json
import logging
from typing import Set

from fastapi import WebSocket

LOGGER = logging.getLogger(__name__)


class WebSocketManager:
    """
    Manages WebSocket connections and broadcasts.

    All connected clients receive graph_updated events when the graph
    changes, and positions frames while the layout is moving.
    """

    def __init__(self):
        self._connections: Set[WebSocket] = set()
        self._lock = asyncio.Lock()

    async def connect(self, websocket: WebSocket):
        """Accept and register a new WebSocket connection."""
        await websocket.accept()
        async with self._lock:
            self._connections.add(websocket)
        LOGGER.info("WebSocket connected. Total connections: %d", len(self._connections))

    async def disconnect(self, websocket: WebSocket):
        """Remove a WebSocket connection."""
        async with self._lock:
            self._connections.discard(websocket)
        LOGGER.info("WebSocket disconnected. Total connections: %d", len(self._connections))

    async def broadcast(self, message: dict):
        """
        Broadcast a message to all connected clients.

        Clients that fail to receive are dropped.
        """
        if not self._connections:
            return

        # Serialize once for all clients
        message_text = json.dumps(message)

        failed: Set[WebSocket] = set()

        async with self._lock:
            for websocket in self._connections:
                try:
                    await websocket.send_text(message_text)
                except Exception as e:
                    LOGGER.debug("Dropping WebSocket client: %s", e)
                    failed.add(websocket)

            self._connections -= failed

    async def notify_graph_updated(self, requires_resimulation: bool):
        """
        Notify all clients that the graph has been updated.

        Clients should fetch the latest state via GET /api/graph.
        """
        await self.broadcast({
            "type": "graph_updated",
            "requires_resimulation": requires_resimulation
        })

    async def notify_positions(self, positions: list[dict]):
        """Send the latest layout coordinates of every node."""
        await self.broadcast({
            "type": "positions",
            "nodes": positions
        })

    @property
    def connection_count(self) -> int:
        """Get the number of active connections."""
        return len(self._connections)
