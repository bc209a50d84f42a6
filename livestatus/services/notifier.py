"""Registry of open WebSocket listeners and snapshot fan-out."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Set

from fastapi import WebSocket

logger = logging.getLogger(__name__)

DEFAULT_SEND_TIMEOUT_SECONDS = 5.0


class ConnectionManager:
    def __init__(self, send_timeout: float = DEFAULT_SEND_TIMEOUT_SECONDS) -> None:
        self._connections: Set[WebSocket] = set()
        self._send_timeout = send_timeout

    async def _send(self, websocket: WebSocket, snapshot: Dict[str, Any]) -> None:
        # a listener that stops reading must not hold up the caller
        await asyncio.wait_for(websocket.send_json(snapshot), self._send_timeout)

    async def join(self, websocket: WebSocket, snapshot: Dict[str, Any]) -> bool:
        """Send the catch-up *snapshot*, then register *websocket* for broadcasts.

        Returns False (and leaves the registry untouched) when the initial send
        fails or times out.
        """

        try:
            await self._send(websocket, snapshot)
        except Exception:
            logger.debug("initial snapshot send failed; not registering listener")
            return False
        self._connections.add(websocket)
        return True

    def leave(self, websocket: WebSocket) -> None:
        self._connections.discard(websocket)

    async def broadcast(self, snapshot: Dict[str, Any]) -> int:
        connections: List[WebSocket] = list(self._connections)
        results = await asyncio.gather(
            *(self._send(websocket, snapshot) for websocket in connections),
            return_exceptions=True,
        )

        to_remove = [
            websocket
            for websocket, result in zip(connections, results)
            if isinstance(result, Exception)
        ]
        for websocket in to_remove:
            self.leave(websocket)
        if to_remove:
            logger.info("dropped %d listener(s) after failed send", len(to_remove))

        return len(connections) - len(to_remove)

    def __len__(self) -> int:
        return len(self._connections)


__all__ = ["ConnectionManager", "DEFAULT_SEND_TIMEOUT_SECONDS"]
