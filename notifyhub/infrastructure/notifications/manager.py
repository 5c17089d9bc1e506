"""Connection registry for notification websockets."""

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from typing import Any, DefaultDict, Set, Tuple

from fastapi import WebSocket

logger = logging.getLogger(__name__)

ConnectionKey = Tuple[str, str]


class NotificationConnectionManager:
    """Track active websocket connections grouped by user and owner scope.

    Entries are added when a socket connects and pruned when it disconnects
    or a send fails. A socket only ever receives messages for the scope it
    connected with. The manager also remembers the event loop serving the
    sockets so worker threads can schedule sends onto it.
    """

    def __init__(self) -> None:
        self._connections: DefaultDict[ConnectionKey, Set[WebSocket]] = defaultdict(set)
        self._loop: asyncio.AbstractEventLoop | None = None

    @property
    def loop(self) -> asyncio.AbstractEventLoop | None:
        return self._loop

    async def connect(
        self, user_id: str, owner_scope_id: str, websocket: WebSocket
    ) -> None:
        """Accept the websocket connection and register it for the user's scope."""

        await websocket.accept()
        self._loop = asyncio.get_running_loop()
        key = (user_id, owner_scope_id)
        self._connections[key].add(websocket)
        logger.debug(
            "Websocket connected for user %s in scope %s (%s open)",
            user_id,
            owner_scope_id,
            len(self._connections[key]),
        )

    def disconnect(self, user_id: str, owner_scope_id: str, websocket: WebSocket) -> None:
        """Remove ``websocket`` from the pool of the user's scope."""

        key = (user_id, owner_scope_id)
        connections = self._connections.get(key)
        if connections is None:
            return
        connections.discard(websocket)
        if not connections:
            self._connections.pop(key, None)

    def is_connected(self, user_id: str, owner_scope_id: str) -> bool:
        return bool(self._connections.get((user_id, owner_scope_id)))

    def connection_count(self, user_id: str, owner_scope_id: str) -> int:
        return len(self._connections.get((user_id, owner_scope_id), ()))

    async def send_to_user(
        self, user_id: str, owner_scope_id: str, message: dict[str, Any]
    ) -> int:
        """Send ``message`` to every active connection of the user in ``owner_scope_id``."""

        delivered = 0
        connections = list(self._connections.get((user_id, owner_scope_id), set()))
        for connection in connections:
            try:
                await connection.send_json(message)
            except Exception:
                logger.debug("Dropping broken websocket for user %s", user_id)
                self.disconnect(user_id, owner_scope_id, connection)
            else:
                delivered += 1
        return delivered


__all__ = ["NotificationConnectionManager"]
