"""In-process registry of connected WebSocket subscribers.

Broadcast is fire-and-forget: a subscriber whose send fails or takes longer
than `send_timeout` seconds is dropped and must re-fetch `GET /listings`
after reconnecting. There is no acknowledgement and no buffering for slow
clients.
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass
from typing import Any

from fastapi import WebSocket

logger = logging.getLogger(__name__)

DEFAULT_SEND_TIMEOUT = 5.0


@dataclass
class Subscriber:
    client_id: str
    websocket: WebSocket
    user_id: str | None  # None for anonymous viewers
    name: str = ""


class ConnectionHub:
    def __init__(self, send_timeout: float = DEFAULT_SEND_TIMEOUT) -> None:
        self._clients: dict[str, Subscriber] = {}
        self._send_timeout = send_timeout

    @property
    def client_count(self) -> int:
        return len(self._clients)

    async def connect(
        self, websocket: WebSocket, user_id: str | None = None, name: str = ""
    ) -> str:
        """Accept the socket and register it; returns the client id."""
        await websocket.accept()
        client_id = uuid.uuid4().hex[:12]
        self._clients[client_id] = Subscriber(client_id, websocket, user_id, name)
        if user_id is None:
            logger.info("Subscriber %s connected (anonymous)", client_id)
        else:
            logger.info("Subscriber %s connected (user=%s name=%r)", client_id, user_id, name)
        return client_id

    def disconnect(self, client_id: str) -> None:
        if self._clients.pop(client_id, None) is not None:
            logger.info("Subscriber %s disconnected", client_id)

    async def _send(self, subscriber: Subscriber, message: dict[str, Any]) -> None:
        await asyncio.wait_for(subscriber.websocket.send_json(message), self._send_timeout)

    async def broadcast(self, message: dict[str, Any]) -> int:
        """Send `message` to every subscriber; returns how many received it."""
        subscribers = list(self._clients.values())
        if not subscribers:
            return 0

        results = await asyncio.gather(
            *(self._send(s, message) for s in subscribers),
            return_exceptions=True,
        )
        delivered = 0
        for subscriber, result in zip(subscribers, results):
            if isinstance(result, TimeoutError):
                logger.info("Dropping slow subscriber %s", subscriber.client_id)
                self.disconnect(subscriber.client_id)
            elif isinstance(result, Exception):
                logger.info("Dropping subscriber %s: %s", subscriber.client_id, result)
                self.disconnect(subscriber.client_id)
            else:
                delivered += 1
        return delivered
