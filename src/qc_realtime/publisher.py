"""Fan-out of listing changes to real-time subscribers.

The listing service only knows the `Publisher` protocol. Two backends:

  HubPublisher    single process: broadcast straight into the local hub.
  RedisPublisher  many processes: publish to a Redis channel; every process
                  runs `relay_channel_to_hub` to forward the channel into its
                  own hub.

Messages on the wire are `{"event": <name>, "data": <payload>}`.
"""

import asyncio
import contextlib
import json
import logging
from typing import Any, Protocol

from redis.asyncio.client import PubSub
from redis.exceptions import RedisError

from src.qc_common.redis_client import get_redis, subscribe
from src.qc_realtime.hub import ConnectionHub

logger = logging.getLogger(__name__)

LISTINGS_UPDATED = "listings:updated"


class Publisher(Protocol):
    async def publish(self, event: str, payload: Any) -> None: ...


def envelope(event: str, payload: Any) -> dict[str, Any]:
    return {"event": event, "data": payload}


class HubPublisher:
    def __init__(self, hub: ConnectionHub) -> None:
        self._hub = hub

    async def publish(self, event: str, payload: Any) -> None:
        delivered = await self._hub.broadcast(envelope(event, payload))
        logger.debug("%s delivered to %d subscribers", event, delivered)


class RedisPublisher:
    def __init__(self, channel: str) -> None:
        self._channel = channel

    async def publish(self, event: str, payload: Any) -> None:
        redis = await get_redis()
        receivers = await redis.publish(self._channel, json.dumps(envelope(event, payload)))
        logger.debug("%s published to %s (%d instances)", event, self._channel, receivers)


RELAY_RETRY_DELAY = 1.0
RELAY_MAX_RETRY_DELAY = 30.0


async def _forward(pubsub: PubSub, channel: str, hub: ConnectionHub) -> None:
    async for message in pubsub.listen():
        if message.get("type") != "message":
            continue
        try:
            data = json.loads(message["data"])
        except (TypeError, ValueError):
            logger.warning("Ignoring malformed message on %s", channel)
            continue
        await hub.broadcast(data)


async def relay_channel_to_hub(
    channel: str,
    hub: ConnectionHub,
    retry_delay: float = RELAY_RETRY_DELAY,
    max_retry_delay: float = RELAY_MAX_RETRY_DELAY,
) -> None:
    """Forward every message on `channel` to local subscribers until cancelled.

    A lost Redis connection is logged and the subscription is re-established
    with exponential backoff. Pushes published while disconnected are missed.
    Returns only if the channel subscription ends on its own.
    """
    delay = retry_delay
    try:
        while True:
            try:
                pubsub = await subscribe(channel)
            except RedisError as exc:
                logger.warning("Cannot subscribe to %s: %s; retrying in %.1fs", channel, exc, delay)
            else:
                logger.info("Relaying %s to local subscribers", channel)
                delay = retry_delay
                try:
                    await _forward(pubsub, channel, hub)
                    return
                except RedisError as exc:
                    logger.warning(
                        "Relay of %s lost Redis: %s; retrying in %.1fs", channel, exc, delay
                    )
                finally:
                    with contextlib.suppress(RedisError):
                        await pubsub.aclose()
            await asyncio.sleep(delay)
            delay = min(delay * 2, max_retry_delay)
    except asyncio.CancelledError:
        logger.info("Relay of %s stopped", channel)
        raise


def build_publisher(backend: str, hub: ConnectionHub, channel: str) -> Publisher:
    if backend == "redis":
        return RedisPublisher(channel)
    if backend == "local":
        return HubPublisher(hub)
    raise ValueError(f"Unknown broadcast backend: {backend}")
