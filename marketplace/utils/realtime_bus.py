import asyncio
import json
import logging
from collections import defaultdict
from typing import Any, Awaitable, Callable, Dict, Optional, Set

import redis.asyncio as redis

from marketplace.core.config import REDIS_URL

logger = logging.getLogger(__name__)

NOTIFICATIONS_CREATED = "notifications:created"


def change_channel(collection: str, scope: Optional[str] = None) -> str:
    if scope is None:
        return f"changes:{collection}"
    return f"changes:{collection}:{scope}"


async def _dispatch(channel: str, on_message: Callable[[str], Awaitable[None]], message: str) -> None:
    try:
        await on_message(message)
    except Exception:
        logger.exception("Handler for %s failed", channel)


class LocalBus:
    """In-process pub/sub used when no Redis is configured (single worker)."""

    def __init__(self) -> None:
        self._subscribers: Dict[str, Set["LocalBus._Sub"]] = defaultdict(set)

    class _Sub:

        def __init__(self, bus: "LocalBus", channel: str, on_message: Callable[[str], Awaitable[None]]) -> None:
            self._bus = bus
            self._channel = channel
            self._on_message = on_message
            self._queue: asyncio.Queue = asyncio.Queue()
            self._running = True

        def deliver(self, message: str) -> None:
            if self._running:
                self._queue.put_nowait(message)

        async def run(self):
            while self._running:
                message = await self._queue.get()
                if message is None:
                    break
                await _dispatch(self._channel, self._on_message, message)

        def close(self) -> None:
            self._running = False
            self._bus._discard(self._channel, self)
            self._queue.put_nowait(None)

        async def cancel(self):
            self.close()

    def _discard(self, channel: str, sub: "LocalBus._Sub") -> None:
        subs = self._subscribers.get(channel)
        if subs is None:
            return
        subs.discard(sub)
        if not subs:
            del self._subscribers[channel]

    async def publish(self, channel: str, message: str) -> None:
        for sub in list(self._subscribers.get(channel, ())):
            sub.deliver(message)

    async def subscribe(self, channel: str, on_message: Callable[[str], Awaitable[None]]):
        sub = LocalBus._Sub(self, channel, on_message)
        self._subscribers[channel].add(sub)
        return sub

    async def close(self) -> None:
        for subs in list(self._subscribers.values()):
            for sub in list(subs):
                sub.close()


class RedisBus:

    def __init__(self, url: str) -> None:
        self._redis = redis.from_url(url)

    async def publish(self, channel: str, message: str) -> None:
        await self._redis.publish(channel, message)

    async def subscribe(self, channel: str, on_message: Callable[[str], Awaitable[None]]):
        pubsub = self._redis.pubsub()
        await pubsub.subscribe(channel)

        class _Sub:
            _running = True

            async def run(self_inner):
                while self_inner._running:
                    try:
                        msg = await pubsub.get_message(ignore_subscribe_messages=True, timeout=1.0)
                    except redis.ConnectionError:
                        logger.warning("Redis subscription on %s lost its connection, retrying", channel)
                        await asyncio.sleep(0.5)
                        continue
                    if msg and msg.get("type") == "message":
                        data = msg.get("data")
                        if isinstance(data, bytes):
                            data = data.decode("utf-8")
                        await _dispatch(channel, on_message, data)

            async def cancel(self_inner):
                self_inner._running = False
                try:
                    await pubsub.unsubscribe(channel)
                    await pubsub.aclose()
                except redis.RedisError:
                    logger.debug("Redis unsubscribe from %s failed", channel, exc_info=True)

        return _Sub()

    async def close(self) -> None:
        await self._redis.aclose()


_bus = None


async def get_bus():
    global _bus
    if _bus is not None:
        return _bus
    if REDIS_URL:
        _bus = RedisBus(REDIS_URL)
    else:
        _bus = LocalBus()
    return _bus


async def close_bus() -> None:
    global _bus
    if _bus is not None:
        await _bus.close()
    _bus = None


async def publish_json(channel: str, payload: Dict[str, Any]) -> None:
    """Publish a payload; publish failures are logged, the write that triggered them stands."""
    bus = await get_bus()
    try:
        await bus.publish(channel, json.dumps(payload, default=str))
    except redis.RedisError:
        logger.warning("Failed to publish on %s", channel, exc_info=True)


async def notify_change(collection: str, scope: Optional[str] = None, doc_id: Optional[str] = None) -> None:
    """Announce that documents in `collection` (optionally under parent `scope`) changed."""
    payload = {"collection": collection, "scope": scope, "id": doc_id}
    await publish_json(change_channel(collection, scope), payload)
    if scope is not None:
        await publish_json(change_channel(collection), payload)
