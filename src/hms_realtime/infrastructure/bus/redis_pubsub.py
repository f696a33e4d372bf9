"""Out-of-band notification feed over Redis Pub/Sub."""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Coroutine

import redis.asyncio as aioredis
from redis.exceptions import ConnectionError as RedisConnectionError

from hms_realtime.infrastructure.bus.serializer import deserialize_event, serialize_event

logger = logging.getLogger(__name__)

OnEventCallback = Callable[[str, Any], Coroutine[Any, Any, None]]


class RedisPubSubPublisher:
    """Used by tooling and tests to inject notification events."""

    def __init__(self, redis: aioredis.Redis) -> None:
        self._redis = redis

    async def publish(self, channel: str, event: str, data: Any) -> int:
        return await self._redis.publish(channel, serialize_event(event, data))


class RedisPubSubSubscriber:
    """Feeds ``{"event", "data"}`` envelopes from one channel to a callback.

    A lost broker connection is logged and the channel is subscribed again
    after ``retry_delay``; the feed only ends on :meth:`stop`.
    """

    def __init__(
        self,
        redis: aioredis.Redis,
        channel: str,
        callback: OnEventCallback,
        *,
        retry_delay: float = 5.0,
    ) -> None:
        self._redis = redis
        self._channel = channel
        self._callback = callback
        self._retry_delay = retry_delay
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._run(), name="notifications-pubsub")
        logger.info("Notification feed subscribed to channel=%s", self._channel)

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("Notification feed stopped")

    async def _run(self) -> None:
        while True:
            try:
                await self._consume()
            except RedisConnectionError as exc:
                logger.warning(
                    "Notification feed lost broker connection (%s), retrying in %.1fs",
                    exc,
                    self._retry_delay,
                )
                await asyncio.sleep(self._retry_delay)

    async def _consume(self) -> None:
        pubsub = self._redis.pubsub()
        await pubsub.subscribe(self._channel)
        try:
            async for message in pubsub.listen():
                if message["type"] != "message":
                    continue
                await self._deliver(message["data"])
        finally:
            await pubsub.aclose()

    async def _deliver(self, raw: str | bytes) -> None:
        try:
            event, data = deserialize_event(raw)
        except (ValueError, KeyError, TypeError):
            logger.warning("Dropping malformed notification envelope: %r", raw)
            return
        try:
            await self._callback(event, data)
        except Exception:
            logger.exception("Notification feed handler failed for %s", event)
