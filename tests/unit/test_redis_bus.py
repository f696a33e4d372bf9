from __future__ import annotations

import asyncio
from typing import Any

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from hms_realtime.infrastructure.bus.redis_pubsub import RedisPubSubPublisher, RedisPubSubSubscriber
from tests.conftest import settle


class FakePubSub:
    def __init__(self, broker: FakeRedis) -> None:
        self._broker = broker
        self.queue: asyncio.Queue[dict[str, Any]] = asyncio.Queue()
        self.channels: set[str] = set()
        self.closed = False

    async def subscribe(self, channel: str) -> None:
        self.channels.add(channel)
        self._broker.subscribers.append(self)
        await self.queue.put({"type": "subscribe", "channel": channel, "data": 1})

    async def unsubscribe(self, channel: str) -> None:
        self.channels.discard(channel)

    async def listen(self):
        while True:
            yield await self.queue.get()

    async def aclose(self) -> None:
        self.closed = True


class FakeRedis:
    def __init__(self) -> None:
        self.subscribers: list[FakePubSub] = []

    def pubsub(self) -> FakePubSub:
        return FakePubSub(self)

    async def publish(self, channel: str, message: str) -> int:
        receivers = [s for s in self.subscribers if channel in s.channels]
        for sub in receivers:
            await sub.queue.put({"type": "message", "channel": channel, "data": message})
        return len(receivers)


@pytest.mark.asyncio
async def test_published_events_reach_subscriber_callback():
    redis = FakeRedis()
    received: list[tuple[str, Any]] = []

    async def on_event(event, data):
        received.append((event, data))

    subscriber = RedisPubSubSubscriber(redis, "hms.notifications", on_event)
    await subscriber.start()
    await settle()

    await RedisPubSubPublisher(redis).publish("hms.notifications", "new_notification", {"title": "Drill"})
    await RedisPubSubPublisher(redis).publish("other", "new_notification", {"title": "Ignored"})
    await settle()

    assert received == [("new_notification", {"title": "Drill"})]
    await subscriber.stop()
    assert subscriber.running is False
    assert redis.subscribers[0].closed is True


@pytest.mark.asyncio
async def test_bad_envelope_does_not_stop_the_feed():
    redis = FakeRedis()
    received: list[str] = []

    async def on_event(event, data):
        received.append(event)

    subscriber = RedisPubSubSubscriber(redis, "hms.notifications", on_event)
    await subscriber.start()
    await settle()
    [pubsub] = redis.subscribers

    await pubsub.queue.put({"type": "message", "data": "{not json"})
    await RedisPubSubPublisher(redis).publish("hms.notifications", "notification_updated", {})
    await settle()

    assert received == ["notification_updated"]
    assert subscriber.running is True
    await subscriber.stop()


@pytest.mark.asyncio
async def test_feed_resubscribes_after_broker_drop():
    class FlakyRedis(FakeRedis):
        def __init__(self) -> None:
            super().__init__()
            self.attempts = 0

        def pubsub(self) -> FakePubSub:
            self.attempts += 1
            if self.attempts == 1:
                raise RedisConnectionError("Connection reset by peer")
            return super().pubsub()

    redis = FlakyRedis()
    received: list[str] = []

    async def on_event(event, data):
        received.append(event)

    subscriber = RedisPubSubSubscriber(redis, "hms.notifications", on_event, retry_delay=0)
    await subscriber.start()
    await settle()

    await RedisPubSubPublisher(redis).publish("hms.notifications", "new_notification", {})
    await settle()

    assert redis.attempts == 2
    assert received == ["new_notification"]
    await subscriber.stop()
