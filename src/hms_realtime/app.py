from __future__ import annotations

import logging
from typing import Callable

import httpx
import redis.asyncio as aioredis

from hms_realtime.application.cache import QueryCache
from hms_realtime.application.ports.clock import AsyncioScheduler, Scheduler, SystemClock
from hms_realtime.application.ports.notifier import LoggingNotifier, Notifier
from hms_realtime.application.ports.transport import RealtimeSocket
from hms_realtime.config import Settings, settings
from hms_realtime.infrastructure.bus.redis_pubsub import RedisPubSubSubscriber
from hms_realtime.infrastructure.http.client import HttpChatApi, HttpNotificationApi
from hms_realtime.infrastructure.ws.socketio_client import SocketIOClient
from hms_realtime.services.chat_service import ChatSession
from hms_realtime.services.connection import TransportConnection
from hms_realtime.services.notification_service import NotificationCenter

logger = logging.getLogger(__name__)


class RealtimeClient:
    """Owns the session's long-lived resources and their start/stop order."""

    def __init__(
        self,
        chat: ChatSession,
        notifications: NotificationCenter,
        http: httpx.AsyncClient,
        *,
        redis: aioredis.Redis | None = None,
        subscriber: RedisPubSubSubscriber | None = None,
    ) -> None:
        self.chat = chat
        self.notifications = notifications
        self._http = http
        self._redis = redis
        self._subscriber = subscriber

    async def start(self) -> None:
        await self.notifications.start()
        if self._subscriber is not None:
            await self._subscriber.start()
        state = await self.chat.start()
        logger.info("Realtime client started (connection=%s)", state)

    async def close(self) -> None:
        await self.chat.close()
        await self.notifications.stop()
        if self._subscriber is not None:
            await self._subscriber.stop()
        if self._redis is not None:
            await self._redis.aclose()
            logger.info("Redis connection pool closed")
        await self._http.aclose()

    async def __aenter__(self) -> RealtimeClient:
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()


def create_session(
    config: Settings = settings,
    *,
    token_provider: Callable[[], str | None] | None = None,
    notifier: Notifier | None = None,
    socket: RealtimeSocket | None = None,
    http: httpx.AsyncClient | None = None,
    scheduler: Scheduler | None = None,
) -> RealtimeClient:
    token_provider = token_provider or (lambda: config.API_TOKEN)
    notifier = notifier or LoggingNotifier()
    scheduler = scheduler or AsyncioScheduler()
    clock = SystemClock()
    http = http or httpx.AsyncClient(base_url=config.API_URL, timeout=config.HTTP_TIMEOUT)
    socket = socket or SocketIOClient(
        config.socket_url,
        path=config.SOCKET_PATH,
        transports=config.SOCKET_TRANSPORTS,
    )

    cache = QueryCache(clock, stale_time=config.CACHE_STALE_SECONDS)
    notifications = NotificationCenter(
        HttpNotificationApi(http, token_provider),
        cache,
        scheduler,
        notifier,
        poll_interval=config.NOTIFICATION_POLL_INTERVAL,
    )
    connection = TransportConnection(
        socket,
        token_provider,
        scheduler,
        notifier,
        reconnect_attempts=config.RECONNECT_ATTEMPTS,
        reconnect_delay=config.RECONNECT_DELAY,
        handshake_timeout=config.HANDSHAKE_TIMEOUT,
        clock=clock,
    )
    chat = ChatSession(
        connection,
        HttpChatApi(http, token_provider),
        cache,
        scheduler,
        notifier,
        token_provider,
        notifications=notifications,
        page_size=config.MESSAGE_PAGE_SIZE,
        typing_timeout=config.TYPING_TIMEOUT,
        clock=clock,
    )

    redis = None
    subscriber = None
    if config.REDIS_URL:
        redis = aioredis.from_url(config.REDIS_URL, decode_responses=True)
        subscriber = RedisPubSubSubscriber(
            redis,
            config.NOTIFICATIONS_CHANNEL,
            notifications.handle_raw,
        )
    return RealtimeClient(chat, notifications, http, redis=redis, subscriber=subscriber)
