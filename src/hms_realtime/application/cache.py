"""Keyed query cache with explicit invalidation.

Keys are tuples; ``invalidate`` matches by prefix, so ``("chat-messages",)``
marks every room's message entry stale at once.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Awaitable, Callable

from hms_realtime.application.ports.clock import Clock, SystemClock

logger = logging.getLogger(__name__)

CacheKey = tuple[str, ...]
CacheListener = Callable[[CacheKey, str], None]

ROOMS_KEY: CacheKey = ("chat-rooms",)
MESSAGES_PREFIX: CacheKey = ("chat-messages",)
MESSAGEABLE_USERS_KEY: CacheKey = ("messageable-users",)
ONLINE_USERS_KEY: CacheKey = ("online-users",)
NOTIFICATIONS_KEY: CacheKey = ("notifications",)
UNREAD_COUNT_KEY: CacheKey = ("notifications-unread-count",)
GROUPS_KEY: CacheKey = ("notification-groups",)


def messages_key(room_id: str) -> CacheKey:
    return (*MESSAGES_PREFIX, room_id)


@dataclass(slots=True)
class CacheEntry:
    data: Any
    updated_at: datetime
    stale: bool = False


class QueryCache:
    def __init__(self, clock: Clock | None = None, *, stale_time: float = 300.0) -> None:
        self._clock = clock or SystemClock()
        self._stale_time = stale_time
        self._entries: dict[CacheKey, CacheEntry] = {}
        self._versions: dict[CacheKey, int] = {}
        self._inflight: dict[CacheKey, asyncio.Task[Any]] = {}
        self._listeners: list[CacheListener] = []

    def subscribe(self, listener: CacheListener) -> Callable[[], None]:
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener)

    def _emit(self, key: CacheKey, change: str) -> None:
        for listener in list(self._listeners):
            try:
                listener(key, change)
            except Exception:
                logger.exception("Cache listener failed for %s", key)

    def get(self, key: CacheKey, default: Any = None) -> Any:
        entry = self._entries.get(key)
        return entry.data if entry is not None else default

    def entry(self, key: CacheKey) -> CacheEntry | None:
        return self._entries.get(key)

    def set_data(self, key: CacheKey, data: Any) -> None:
        self._entries[key] = CacheEntry(data=data, updated_at=self._clock.now())
        self._emit(key, "updated")

    def remove(self, key: CacheKey) -> None:
        self._versions[key] = self._versions.get(key, 0) + 1
        if self._entries.pop(key, None) is not None:
            self._emit(key, "removed")

    def invalidate(self, prefix: CacheKey) -> list[CacheKey]:
        """Mark every entry under ``prefix`` stale without refetching."""
        matched = [k for k in self._entries if k[: len(prefix)] == prefix]
        for key in self._inflight:
            if key[: len(prefix)] == prefix and key not in matched:
                matched.append(key)
        for key in matched:
            self._versions[key] = self._versions.get(key, 0) + 1
            entry = self._entries.get(key)
            if entry is not None:
                entry.stale = True
            self._emit(key, "invalidated")
        return matched

    def is_stale(self, key: CacheKey) -> bool:
        entry = self._entries.get(key)
        if entry is None or entry.stale:
            return True
        age = (self._clock.now() - entry.updated_at).total_seconds()
        return age >= self._stale_time

    async def fetch(
        self,
        key: CacheKey,
        fetcher: Callable[[], Awaitable[Any]],
        *,
        force: bool = False,
    ) -> Any:
        """Return fresh cached data, or pull it. Concurrent pulls for one key share a request."""
        if not force and not self.is_stale(key):
            return self._entries[key].data

        task = self._inflight.get(key)
        if task is None:
            task = asyncio.ensure_future(self._pull(key, fetcher, self._versions.get(key, 0)))
            self._inflight[key] = task

            def _done(t: asyncio.Task[Any], key: CacheKey = key) -> None:
                if self._inflight.get(key) is t:
                    del self._inflight[key]

            task.add_done_callback(_done)
        return await task

    async def _pull(
        self,
        key: CacheKey,
        fetcher: Callable[[], Awaitable[Any]],
        version: int,
    ) -> Any:
        data = await fetcher()
        self.set_data(key, data)
        if self._versions.get(key, 0) != version:
            # invalidated while the request was in flight
            self._entries[key].stale = True
        return data
