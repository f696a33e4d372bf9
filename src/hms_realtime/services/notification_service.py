"""Notification list, unread counter and groups, kept in sync by pulls.

Push and out-of-band events only invalidate; the data itself always comes
from the REST endpoints.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, TypeVar

from hms_realtime.application.cache import (
    GROUPS_KEY,
    NOTIFICATIONS_KEY,
    UNREAD_COUNT_KEY,
    CacheKey,
    QueryCache,
)
from hms_realtime.application.dto.notice import Notice
from hms_realtime.application.dto.notification import CreateGroupDTO, CreateNotificationDTO
from hms_realtime.application.exceptions import AppError, AuthenticationError
from hms_realtime.application.ports.api import NotificationApi
from hms_realtime.application.ports.clock import Scheduler
from hms_realtime.application.ports.notifier import Notifier
from hms_realtime.domain.entities.notification import Notification, NotificationGroup
from hms_realtime.domain.events.system import NotificationPushed, NotificationUpdated
from hms_realtime.domain.value_objects.enums import NoticeKind
from hms_realtime.infrastructure.ws.protocol import decode_event

logger = logging.getLogger(__name__)

T = TypeVar("T")

_LIST_KEYS = (NOTIFICATIONS_KEY, UNREAD_COUNT_KEY)


class NotificationCenter:
    def __init__(
        self,
        api: NotificationApi,
        cache: QueryCache,
        scheduler: Scheduler,
        notifier: Notifier,
        *,
        poll_interval: float = 30.0,
    ) -> None:
        self._api = api
        self._cache = cache
        self._scheduler = scheduler
        self._notifier = notifier
        self._poll_interval = poll_interval
        self._poller: asyncio.Task[None] | None = None

    @property
    def polling(self) -> bool:
        return self._poller is not None and not self._poller.done()

    async def start(self) -> None:
        if self.polling:
            return
        self._poller = asyncio.create_task(self._poll(), name="notifications-unread-poller")

    async def stop(self) -> None:
        task, self._poller = self._poller, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def _poll(self) -> None:
        while True:
            try:
                await self.refresh_unread_count()
            except Exception:
                logger.exception("Unread counter refresh failed")
            await self._scheduler.sleep(self._poll_interval)

    # -- pulls ---------------------------------------------------------------

    async def _pull(
        self,
        key: CacheKey,
        fetcher: Callable[[], Awaitable[T]],
        default: T,
        *,
        force: bool = False,
    ) -> T:
        try:
            return await self._cache.fetch(key, fetcher, force=force)
        except AuthenticationError as exc:
            self._notifier.notify(
                Notice(
                    kind=NoticeKind.AUTH_ERROR,
                    title="Authentication Error",
                    description=exc.detail or "Please log in again",
                    destructive=True,
                )
            )
        except AppError as exc:
            logger.warning("Failed to pull %s: %s", key, exc.detail)
        return self._cache.get(key, default)

    async def notifications(self) -> list[Notification]:
        return await self._pull(NOTIFICATIONS_KEY, self._api.list_notifications, [])

    async def unread_count(self) -> int:
        return await self._pull(UNREAD_COUNT_KEY, self._api.unread_count, 0)

    async def refresh_unread_count(self) -> int:
        return await self._pull(UNREAD_COUNT_KEY, self._api.unread_count, 0, force=True)

    async def groups(self) -> list[NotificationGroup]:
        return await self._pull(GROUPS_KEY, self._api.list_groups, [])

    # -- mutations -----------------------------------------------------------

    async def _mutate(
        self,
        call: Awaitable[T],
        keys: tuple[CacheKey, ...],
        *,
        failure: str,
        success: str | None = None,
    ) -> T:
        try:
            result = await call
        except AppError as exc:
            logger.warning("%s: %s", failure, exc.detail)
            self._notifier.notify(
                Notice(
                    kind=NoticeKind.MUTATION_FAILED,
                    title="Error",
                    description=failure,
                    destructive=True,
                )
            )
            raise
        for key in keys:
            self._cache.invalidate(key)
        if success:
            self._notifier.notify(Notice(kind=NoticeKind.SUCCESS, title="Success", description=success))
        return result

    async def mark_read(self, notification_id: str) -> None:
        await self._mutate(
            self._api.mark_read(notification_id),
            _LIST_KEYS,
            failure="Failed to mark notification as read",
        )

    async def mark_all_read(self) -> None:
        await self._mutate(
            self._api.mark_all_read(),
            _LIST_KEYS,
            failure="Failed to mark all notifications as read",
            success="All notifications marked as read",
        )

    async def delete(self, notification_id: str) -> None:
        await self._mutate(
            self._api.delete(notification_id),
            _LIST_KEYS,
            failure="Failed to delete notification",
            success="Notification deleted",
        )

    async def create(self, dto: CreateNotificationDTO) -> Notification | None:
        return await self._mutate(
            self._api.create_notification(dto),
            (NOTIFICATIONS_KEY,),
            failure="Failed to send notification",
            success="Notification sent successfully",
        )

    async def create_group(self, dto: CreateGroupDTO) -> NotificationGroup:
        return await self._mutate(
            self._api.create_group(dto),
            (GROUPS_KEY,),
            failure="Failed to create group",
            success="Group created successfully",
        )

    # -- events --------------------------------------------------------------

    def _invalidate_lists(self) -> None:
        for key in _LIST_KEYS:
            self._cache.invalidate(key)

    def on_pushed(self, event: NotificationPushed) -> None:
        self._invalidate_lists()
        self._notifier.notify(
            Notice(kind=NoticeKind.NEW_NOTIFICATION, title=event.title, description=event.body)
        )

    def on_updated(self, event: NotificationUpdated) -> None:
        logger.debug("Notification %s updated: %s", event.notification_id, event.update)
        self._invalidate_lists()

    async def handle_raw(self, event_name: str, data: Any) -> None:
        """Entry point for the out-of-band feed; only notification events are honoured."""
        event = decode_event(event_name, data)
        if isinstance(event, NotificationPushed):
            self.on_pushed(event)
        elif isinstance(event, NotificationUpdated):
            self.on_updated(event)
        else:
            logger.debug("Ignoring out-of-band event %s", event_name)
