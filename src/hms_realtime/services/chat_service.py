"""Chat session: wires the connection, dispatcher, store and room state."""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Coroutine, TypeVar

from hms_realtime.application.cache import (
    MESSAGEABLE_USERS_KEY,
    ONLINE_USERS_KEY,
    ROOMS_KEY,
    CacheKey,
    QueryCache,
)
from hms_realtime.application.dto.message import SendMessageDTO
from hms_realtime.application.dto.notice import Notice
from hms_realtime.application.dto.principal import Principal
from hms_realtime.application.exceptions import (
    AppError,
    AuthenticationError,
    MalformedResponseError,
    ValidationError,
)
from hms_realtime.application.policies.messaging import assert_can_message
from hms_realtime.application.ports.api import ChatApi
from hms_realtime.application.ports.clock import Clock, Scheduler, SystemClock
from hms_realtime.application.ports.notifier import Notifier
from hms_realtime.domain.entities.message import Attachment, Message
from hms_realtime.domain.entities.presence import PresenceRecord, UnreadCounts
from hms_realtime.domain.entities.room import Room
from hms_realtime.domain.entities.user import UserSummary
from hms_realtime.domain.events.chat import (
    MalformedPayload,
    MessageDelivered,
    MessageRead,
    NewMessagePushed,
    UserTyping,
)
from hms_realtime.domain.events.presence import UnreadCountsPushed, UserStatusChanged
from hms_realtime.domain.events.system import (
    NotificationPushed,
    NotificationUpdated,
    ServerError,
)
from hms_realtime.domain.value_objects.enums import (
    ConnectionState,
    EventKind,
    MessageKind,
    NoticeKind,
    PresenceStatus,
    ReceiptKind,
)
from hms_realtime.domain.value_objects.ids import new_temp_id
from hms_realtime.infrastructure.auth.token import decode_principal
from hms_realtime.infrastructure.ws.protocol import ClientEvent
from hms_realtime.services.chat_store import ChatStore
from hms_realtime.services.connection import TransportConnection
from hms_realtime.services.dispatcher import EventDispatcher
from hms_realtime.services.notification_service import NotificationCenter
from hms_realtime.services.room_session import RoomSession

logger = logging.getLogger(__name__)

T = TypeVar("T")

_PREVIEW_LENGTH = 50


def _preview(text: str) -> str:
    if len(text) > _PREVIEW_LENGTH:
        return f"{text[:_PREVIEW_LENGTH]}..."
    return text


class ChatSession:
    """One signed-in user's chat state.

    UI actions go out as an optimistic mutation plus a REST call; push events
    come back through the dispatcher. Both feed the same ``ChatStore``.
    """

    def __init__(
        self,
        connection: TransportConnection,
        api: ChatApi,
        cache: QueryCache,
        scheduler: Scheduler,
        notifier: Notifier,
        token_provider: Callable[[], str | None],
        *,
        notifications: NotificationCenter | None = None,
        page_size: int = 50,
        typing_timeout: float = 3.0,
        clock: Clock | None = None,
        temp_id_factory: Callable[[], str] | None = None,
    ) -> None:
        self._connection = connection
        self._api = api
        self._cache = cache
        self._notifier = notifier
        self._token_provider = token_provider
        self._notifications = notifications
        self._page_size = page_size
        self._clock = clock or SystemClock()
        self._temp_id_factory = temp_id_factory or new_temp_id

        self._store = ChatStore(cache)
        self._room = RoomSession(self._store, scheduler, typing_timeout=typing_timeout)
        self._tasks: set[asyncio.Task[Any]] = set()
        self._principal: tuple[str | None, Principal] | None = None

        self._dispatcher = EventDispatcher(
            {
                EventKind.NEW_MESSAGE: self._on_new_message,
                EventKind.USER_TYPING: self._on_user_typing,
                EventKind.MESSAGE_DELIVERED: self._on_message_delivered,
                EventKind.MESSAGE_READ: self._on_message_read,
                EventKind.USER_STATUS_CHANGE: self._on_status_change,
                EventKind.UNREAD_COUNTS: self._on_unread_counts,
                EventKind.ERROR: self._on_server_error,
                EventKind.NEW_NOTIFICATION: self._on_new_notification,
                EventKind.NOTIFICATION_UPDATED: self._on_notification_updated,
                EventKind.MALFORMED: self._on_malformed,
            }
        )
        connection.set_push_handler(self._dispatcher.dispatch_raw)
        connection.add_connected_listener(self._on_connected)

    # -- state -----------------------------------------------------------------

    @property
    def dispatcher(self) -> EventDispatcher:
        return self._dispatcher

    @property
    def store(self) -> ChatStore:
        return self._store

    @property
    def connection_state(self) -> ConnectionState:
        return self._connection.state

    @property
    def active_room_id(self) -> str | None:
        return self._room.active_room_id

    @property
    def messages(self) -> tuple[Message, ...]:
        room_id = self._room.active_room_id
        if room_id is None:
            return ()
        view = self._store.view(room_id)
        return view.entries if view is not None else ()

    @property
    def typing_users(self) -> frozenset[str]:
        return self._room.typing_users

    @property
    def online(self) -> dict[str, PresenceRecord]:
        return self._room.presence

    @property
    def unread_counts(self) -> UnreadCounts:
        return self._room.unread

    @property
    def principal(self) -> Principal:
        token = self._token_provider()
        if self._principal is None or self._principal[0] != token:
            self._principal = (token, decode_principal(token))
        return self._principal[1]

    def _self_id(self) -> str | None:
        try:
            return self.principal.user_id
        except AuthenticationError:
            return None

    # -- lifecycle -------------------------------------------------------------

    async def start(self) -> ConnectionState:
        state = await self._connection.connect()
        if state is ConnectionState.CONNECTED:
            await self.online_users()
        return state

    async def close(self) -> None:
        self._room.close()
        await self._connection.close()
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    async def connect(self) -> ConnectionState:
        return await self._connection.connect()

    async def disconnect(self) -> None:
        self._room.disarm_local_typing()
        await self._connection.close()

    def _spawn(self, coro: Coroutine[Any, Any, Any]) -> asyncio.Task[Any]:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _on_connected(self) -> None:
        room_id = self._room.active_room_id
        if room_id is not None:
            await self._connection.emit(ClientEvent.JOIN_ROOM, room_id)
            self._spawn(self.refetch_messages(room_id))

    # -- pulls -----------------------------------------------------------------

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
            self._notify_auth(exc)
        except AppError as exc:
            logger.warning("Failed to pull %s: %s", key, exc.detail)
        return self._cache.get(key, default)

    def _notify_auth(self, exc: AuthenticationError) -> None:
        self._notifier.notify(
            Notice(
                kind=NoticeKind.AUTH_ERROR,
                title="Authentication Error",
                description=exc.detail or "Please log in again to use chat features",
                destructive=True,
            )
        )

    async def rooms(self) -> list[Room]:
        return await self._pull(ROOMS_KEY, self._api.list_rooms, [])

    async def refresh_rooms(self) -> list[Room]:
        return await self._pull(ROOMS_KEY, self._api.list_rooms, [], force=True)

    async def messageable_users(self) -> list[UserSummary]:
        return await self._pull(MESSAGEABLE_USERS_KEY, self._api.list_messageable_users, [])

    async def online_users(self) -> dict[str, PresenceRecord]:
        records = await self._pull(ONLINE_USERS_KEY, self._api.list_online_users, [])
        # pushed status changes are newer than this snapshot
        self._room.seed_presence(records)
        return self._room.presence

    async def refetch_messages(self, room_id: str | None = None) -> bool:
        """Pull the first page for ``room_id``. Returns False if the result was discarded."""
        room_id = room_id or self._room.active_room_id
        if room_id is None:
            return False
        generation = self._room.generation
        try:
            page = await self._api.list_messages(room_id, page=1, limit=self._page_size)
        except AuthenticationError as exc:
            self._notify_auth(exc)
            return False
        except AppError as exc:
            logger.warning("Failed to load messages for %s: %s", room_id, exc.detail)
            return False
        if not self._room.is_current(room_id, generation):
            logger.debug("Discarding stale page for room %s", room_id)
            return False
        return self._store.replace_page(room_id, page.messages, self._self_id())

    # -- rooms -----------------------------------------------------------------

    async def open_direct_room(self, participant: UserSummary) -> Room:
        assert_can_message(self.principal, participant)
        room = await self._mutation(
            self._api.create_direct_room(participant.id),
            "Failed to create chat room",
        )
        self._cache.invalidate(ROOMS_KEY)
        await self.join_room(room.room_id)
        return room

    async def create_group_room(self, name: str, participant_ids: list[str]) -> Room:
        if not name.strip():
            raise ValidationError("Group name is required")
        if not participant_ids:
            raise ValidationError("A group needs at least one participant")
        room = await self._mutation(
            self._api.create_group_room(name.strip(), participant_ids),
            "Failed to create chat room",
        )
        self._cache.invalidate(ROOMS_KEY)
        return room

    async def join_room(self, room_id: str) -> None:
        previous = self._room.active_room_id
        changed = self._room.join(room_id)
        if changed and previous is not None:
            await self._connection.emit(ClientEvent.LEAVE_ROOM, previous)
        await self._connection.emit(ClientEvent.JOIN_ROOM, room_id)
        if not changed:
            return
        await self.refetch_messages(room_id)
        if self._room.is_current(room_id):
            await self.mark_read(room_id)

    async def leave_room(self) -> None:
        previous = self._room.leave()
        if previous is not None:
            await self._connection.emit(ClientEvent.LEAVE_ROOM, previous)

    # -- mutations -------------------------------------------------------------

    async def _mutation(self, call: Awaitable[T], failure: str) -> T:
        try:
            return await call
        except AuthenticationError as exc:
            self._notify_auth(exc)
            raise
        except AppError as exc:
            logger.warning("%s: %s", failure, exc.detail)
            self._notifier.notify(
                Notice(
                    kind=NoticeKind.MUTATION_FAILED,
                    title="Error",
                    description=exc.detail or failure,
                    destructive=True,
                )
            )
            raise

    async def send_message(
        self,
        body: str,
        kind: MessageKind = MessageKind.TEXT,
        reply_to: str | None = None,
        attachments: tuple[Attachment, ...] = (),
    ) -> Message:
        room_id = self._room.active_room_id
        if room_id is None:
            raise ValidationError("No active room")
        if not body.strip() and not attachments:
            raise ValidationError("Message is empty")

        principal = self.principal
        temp_id = self._temp_id_factory()
        optimistic = Message(
            id=None,
            message_id=None,
            room_id=room_id,
            sender=UserSummary(id=principal.user_id, role=principal.role),
            body=body,
            kind=kind,
            attachments=attachments,
            client_msg_id=temp_id,
            created_at=self._clock.now(),
        )
        self._store.apply_optimistic(optimistic, temp_id)
        await self.stop_typing()

        try:
            confirmed = await self._mutation(
                self._api.send_message(
                    SendMessageDTO(
                        room_id=room_id,
                        temp_id=temp_id,
                        body=body,
                        kind=kind,
                        reply_to=reply_to,
                        attachments=attachments,
                    )
                ),
                "Failed to send message",
            )
        except MalformedResponseError:
            self._store.discard_optimistic(room_id, temp_id)
            await self.refetch_messages(room_id)
            raise
        except AppError:
            self._store.discard_optimistic(room_id, temp_id)
            raise

        try:
            self._store.apply_confirmed(confirmed, temp_id, principal.user_id)
        except MalformedResponseError as exc:
            logger.warning("Send confirmation rejected: %s", exc.detail)
            self._store.discard_optimistic(room_id, temp_id)
            self._notifier.notify(
                Notice(
                    kind=NoticeKind.MUTATION_FAILED,
                    title="Error",
                    description="Message missing sender information",
                    destructive=True,
                )
            )
            await self.refetch_messages(room_id)
            raise
        return confirmed

    async def mark_read(self, room_id: str | None = None) -> None:
        room_id = room_id or self._room.active_room_id
        if room_id is None:
            return
        await self._connection.emit(ClientEvent.MARK_READ, {"roomId": room_id})
        try:
            await self._api.mark_room_read(room_id)
        except AuthenticationError as exc:
            self._notify_auth(exc)
            return
        except AppError as exc:
            logger.warning("Failed to mark room %s read: %s", room_id, exc.detail)
            self._notifier.notify(
                Notice(
                    kind=NoticeKind.MUTATION_FAILED,
                    title="Error",
                    description="Failed to mark messages as read",
                    destructive=True,
                )
            )
            return
        self._cache.invalidate(ROOMS_KEY)

    async def start_typing(self) -> None:
        room_id = self._room.active_room_id
        if room_id is None:
            return
        if self._room.arm_local_typing(lambda: self._spawn(self.stop_typing())):
            await self._connection.emit(ClientEvent.TYPING_START, {"roomId": room_id})

    async def stop_typing(self) -> None:
        room_id = self._room.active_room_id
        if self._room.disarm_local_typing() and room_id is not None:
            await self._connection.emit(ClientEvent.TYPING_STOP, {"roomId": room_id})

    async def update_status(self, status: str) -> None:
        status = PresenceStatus(status)
        await self._connection.emit(ClientEvent.STATUS_CHANGE, {"status": status.value})
        await self._mutation(self._api.update_status(status.value), "Failed to update status")

    # -- push handlers ---------------------------------------------------------

    def _on_new_message(self, event: NewMessagePushed) -> None:
        message = event.message
        self_id = self._self_id()
        if self._room.is_current(message.room_id):
            if message.sender_id is not None:
                self._room.set_typing(message.sender_id, message.room_id, False)
            try:
                self._store.apply_push(message, self_id)
            except MalformedResponseError as exc:
                logger.warning("Rejected pushed message: %s", exc.detail)
                self._spawn(self.refetch_messages(message.room_id))
            return

        self._cache.invalidate(ROOMS_KEY)
        if message.sender is not None and message.sender_id != self_id:
            self._notifier.notify(
                Notice(
                    kind=NoticeKind.NEW_MESSAGE,
                    title=message.sender.display_name,
                    description=_preview(message.body),
                )
            )

    def _on_user_typing(self, event: UserTyping) -> None:
        if event.user_id == self._self_id():
            return
        self._room.set_typing(event.user_id, event.room_id, event.is_typing)

    def _on_message_delivered(self, event: MessageDelivered) -> None:
        self_id = self._self_id()
        if self_id is None or not self._room.is_current(event.room_id):
            return
        self._store.apply_receipt(event.room_id, event.message_id, self_id, ReceiptKind.DELIVERED)

    def _on_message_read(self, event: MessageRead) -> None:
        if not self._room.is_current(event.room_id):
            return
        self._store.apply_receipt(event.room_id, event.message_id, event.read_by, ReceiptKind.READ)

    def _on_status_change(self, event: UserStatusChanged) -> None:
        self._room.update_presence(
            PresenceRecord(user_id=event.user_id, status=event.status, last_seen=event.timestamp)
        )

    def _on_unread_counts(self, event: UnreadCountsPushed) -> None:
        self._room.set_unread(
            UnreadCounts(messages=event.messages, notifications=event.notifications)
        )

    def _on_server_error(self, event: ServerError) -> None:
        self._notifier.notify(
            Notice(
                kind=NoticeKind.SERVER_ERROR,
                title="Chat Error",
                description=event.message,
                destructive=True,
            )
        )

    def _on_new_notification(self, event: NotificationPushed) -> None:
        if self._notifications is not None:
            self._notifications.on_pushed(event)

    def _on_notification_updated(self, event: NotificationUpdated) -> None:
        if self._notifications is not None:
            self._notifications.on_updated(event)

    def _on_malformed(self, event: MalformedPayload) -> None:
        if event.event != EventKind.NEW_MESSAGE:
            return
        if event.room_id is not None and self._room.is_current(event.room_id):
            self._spawn(self.refetch_messages(event.room_id))
        else:
            self._cache.invalidate(ROOMS_KEY)
