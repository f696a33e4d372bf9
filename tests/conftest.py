"""Shared test fixtures."""
from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Callable

import jwt
import pytest

from hms_realtime.application.cache import QueryCache
from hms_realtime.application.dto.message import MessagePage, SendMessageDTO
from hms_realtime.application.dto.notice import Notice
from hms_realtime.application.dto.notification import CreateGroupDTO, CreateNotificationDTO
from hms_realtime.domain.entities.message import Message
from hms_realtime.domain.entities.notification import Notification, NotificationGroup
from hms_realtime.domain.entities.presence import PresenceRecord
from hms_realtime.domain.entities.room import Room
from hms_realtime.domain.entities.user import UserSummary
from hms_realtime.domain.value_objects.enums import MessageKind, NoticeKind, RoomKind
from hms_realtime.services.chat_service import ChatSession
from hms_realtime.services.connection import TransportConnection
from hms_realtime.services.notification_service import NotificationCenter

ANN = UserSummary(id="u1", first_name="Ann", last_name="Lee", role="doctor")
BOB = UserSummary(id="u2", first_name="Bob", last_name="Stone", role="receptionist")

_BASE_TIME = datetime(2024, 5, 1, 9, 0, tzinfo=timezone.utc)


def make_token(
    user_id: str = "u1",
    role: str = "doctor",
    *,
    expires_in: float | None = 3600,
) -> str:
    claims: dict[str, Any] = {"id": user_id, "role": role, "hospitalId": "h1"}
    if expires_in is not None:
        claims["exp"] = int(time.time() + expires_in)
    return jwt.encode(claims, "test-secret", algorithm="HS256")


def make_message(
    *,
    room_id: str = "r1",
    message_id: str | None = "m1",
    sender: UserSummary | None = ANN,
    body: str = "hello",
    kind: str = MessageKind.TEXT,
    client_msg_id: str | None = None,
    seconds: int = 0,
    read_by: frozenset[str] = frozenset(),
) -> Message:
    return Message(
        id=f"oid-{message_id}" if message_id else None,
        message_id=message_id,
        room_id=room_id,
        sender=sender,
        body=body,
        kind=kind,
        read_by=read_by,
        client_msg_id=client_msg_id,
        created_at=_BASE_TIME + timedelta(seconds=seconds),
    )


def make_room(room_id: str = "r1", *participants: UserSummary) -> Room:
    return Room(
        id=f"oid-{room_id}",
        room_id=room_id,
        kind=RoomKind.DIRECT,
        participants=participants or (ANN, BOB),
        name=None,
        last_message=None,
        created_at=_BASE_TIME,
        updated_at=_BASE_TIME,
    )


def make_notification(notification_id: str = "n1", title: str = "Shift change") -> Notification:
    return Notification(
        id=f"oid-{notification_id}",
        notification_id=notification_id,
        type="individual",
        category="general",
        priority="medium",
        title=title,
        body="Ward B at 14:00",
        sender=BOB,
        actions=(),
        read_by=frozenset(),
        is_read=False,
        expires_at=None,
        created_at=_BASE_TIME,
        updated_at=_BASE_TIME,
    )


class FakeClock:
    def __init__(self, now: datetime | None = None) -> None:
        self.current = now or _BASE_TIME

    def now(self) -> datetime:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += timedelta(seconds=seconds)


class FakeTimer:
    def __init__(self, when: float, callback: Callable[[], None]) -> None:
        self.when = when
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class FakeScheduler:
    """Virtual time. ``sleep`` returns at once unless ``auto_sleep`` is off,
    in which case sleepers wait for ``advance``."""

    def __init__(self, *, auto_sleep: bool = True) -> None:
        self.auto_sleep = auto_sleep
        self.now = 0.0
        self.sleeps: list[float] = []
        self._timers: list[FakeTimer] = []
        self._sleepers: list[tuple[float, asyncio.Future[None]]] = []

    def call_later(self, delay: float, callback: Callable[[], None]) -> FakeTimer:
        timer = FakeTimer(self.now + delay, callback)
        self._timers.append(timer)
        return timer

    async def sleep(self, delay: float) -> None:
        self.sleeps.append(delay)
        if self.auto_sleep:
            self.now += delay
            await asyncio.sleep(0)
            return
        waiter = asyncio.get_running_loop().create_future()
        self._sleepers.append((self.now + delay, waiter))
        await waiter

    @property
    def pending_timers(self) -> list[FakeTimer]:
        return [t for t in self._timers if not t.cancelled]

    def advance(self, seconds: float) -> None:
        self.now += seconds
        due = sorted(
            (t for t in self._timers if not t.cancelled and t.when <= self.now),
            key=lambda t: t.when,
        )
        for timer in due:
            self._timers.remove(timer)
            timer.callback()
        waking = [(w, f) for w, f in self._sleepers if w <= self.now]
        for entry in waking:
            self._sleepers.remove(entry)
            if not entry[1].done():
                entry[1].set_result(None)


class FakeSocket:
    """In-memory RealtimeSocket. ``connect_results`` are consumed per attempt;
    ``fail_with`` applies to every attempt once the list is exhausted."""

    def __init__(self) -> None:
        self.connected = False
        self.connect_results: list[Exception | None] = []
        self.fail_with: Exception | None = None
        self.tokens: list[str] = []
        self.emitted: list[tuple[str, Any]] = []
        self.disconnects = 0
        self._on_push = None
        self._on_disconnect = None

    @property
    def connect_calls(self) -> int:
        return len(self.tokens)

    def set_handlers(self, on_push, on_disconnect) -> None:
        self._on_push = on_push
        self._on_disconnect = on_disconnect

    async def connect(self, token: str, timeout: float) -> None:
        self.tokens.append(token)
        if self.connect_results:
            result = self.connect_results.pop(0)
            if result is not None:
                raise result
        elif self.fail_with is not None:
            raise self.fail_with
        self.connected = True

    async def disconnect(self) -> None:
        self.disconnects += 1
        self.connected = False

    async def emit(self, event: str, data: Any = None) -> None:
        self.emitted.append((event, data))

    def emitted_names(self) -> list[str]:
        return [name for name, _ in self.emitted]

    async def push(self, event: str, payload: Any) -> None:
        await self._on_push(event, payload)

    async def drop(self, reason: str = "transport close") -> None:
        self.connected = False
        await self._on_disconnect(reason)


class RecordingNotifier:
    def __init__(self) -> None:
        self.notices: list[Notice] = []

    def notify(self, notice: Notice) -> None:
        self.notices.append(notice)

    def of_kind(self, kind: NoticeKind) -> list[Notice]:
        return [n for n in self.notices if n.kind == kind]


@dataclass
class FakeChatApi:
    rooms: list[Room] = field(default_factory=list)
    pages: dict[str, list[Message]] = field(default_factory=dict)
    users: list[UserSummary] = field(default_factory=list)
    online: list[PresenceRecord] = field(default_factory=list)
    sent: list[SendMessageDTO] = field(default_factory=list)
    read_marks: list[str] = field(default_factory=list)
    statuses: list[str] = field(default_factory=list)
    list_calls: list[str] = field(default_factory=list)
    list_gates: dict[str, asyncio.Event] = field(default_factory=dict)
    direct_rooms: list[str] = field(default_factory=list)
    send_gate: asyncio.Event | None = None
    send_error: Exception | None = None
    list_error: Exception | None = None
    send_without_sender: bool = False
    sender: UserSummary = ANN
    _next_id: int = 0

    async def list_rooms(self) -> list[Room]:
        return list(self.rooms)

    async def create_direct_room(self, participant_id: str) -> Room:
        self.direct_rooms.append(participant_id)
        room = make_room(f"direct-{participant_id}")
        self.rooms.append(room)
        return room

    async def create_group_room(self, name: str, participant_ids: list[str]) -> Room:
        room = make_room(f"group-{name}")
        self.rooms.append(room)
        return room

    async def list_messages(self, room_id: str, *, page: int = 1, limit: int = 50) -> MessagePage:
        self.list_calls.append(room_id)
        gate = self.list_gates.get(room_id)
        if gate is not None:
            await gate.wait()
        if self.list_error is not None:
            raise self.list_error
        messages = list(self.pages.get(room_id, []))
        return MessagePage(room_id=room_id, messages=messages, page=page, limit=limit, total=len(messages), pages=1)

    async def send_message(self, dto: SendMessageDTO) -> Message:
        self.sent.append(dto)
        if self.send_gate is not None:
            await self.send_gate.wait()
        if self.send_error is not None:
            raise self.send_error
        self._next_id += 1
        return make_message(
            room_id=dto.room_id,
            message_id=f"m{self._next_id}",
            sender=None if self.send_without_sender else self.sender,
            body=dto.body,
            kind=dto.kind,
            client_msg_id=dto.temp_id,
            seconds=self._next_id,
        )

    async def mark_room_read(self, room_id: str) -> None:
        self.read_marks.append(room_id)

    async def update_status(self, status: str) -> None:
        self.statuses.append(status)

    async def list_messageable_users(self) -> list[UserSummary]:
        return list(self.users)

    async def list_online_users(self) -> list[PresenceRecord]:
        return list(self.online)


@dataclass
class FakeNotificationApi:
    items: list[Notification] = field(default_factory=list)
    count: int = 0
    group_list: list[NotificationGroup] = field(default_factory=list)
    calls: list[str] = field(default_factory=list)
    error: Exception | None = None

    async def list_notifications(self) -> list[Notification]:
        self.calls.append("list")
        return list(self.items)

    async def unread_count(self) -> int:
        self.calls.append("count")
        return self.count

    async def list_groups(self) -> list[NotificationGroup]:
        self.calls.append("groups")
        return list(self.group_list)

    async def create_group(self, dto: CreateGroupDTO) -> NotificationGroup:
        self.calls.append("create_group")
        if self.error is not None:
            raise self.error
        group = NotificationGroup(
            id=None, group_id="g1", name=dto.name, description=dto.description,
            members=(), created_by=None,
        )
        self.group_list.append(group)
        return group

    async def create_notification(self, dto: CreateNotificationDTO) -> Notification | None:
        self.calls.append("create")
        if self.error is not None:
            raise self.error
        return make_notification("n-new", dto.title)

    async def mark_read(self, notification_id: str) -> None:
        self.calls.append(f"read:{notification_id}")
        if self.error is not None:
            raise self.error

    async def mark_all_read(self) -> None:
        self.calls.append("read-all")
        if self.error is not None:
            raise self.error

    async def delete(self, notification_id: str) -> None:
        self.calls.append(f"delete:{notification_id}")
        if self.error is not None:
            raise self.error


@dataclass
class Harness:
    session: ChatSession
    connection: TransportConnection
    socket: FakeSocket
    api: FakeChatApi
    notification_api: FakeNotificationApi
    notifications: NotificationCenter
    scheduler: FakeScheduler
    notifier: RecordingNotifier
    cache: QueryCache
    token: dict[str, str | None]


def build_harness(*, token: str | None = None, scheduler: FakeScheduler | None = None) -> Harness:
    socket = FakeSocket()
    scheduler = scheduler or FakeScheduler()
    notifier = RecordingNotifier()
    clock = FakeClock()
    cache = QueryCache(clock)
    api = FakeChatApi()
    notification_api = FakeNotificationApi()
    holder: dict[str, str | None] = {"token": token or make_token()}

    def provider() -> str | None:
        return holder["token"]

    connection = TransportConnection(
        socket, provider, scheduler, notifier,
        reconnect_attempts=5, reconnect_delay=1.0, handshake_timeout=20.0,
    )
    notifications = NotificationCenter(notification_api, cache, scheduler, notifier)
    counter = iter(range(1, 10_000))
    session = ChatSession(
        connection, api, cache, scheduler, notifier, provider,
        notifications=notifications,
        clock=clock,
        temp_id_factory=lambda: f"temp-{next(counter)}",
    )
    return Harness(
        session=session,
        connection=connection,
        socket=socket,
        api=api,
        notification_api=notification_api,
        notifications=notifications,
        scheduler=scheduler,
        notifier=notifier,
        cache=cache,
        token=holder,
    )


@pytest.fixture
def harness() -> Harness:
    return build_harness()


async def settle() -> None:
    """Let spawned follow-up tasks run."""
    for _ in range(10):
        await asyncio.sleep(0)
