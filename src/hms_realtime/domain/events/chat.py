from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar

from hms_realtime.domain.entities.message import Message
from hms_realtime.domain.value_objects.enums import EventKind


@dataclass(frozen=True, slots=True)
class NewMessagePushed:
    kind: ClassVar[EventKind] = EventKind.NEW_MESSAGE

    message: Message


@dataclass(frozen=True, slots=True)
class UserTyping:
    kind: ClassVar[EventKind] = EventKind.USER_TYPING

    user_id: str
    room_id: str
    is_typing: bool


@dataclass(frozen=True, slots=True)
class MessageDelivered:
    kind: ClassVar[EventKind] = EventKind.MESSAGE_DELIVERED

    message_id: str
    room_id: str


@dataclass(frozen=True, slots=True)
class MessageRead:
    kind: ClassVar[EventKind] = EventKind.MESSAGE_READ

    message_id: str
    room_id: str
    read_by: str


@dataclass(frozen=True, slots=True)
class MalformedPayload:
    """A push payload that failed validation; ``room_id`` is best-effort."""

    kind: ClassVar[EventKind] = EventKind.MALFORMED

    event: str
    room_id: str | None
    detail: str
