"""Socket.IO event names and push payload models."""
from __future__ import annotations

import logging
from datetime import datetime
from enum import StrEnum
from typing import Any

from pydantic import Field
from pydantic import ValidationError as PydanticValidationError

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
from hms_realtime.domain.events.union import PushEvent
from hms_realtime.domain.value_objects.enums import EventKind
from hms_realtime.infrastructure.http.mappers import message_to_entity
from hms_realtime.infrastructure.http.schemas import (
    MessageSchema,
    NotificationSchema,
    RefId,
    WireModel,
)

logger = logging.getLogger(__name__)


class ClientEvent(StrEnum):
    """Client → Server."""

    JOIN_ROOM = "join_room"
    LEAVE_ROOM = "leave_room"
    MARK_READ = "mark_read"
    TYPING_START = "typing_start"
    TYPING_STOP = "typing_stop"
    STATUS_CHANGE = "status_change"


class TypingPayload(WireModel):
    user_id: RefId = Field(alias="userId")
    room_id: str = Field(alias="roomId")
    is_typing: bool = Field(alias="isTyping")


class DeliveredPayload(WireModel):
    message_id: str = Field(alias="messageId")
    room_id: str = Field(alias="roomId")


class ReadPayload(WireModel):
    message_id: str = Field(alias="messageId")
    room_id: str = Field(alias="roomId")
    read_by: RefId = Field(alias="readBy")


class StatusPayload(WireModel):
    user_id: RefId = Field(alias="userId")
    status: str
    timestamp: datetime | None = None


class UnreadCountsPayload(WireModel):
    messages: int = 0
    notifications: int = 0


class ErrorPayload(WireModel):
    message: str = "Unknown error"


class NotificationSummaryPayload(WireModel):
    """Flat shape broadcast by the socket server."""

    id: str | None = None
    title: str = ""
    message: str = ""
    priority: str | None = None


class NotificationEnvelopePayload(WireModel):
    """Shape sent when a notification is created over REST."""

    notification: NotificationSchema
    unread_count: int | None = Field(None, alias="unreadCount")


class NotificationUpdatedPayload(WireModel):
    notification_id: str = Field(alias="notificationId")
    update: dict[str, Any] = Field(default_factory=dict)


def _room_hint(payload: Any) -> str | None:
    if isinstance(payload, dict):
        room = payload.get("roomId")
        return room if isinstance(room, str) else None
    return None


def _decode_new_message(payload: Any) -> PushEvent:
    schema = MessageSchema.model_validate(payload)
    if schema.sender is None or schema.message_id is None or not schema.room_id:
        return MalformedPayload(
            event=EventKind.NEW_MESSAGE,
            room_id=schema.room_id,
            detail="new_message without resolved sender, messageId or roomId",
        )
    return NewMessagePushed(message=message_to_entity(schema))


def _decode_new_notification(payload: Any) -> PushEvent:
    if isinstance(payload, dict) and "notification" in payload:
        envelope = NotificationEnvelopePayload.model_validate(payload)
        n = envelope.notification
        return NotificationPushed(
            notification_id=n.notification_id,
            title=n.title,
            body=n.message,
            priority=n.priority,
        )
    flat = NotificationSummaryPayload.model_validate(payload)
    return NotificationPushed(
        notification_id=flat.id,
        title=flat.title,
        body=flat.message,
        priority=flat.priority,
    )


def _decode(kind: EventKind, payload: Any) -> PushEvent:
    if kind is EventKind.NEW_MESSAGE:
        return _decode_new_message(payload)
    if kind is EventKind.USER_TYPING:
        p = TypingPayload.model_validate(payload)
        return UserTyping(user_id=p.user_id, room_id=p.room_id, is_typing=p.is_typing)
    if kind is EventKind.MESSAGE_DELIVERED:
        p = DeliveredPayload.model_validate(payload)
        return MessageDelivered(message_id=p.message_id, room_id=p.room_id)
    if kind is EventKind.MESSAGE_READ:
        p = ReadPayload.model_validate(payload)
        return MessageRead(message_id=p.message_id, room_id=p.room_id, read_by=p.read_by)
    if kind is EventKind.USER_STATUS_CHANGE:
        p = StatusPayload.model_validate(payload)
        return UserStatusChanged(user_id=p.user_id, status=p.status, timestamp=p.timestamp)
    if kind is EventKind.UNREAD_COUNTS:
        p = UnreadCountsPayload.model_validate(payload)
        return UnreadCountsPushed(messages=p.messages, notifications=p.notifications)
    if kind is EventKind.ERROR:
        if isinstance(payload, str):
            return ServerError(message=payload)
        try:
            return ServerError(message=ErrorPayload.model_validate(payload or {}).message)
        except PydanticValidationError:
            detail = payload.get("message") if isinstance(payload, dict) else payload
            return ServerError(message=str(detail))
    if kind is EventKind.NEW_NOTIFICATION:
        return _decode_new_notification(payload)
    if kind is EventKind.NOTIFICATION_UPDATED:
        p = NotificationUpdatedPayload.model_validate(payload)
        return NotificationUpdated(notification_id=p.notification_id, update=p.update)
    raise ValueError(f"No decoder for {kind}")


def decode_event(name: str, payload: Any) -> PushEvent | None:
    """Map a raw ``(event, payload)`` pair to a push event.

    Unknown names give ``None``. Payloads that fail validation give a
    ``MalformedPayload`` so the caller can decide whether to refetch.
    """
    try:
        kind = EventKind(name)
    except ValueError:
        return None
    if kind is EventKind.MALFORMED:
        return None
    try:
        return _decode(kind, payload)
    except PydanticValidationError as exc:
        logger.warning("Malformed %s payload: %s", name, exc)
        return MalformedPayload(event=name, room_id=_room_hint(payload), detail=str(exc))
