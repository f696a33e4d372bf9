from __future__ import annotations

from hms_realtime.domain.entities.message import Attachment, Message, ReplyRef
from hms_realtime.domain.entities.notification import (
    Notification,
    NotificationAction,
    NotificationGroup,
)
from hms_realtime.domain.entities.presence import PresenceRecord
from hms_realtime.domain.entities.room import LastMessage, Room
from hms_realtime.domain.entities.user import UserSummary
from hms_realtime.infrastructure.http.schemas import (
    MessageSchema,
    NotificationGroupSchema,
    NotificationSchema,
    OnlineUserSchema,
    RoomSchema,
    UserSummarySchema,
)


def user_to_entity(schema: UserSummarySchema) -> UserSummary:
    return UserSummary(
        id=schema.id,
        first_name=schema.first_name,
        last_name=schema.last_name,
        role=schema.role,
        email=schema.email,
    )


def message_to_entity(schema: MessageSchema, *, room_id: str | None = None) -> Message:
    """``room_id`` overrides the payload value: REST pages carry the room's
    document id there, while the view is keyed by the public ``roomId``."""
    return Message(
        id=schema.id,
        message_id=schema.message_id,
        room_id=room_id or schema.room_id or "",
        sender=user_to_entity(schema.sender) if schema.sender else None,
        body=schema.content,
        kind=schema.message_type.value,
        attachments=tuple(
            Attachment(filename=a.filename, url=a.url, size=a.size, type=a.type)
            for a in schema.attachments
        ),
        read_by=frozenset(schema.read_by),
        delivered_to=frozenset(schema.delivered_to),
        is_edited=schema.is_edited,
        edited_at=schema.edited_at,
        reply_to=(
            ReplyRef(id=schema.reply_to.id, content=schema.reply_to.content, sender_id=schema.reply_to.sender)
            if schema.reply_to
            else None
        ),
        client_msg_id=schema.client_msg_id,
        created_at=schema.created_at,
        updated_at=schema.updated_at,
    )


def room_to_entity(schema: RoomSchema) -> Room:
    last = schema.last_message
    return Room(
        id=schema.id,
        room_id=schema.room_id,
        kind=schema.type,
        participants=tuple(user_to_entity(p) for p in schema.participants),
        name=schema.name,
        last_message=(
            LastMessage(content=last.content, sender_id=last.sender, timestamp=last.timestamp)
            if last
            else None
        ),
        created_at=schema.created_at,
        updated_at=schema.updated_at,
    )


def presence_to_entity(schema: OnlineUserSchema) -> PresenceRecord:
    return PresenceRecord(user_id=schema.user_id, status=schema.status, last_seen=schema.last_seen)


def notification_to_entity(schema: NotificationSchema) -> Notification:
    return Notification(
        id=schema.id,
        notification_id=schema.notification_id,
        type=schema.type,
        category=schema.category,
        priority=schema.priority,
        title=schema.title,
        body=schema.message,
        sender=user_to_entity(schema.sender) if schema.sender else None,
        actions=tuple(
            NotificationAction(label=a.label, action=a.action, url=a.url, data=a.data)
            for a in schema.actions
        ),
        read_by=frozenset(schema.read_by),
        is_read=schema.is_read,
        expires_at=schema.expires_at,
        created_at=schema.created_at,
        updated_at=schema.updated_at,
    )


def group_to_entity(schema: NotificationGroupSchema) -> NotificationGroup:
    return NotificationGroup(
        id=schema.id,
        group_id=schema.group_id,
        name=schema.name,
        description=schema.description,
        members=tuple(user_to_entity(m) for m in schema.members),
        created_by=user_to_entity(schema.created_by) if schema.created_by else None,
    )
