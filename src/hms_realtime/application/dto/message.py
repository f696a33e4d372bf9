from __future__ import annotations

from dataclasses import dataclass, field

from hms_realtime.domain.entities.message import Attachment, Message
from hms_realtime.domain.value_objects.enums import MessageKind


@dataclass(frozen=True, slots=True)
class SendMessageDTO:
    room_id: str
    temp_id: str
    body: str
    kind: MessageKind = MessageKind.TEXT
    reply_to: str | None = None
    attachments: tuple[Attachment, ...] = ()


@dataclass(frozen=True, slots=True)
class MessagePage:
    room_id: str
    messages: list[Message] = field(default_factory=list)
    page: int = 1
    limit: int = 50
    total: int = 0
    pages: int = 0
