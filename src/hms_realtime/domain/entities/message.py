from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from hms_realtime.domain.entities.user import UserSummary


@dataclass(frozen=True, slots=True)
class Attachment:
    filename: str
    url: str
    size: int
    type: str


@dataclass(frozen=True, slots=True)
class ReplyRef:
    id: str
    content: str
    sender_id: str | None = None


@dataclass(frozen=True, slots=True)
class Message:
    """A chat message as held in the client view.

    ``message_id`` is the server-assigned identity and is ``None`` only for
    optimistic entries, which carry a client ``temp_id`` instead.
    """

    id: str | None
    message_id: str | None
    room_id: str
    sender: UserSummary | None
    body: str
    kind: str
    attachments: tuple[Attachment, ...] = ()
    read_by: frozenset[str] = frozenset()
    delivered_to: frozenset[str] = frozenset()
    is_edited: bool = False
    edited_at: datetime | None = None
    reply_to: ReplyRef | None = None
    client_msg_id: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    temp_id: str | None = None
    pending: bool = False

    @property
    def sender_id(self) -> str | None:
        return self.sender.id if self.sender is not None else None
