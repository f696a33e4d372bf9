from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from hms_realtime.domain.entities.user import UserSummary


@dataclass(frozen=True, slots=True)
class LastMessage:
    content: str
    sender_id: str | None
    timestamp: datetime | None


@dataclass(frozen=True, slots=True)
class Room:
    id: str
    room_id: str
    kind: str
    participants: tuple[UserSummary, ...]
    name: str | None
    last_message: LastMessage | None
    created_at: datetime | None
    updated_at: datetime | None
