from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import ClassVar

from hms_realtime.domain.value_objects.enums import EventKind


@dataclass(frozen=True, slots=True)
class UserStatusChanged:
    kind: ClassVar[EventKind] = EventKind.USER_STATUS_CHANGE

    user_id: str
    status: str
    timestamp: datetime | None


@dataclass(frozen=True, slots=True)
class UnreadCountsPushed:
    kind: ClassVar[EventKind] = EventKind.UNREAD_COUNTS

    messages: int
    notifications: int
