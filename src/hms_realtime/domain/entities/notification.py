from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from hms_realtime.domain.entities.user import UserSummary


@dataclass(frozen=True, slots=True)
class NotificationAction:
    label: str
    action: str
    url: str | None = None
    data: Any = None


@dataclass(frozen=True, slots=True)
class Notification:
    id: str | None
    notification_id: str
    type: str
    category: str
    priority: str
    title: str
    body: str
    sender: UserSummary | None
    actions: tuple[NotificationAction, ...]
    read_by: frozenset[str]
    is_read: bool
    expires_at: datetime | None
    created_at: datetime | None
    updated_at: datetime | None


@dataclass(frozen=True, slots=True)
class NotificationGroup:
    id: str | None
    group_id: str
    name: str
    description: str | None
    members: tuple[UserSummary, ...]
    created_by: UserSummary | None
