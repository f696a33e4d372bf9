from __future__ import annotations

from dataclasses import dataclass
from typing import Any, ClassVar

from hms_realtime.domain.value_objects.enums import EventKind


@dataclass(frozen=True, slots=True)
class ServerError:
    kind: ClassVar[EventKind] = EventKind.ERROR

    message: str


@dataclass(frozen=True, slots=True)
class NotificationPushed:
    kind: ClassVar[EventKind] = EventKind.NEW_NOTIFICATION

    notification_id: str | None
    title: str
    body: str
    priority: str | None = None


@dataclass(frozen=True, slots=True)
class NotificationUpdated:
    kind: ClassVar[EventKind] = EventKind.NOTIFICATION_UPDATED

    notification_id: str
    update: dict[str, Any]
