from __future__ import annotations

from dataclasses import dataclass

from hms_realtime.domain.entities.notification import NotificationAction
from hms_realtime.domain.value_objects.enums import (
    NotificationCategory,
    NotificationPriority,
    NotificationType,
)


@dataclass(frozen=True, slots=True)
class CreateNotificationDTO:
    type: NotificationType
    title: str
    message: str
    recipients: tuple[str, ...] = ()
    role_targets: tuple[str, ...] = ()
    group_targets: tuple[str, ...] = ()
    priority: NotificationPriority = NotificationPriority.MEDIUM
    category: NotificationCategory = NotificationCategory.GENERAL
    actions: tuple[NotificationAction, ...] = ()
    expires_at: str | None = None


@dataclass(frozen=True, slots=True)
class CreateGroupDTO:
    name: str
    members: tuple[str, ...]
    description: str | None = None
