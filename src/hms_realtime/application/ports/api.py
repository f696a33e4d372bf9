from __future__ import annotations

from typing import Protocol

from hms_realtime.application.dto.message import MessagePage, SendMessageDTO
from hms_realtime.application.dto.notification import CreateGroupDTO, CreateNotificationDTO
from hms_realtime.domain.entities.message import Message
from hms_realtime.domain.entities.notification import Notification, NotificationGroup
from hms_realtime.domain.entities.presence import PresenceRecord
from hms_realtime.domain.entities.room import Room
from hms_realtime.domain.entities.user import UserSummary


class ChatApi(Protocol):
    async def list_rooms(self) -> list[Room]: ...

    async def create_direct_room(self, participant_id: str) -> Room: ...

    async def create_group_room(self, name: str, participant_ids: list[str]) -> Room: ...

    async def list_messages(self, room_id: str, *, page: int = 1, limit: int = 50) -> MessagePage: ...

    async def send_message(self, dto: SendMessageDTO) -> Message:
        """Return the created message. ``sender`` may be ``None`` if the server failed to resolve it."""
        ...

    async def mark_room_read(self, room_id: str) -> None: ...

    async def update_status(self, status: str) -> None: ...

    async def list_messageable_users(self) -> list[UserSummary]: ...

    async def list_online_users(self) -> list[PresenceRecord]: ...


class NotificationApi(Protocol):
    async def list_notifications(self) -> list[Notification]: ...

    async def unread_count(self) -> int: ...

    async def list_groups(self) -> list[NotificationGroup]: ...

    async def create_group(self, dto: CreateGroupDTO) -> NotificationGroup: ...

    async def create_notification(self, dto: CreateNotificationDTO) -> Notification | None: ...

    async def mark_read(self, notification_id: str) -> None: ...

    async def mark_all_read(self) -> None: ...

    async def delete(self, notification_id: str) -> None: ...
