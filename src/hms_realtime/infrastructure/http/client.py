"""REST adapters for the chat and notification endpoints."""
from __future__ import annotations

import logging
from typing import Any, Callable, TypeVar

import httpx
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from hms_realtime.application.dto.message import MessagePage, SendMessageDTO
from hms_realtime.application.dto.notification import CreateGroupDTO, CreateNotificationDTO
from hms_realtime.application.exceptions import (
    ApiError,
    AuthenticationError,
    ConnectivityError,
    MalformedResponseError,
    MutationError,
    NotFoundError,
)
from hms_realtime.domain.entities.message import Message
from hms_realtime.domain.entities.notification import Notification, NotificationGroup
from hms_realtime.domain.entities.presence import PresenceRecord
from hms_realtime.domain.entities.room import Room
from hms_realtime.domain.entities.user import UserSummary
from hms_realtime.infrastructure.http import mappers
from hms_realtime.infrastructure.http.schemas import (
    CountResponse,
    GroupResponse,
    GroupsResponse,
    MessagesResponse,
    NotificationResponse,
    NotificationsResponse,
    OnlineUsersResponse,
    RoomResponse,
    RoomsResponse,
    SendMessageResponse,
    UsersResponse,
)

logger = logging.getLogger(__name__)

SchemaT = TypeVar("SchemaT", bound=BaseModel)
TokenProvider = Callable[[], "str | None"]

_READ_METHODS = frozenset({"GET", "HEAD"})


class BackendClient:
    """Bearer-authenticated JSON requests with errors mapped to application exceptions."""

    def __init__(self, http: httpx.AsyncClient, token_provider: TokenProvider) -> None:
        self._http = http
        self._token_provider = token_provider

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        params: dict[str, Any] | None = None,
    ) -> httpx.Response:
        token = self._token_provider()
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        try:
            resp = await self._http.request(method, path, json=json, params=params, headers=headers)
        except httpx.TransportError as exc:
            raise ConnectivityError(f"{method} {path}: {exc}") from exc

        if resp.is_success:
            return resp

        detail = _error_detail(resp)
        logger.debug("%s %s -> %d %s", method, path, resp.status_code, detail)
        if resp.status_code in (401, 403):
            raise AuthenticationError(detail)
        if resp.status_code == 404:
            raise NotFoundError(detail)
        if method in _READ_METHODS:
            raise ApiError(detail, status_code=resp.status_code)
        raise MutationError(detail, status_code=resp.status_code)

    @staticmethod
    def _parse(resp: httpx.Response, schema: type[SchemaT]) -> SchemaT:
        try:
            return schema.model_validate_json(resp.content)
        except PydanticValidationError as exc:
            raise MalformedResponseError(f"{resp.request.url.path}: {exc}") from exc


def _error_detail(resp: httpx.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return resp.text or resp.reason_phrase
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    return resp.text or resp.reason_phrase


class HttpChatApi(BackendClient):
    async def list_rooms(self) -> list[Room]:
        resp = await self._request("GET", "/api/chat/rooms")
        return [mappers.room_to_entity(r) for r in self._parse(resp, RoomsResponse).rooms]

    async def create_direct_room(self, participant_id: str) -> Room:
        resp = await self._request("POST", "/api/chat/rooms/direct", json={"participantId": participant_id})
        return mappers.room_to_entity(self._parse(resp, RoomResponse).room)

    async def create_group_room(self, name: str, participant_ids: list[str]) -> Room:
        resp = await self._request(
            "POST",
            "/api/chat/rooms/group",
            json={"type": "group", "name": name, "participants": participant_ids},
        )
        return mappers.room_to_entity(self._parse(resp, RoomResponse).room)

    async def list_messages(self, room_id: str, *, page: int = 1, limit: int = 50) -> MessagePage:
        resp = await self._request(
            "GET",
            f"/api/chat/rooms/{room_id}/messages",
            params={"page": page, "limit": limit},
        )
        data = self._parse(resp, MessagesResponse)
        return MessagePage(
            room_id=room_id,
            messages=[mappers.message_to_entity(m, room_id=room_id) for m in data.messages],
            page=data.pagination.page,
            limit=data.pagination.limit,
            total=data.pagination.total,
            pages=data.pagination.pages,
        )

    async def send_message(self, dto: SendMessageDTO) -> Message:
        body: dict[str, Any] = {
            "content": dto.body,
            "messageType": dto.kind.value,
            "clientMsgId": dto.temp_id,
        }
        if dto.reply_to:
            body["replyTo"] = dto.reply_to
        if dto.attachments:
            body["attachments"] = [
                {"filename": a.filename, "url": a.url, "size": a.size, "type": a.type}
                for a in dto.attachments
            ]
        resp = await self._request("POST", f"/api/chat/rooms/{dto.room_id}/messages", json=body)
        data = self._parse(resp, SendMessageResponse)
        if not data.success or data.message is None:
            raise MalformedResponseError("Invalid response from server")
        return mappers.message_to_entity(data.message, room_id=dto.room_id)

    async def mark_room_read(self, room_id: str) -> None:
        await self._request("PATCH", f"/api/chat/rooms/{room_id}/read")

    async def update_status(self, status: str) -> None:
        await self._request("PATCH", "/api/chat/status", json={"status": status})

    async def list_messageable_users(self) -> list[UserSummary]:
        resp = await self._request("GET", "/api/chat/messageable-users")
        return [mappers.user_to_entity(u) for u in self._parse(resp, UsersResponse).users]

    async def list_online_users(self) -> list[PresenceRecord]:
        resp = await self._request("GET", "/api/chat/online-users")
        return [mappers.presence_to_entity(u) for u in self._parse(resp, OnlineUsersResponse).users]


class HttpNotificationApi(BackendClient):
    async def list_notifications(self) -> list[Notification]:
        resp = await self._request("GET", "/api/notifications")
        data = self._parse(resp, NotificationsResponse)
        return [mappers.notification_to_entity(n) for n in data.notifications]

    async def unread_count(self) -> int:
        resp = await self._request("GET", "/api/notifications/unread-count")
        return self._parse(resp, CountResponse).count

    async def list_groups(self) -> list[NotificationGroup]:
        resp = await self._request("GET", "/api/notifications/groups")
        return [mappers.group_to_entity(g) for g in self._parse(resp, GroupsResponse).groups]

    async def create_group(self, dto: CreateGroupDTO) -> NotificationGroup:
        resp = await self._request(
            "POST",
            "/api/notifications/groups",
            json={"name": dto.name, "description": dto.description, "members": list(dto.members)},
        )
        return mappers.group_to_entity(self._parse(resp, GroupResponse).group)

    async def create_notification(self, dto: CreateNotificationDTO) -> Notification | None:
        body: dict[str, Any] = {
            "type": dto.type.value,
            "title": dto.title,
            "message": dto.message,
            "priority": dto.priority.value,
            "category": dto.category.value,
        }
        if dto.recipients:
            body["recipients"] = list(dto.recipients)
        if dto.role_targets:
            body["roleTargets"] = list(dto.role_targets)
        if dto.group_targets:
            body["groupTargets"] = list(dto.group_targets)
        if dto.actions:
            body["actions"] = [
                {"label": a.label, "action": a.action, "url": a.url, "data": a.data}
                for a in dto.actions
            ]
        if dto.expires_at:
            body["expiresAt"] = dto.expires_at
        resp = await self._request("POST", "/api/notifications", json=body)
        created = self._parse(resp, NotificationResponse).notification
        return mappers.notification_to_entity(created) if created else None

    async def mark_read(self, notification_id: str) -> None:
        await self._request("PATCH", f"/api/notifications/{notification_id}/read")

    async def mark_all_read(self) -> None:
        await self._request("PATCH", "/api/notifications/read-all")

    async def delete(self, notification_id: str) -> None:
        await self._request("DELETE", f"/api/notifications/{notification_id}")
