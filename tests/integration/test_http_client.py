"""REST adapters against an in-process stub backend (httpx.ASGITransport)."""
from __future__ import annotations

from typing import Any

import httpx
import pytest
import pytest_asyncio
from fastapi import FastAPI, Header, HTTPException, Request
from fastapi.responses import JSONResponse

from hms_realtime.application.dto.message import SendMessageDTO
from hms_realtime.application.dto.notification import CreateNotificationDTO
from hms_realtime.application.exceptions import (
    ApiError,
    AuthenticationError,
    ConnectivityError,
    MalformedResponseError,
    MutationError,
    NotFoundError,
)
from hms_realtime.domain.value_objects.enums import NotificationType
from hms_realtime.infrastructure.http.client import HttpChatApi, HttpNotificationApi
from tests.conftest import make_token

TOKEN = make_token()

_ANN = {"_id": "u1", "firstName": "Ann", "lastName": "Lee", "role": "doctor"}
_BOB = {"_id": "u2", "firstName": "Bob", "lastName": "Stone", "role": "receptionist"}


def _stub_backend() -> tuple[FastAPI, dict[str, Any]]:
    app = FastAPI()
    state: dict[str, Any] = {"sent": [], "patched": [], "deleted": [], "send_mode": "ok"}

    def _auth(authorization: str | None) -> None:
        if authorization != f"Bearer {TOKEN}":
            raise HTTPException(status_code=401, detail="Access denied")

    @app.exception_handler(HTTPException)
    async def _http_error(_req: Request, exc: HTTPException) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content={"message": exc.detail})

    @app.get("/api/chat/rooms")
    async def rooms(authorization: str | None = Header(None)):
        _auth(authorization)
        return {
            "rooms": [
                {
                    "_id": "oid-r1",
                    "roomId": "r1",
                    "type": "direct",
                    "participants": [_ANN, _BOB, "u-unpopulated"],
                    "lastMessage": {"content": "hi", "sender": "u2", "timestamp": "2024-05-01T09:00:00Z"},
                }
            ]
        }

    @app.get("/api/chat/rooms/{room_id}/messages")
    async def messages(room_id: str, page: int = 1, limit: int = 50, authorization: str | None = Header(None)):
        _auth(authorization)
        if room_id == "missing":
            raise HTTPException(status_code=404, detail="Chat room not found")
        if room_id == "broken":
            raise HTTPException(status_code=500, detail="Internal server error")
        return {
            "messages": [
                {
                    "_id": "oid-m1",
                    "messageId": "m1",
                    "roomId": "oid-r1",
                    "sender": _BOB,
                    "content": "hello",
                    "messageType": "text",
                    "readBy": [{"_id": "u1"}],
                    "deliveredTo": ["u1", "u2"],
                    "replyTo": "oid-m0",
                    "createdAt": "2024-05-01T09:00:00Z",
                }
            ],
            "pagination": {"page": page, "limit": limit, "total": 1, "pages": 1},
        }

    @app.post("/api/chat/rooms/{room_id}/messages")
    async def send(room_id: str, request: Request, authorization: str | None = Header(None)):
        _auth(authorization)
        body = await request.json()
        state["sent"].append(body)
        if state["send_mode"] == "reject":
            raise HTTPException(status_code=400, detail="Message content is required")
        if state["send_mode"] == "no-message":
            return {"success": True}
        return {
            "success": True,
            "message": {
                "_id": "oid-m2",
                "messageId": "m2",
                "roomId": "oid-r1",
                "sender": _ANN,
                "content": body["content"],
                "messageType": body["messageType"],
                "clientMsgId": body.get("clientMsgId"),
                "readBy": [],
                "deliveredTo": ["u1"],
            },
        }

    @app.patch("/api/chat/rooms/{room_id}/read")
    async def mark_read(room_id: str, authorization: str | None = Header(None)):
        _auth(authorization)
        state["patched"].append(room_id)
        return {"success": True}

    @app.get("/api/chat/online-users")
    async def online(authorization: str | None = Header(None)):
        _auth(authorization)
        return {"users": [{"userId": _BOB, "status": "online", "lastSeen": "2024-05-01T09:00:00Z"}]}

    @app.get("/api/notifications")
    async def notifications(authorization: str | None = Header(None)):
        _auth(authorization)
        return {
            "notifications": [
                {
                    "_id": "oid-n1",
                    "notificationId": "n1",
                    "type": "role",
                    "title": "Drill",
                    "message": "14:00",
                    "sender": _BOB,
                    "priority": "high",
                    "category": "alert",
                    "readBy": [{"user": "u1", "readAt": "2024-05-01T09:00:00Z"}],
                    "isRead": True,
                }
            ]
        }

    @app.get("/api/notifications/unread-count")
    async def unread(authorization: str | None = Header(None)):
        _auth(authorization)
        return {"count": 3}

    @app.post("/api/notifications")
    async def create(request: Request, authorization: str | None = Header(None)):
        _auth(authorization)
        body = await request.json()
        state["created"] = body
        return {"notification": {"notificationId": "n9", "title": body["title"], "message": body["message"]}}

    @app.delete("/api/notifications/{notification_id}")
    async def delete(notification_id: str, authorization: str | None = Header(None)):
        _auth(authorization)
        state["deleted"].append(notification_id)
        return {"success": True}

    @app.get("/api/notifications/groups")
    async def groups(authorization: str | None = Header(None)):
        _auth(authorization)
        return {"groups": [{"groupId": "g1"}]}

    return app, state


@pytest_asyncio.fixture
async def backend():
    app, state = _stub_backend()
    http = httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://hms.test")
    yield http, state
    await http.aclose()


@pytest.mark.asyncio
async def test_rooms_keep_only_populated_participants(backend):
    http, _ = backend
    api = HttpChatApi(http, lambda: TOKEN)

    [room] = await api.list_rooms()

    assert room.room_id == "r1"
    assert [p.id for p in room.participants] == ["u1", "u2"]
    assert room.last_message.sender_id == "u2"


@pytest.mark.asyncio
async def test_messages_are_keyed_by_public_room_id(backend):
    http, _ = backend
    api = HttpChatApi(http, lambda: TOKEN)

    page = await api.list_messages("r1", limit=20)

    [message] = page.messages
    assert message.room_id == "r1"
    assert message.read_by == frozenset({"u1"})
    assert message.delivered_to == frozenset({"u1", "u2"})
    assert message.reply_to.id == "oid-m0"
    assert page.limit == 20


@pytest.mark.asyncio
async def test_send_message_posts_client_id(backend):
    http, state = backend
    api = HttpChatApi(http, lambda: TOKEN)

    message = await api.send_message(SendMessageDTO(room_id="r1", temp_id="temp-1", body="hi"))

    assert state["sent"] == [{"content": "hi", "messageType": "text", "clientMsgId": "temp-1"}]
    assert message.message_id == "m2"
    assert message.client_msg_id == "temp-1"
    assert message.room_id == "r1"
    assert message.sender.id == "u1"


@pytest.mark.asyncio
async def test_send_rejection_is_mutation_error(backend):
    http, state = backend
    state["send_mode"] = "reject"
    api = HttpChatApi(http, lambda: TOKEN)

    with pytest.raises(MutationError) as info:
        await api.send_message(SendMessageDTO(room_id="r1", temp_id="temp-1", body=""))
    assert info.value.status_code == 400
    assert info.value.detail == "Message content is required"


@pytest.mark.asyncio
async def test_send_without_message_is_malformed(backend):
    http, state = backend
    state["send_mode"] = "no-message"
    api = HttpChatApi(http, lambda: TOKEN)

    with pytest.raises(MalformedResponseError):
        await api.send_message(SendMessageDTO(room_id="r1", temp_id="temp-1", body="hi"))


@pytest.mark.asyncio
async def test_status_codes_map_to_errors(backend):
    http, _ = backend

    with pytest.raises(AuthenticationError):
        await HttpChatApi(http, lambda: "bad-token").list_rooms()
    with pytest.raises(AuthenticationError):
        await HttpChatApi(http, lambda: None).list_rooms()

    api = HttpChatApi(http, lambda: TOKEN)
    with pytest.raises(NotFoundError):
        await api.list_messages("missing")
    with pytest.raises(ApiError) as info:
        await api.list_messages("broken")
    assert not isinstance(info.value, MutationError)
    assert info.value.status_code == 500


@pytest.mark.asyncio
async def test_transport_failure_is_connectivity_error():
    def refuse(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    async with httpx.AsyncClient(transport=httpx.MockTransport(refuse), base_url="http://hms.test") as http:
        with pytest.raises(ConnectivityError):
            await HttpChatApi(http, lambda: TOKEN).list_rooms()


@pytest.mark.asyncio
async def test_mark_read_and_online_users(backend):
    http, state = backend
    api = HttpChatApi(http, lambda: TOKEN)

    await api.mark_room_read("r1")
    [record] = await api.list_online_users()

    assert state["patched"] == ["r1"]
    assert record.user_id == "u2"
    assert record.status == "online"


@pytest.mark.asyncio
async def test_notification_endpoints(backend):
    http, state = backend
    api = HttpNotificationApi(http, lambda: TOKEN)

    [notification] = await api.list_notifications()
    assert notification.notification_id == "n1"
    assert notification.read_by == frozenset({"u1"})
    assert notification.sender.display_name == "Bob Stone"
    assert await api.unread_count() == 3

    created = await api.create_notification(
        CreateNotificationDTO(type=NotificationType.ROLE, title="Drill", message="14:00", role_targets=("doctor",))
    )
    assert created.notification_id == "n9"
    assert state["created"]["roleTargets"] == ["doctor"]
    assert "recipients" not in state["created"]

    await api.delete("n1")
    assert state["deleted"] == ["n1"]


@pytest.mark.asyncio
async def test_schema_mismatch_is_malformed(backend):
    http, _ = backend
    api = HttpNotificationApi(http, lambda: TOKEN)

    with pytest.raises(MalformedResponseError):
        await api.list_groups()
