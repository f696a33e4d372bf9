"""Wire models for backend JSON (camelCase, Mongo-style ``_id``)."""
from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, field_validator

from hms_realtime.domain.value_objects.enums import MessageKind


class WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


def _ref_id(value: Any) -> Any:
    """A reference is either an id string or a populated document."""
    if isinstance(value, dict):
        return value.get("_id") or value.get("id") or _ref_id(value.get("user"))
    return value


class UserSummarySchema(WireModel):
    id: str = Field(alias="_id")
    first_name: str = Field("", alias="firstName")
    last_name: str = Field("", alias="lastName")
    role: str | None = None
    email: str | None = None


def _populated_user(value: Any) -> Any:
    # an unpopulated reference (bare id) does not count as a resolved user
    if isinstance(value, dict):
        return value
    return None


RefId = Annotated[str, BeforeValidator(_ref_id)]
OptionalRefId = Annotated[str | None, BeforeValidator(_ref_id)]
PopulatedUser = Annotated[UserSummarySchema | None, BeforeValidator(_populated_user)]


class AttachmentSchema(WireModel):
    filename: str
    url: str
    size: int
    type: str


class ReplyToSchema(WireModel):
    id: str = Field(alias="_id")
    content: str = ""
    sender: OptionalRefId = None


class MessageSchema(WireModel):
    id: str | None = Field(None, alias="_id")
    message_id: str | None = Field(None, alias="messageId")
    room_id: OptionalRefId = Field(None, alias="roomId")
    sender: PopulatedUser = None
    content: str = ""
    message_type: MessageKind = Field(MessageKind.TEXT, alias="messageType")
    attachments: list[AttachmentSchema] = Field(default_factory=list)
    read_by: list[str] = Field(default_factory=list, alias="readBy")
    delivered_to: list[str] = Field(default_factory=list, alias="deliveredTo")
    is_edited: bool = Field(False, alias="isEdited")
    edited_at: datetime | None = Field(None, alias="editedAt")
    reply_to: ReplyToSchema | None = Field(None, alias="replyTo")
    client_msg_id: str | None = Field(None, alias="clientMsgId")
    created_at: datetime | None = Field(None, alias="createdAt")
    updated_at: datetime | None = Field(None, alias="updatedAt")

    @field_validator("read_by", "delivered_to", mode="before")
    @classmethod
    def _ids(cls, value: Any) -> Any:
        if value is None:
            return []
        return [_ref_id(v) for v in value]

    @field_validator("reply_to", mode="before")
    @classmethod
    def _reply(cls, value: Any) -> Any:
        if isinstance(value, str):
            return {"_id": value}
        return value


class LastMessageSchema(WireModel):
    content: str = ""
    sender: OptionalRefId = None
    timestamp: datetime | None = None


class RoomSchema(WireModel):
    id: str = Field(alias="_id")
    room_id: str = Field(alias="roomId")
    type: str
    name: str | None = None
    participants: list[UserSummarySchema] = Field(default_factory=list)
    last_message: LastMessageSchema | None = Field(None, alias="lastMessage")
    created_at: datetime | None = Field(None, alias="createdAt")
    updated_at: datetime | None = Field(None, alias="updatedAt")

    @field_validator("participants", mode="before")
    @classmethod
    def _populated_only(cls, value: Any) -> Any:
        return [p for p in value or [] if isinstance(p, dict)]


class PaginationSchema(WireModel):
    page: int = 1
    limit: int = 50
    total: int = 0
    pages: int = 0


class RoomsResponse(WireModel):
    rooms: list[RoomSchema] = Field(default_factory=list)


class RoomResponse(WireModel):
    room: RoomSchema


class MessagesResponse(WireModel):
    messages: list[MessageSchema] = Field(default_factory=list)
    pagination: PaginationSchema = Field(default_factory=PaginationSchema)


class SendMessageResponse(WireModel):
    success: bool = False
    message: MessageSchema | None = None


class UsersResponse(WireModel):
    users: list[UserSummarySchema] = Field(default_factory=list)


class OnlineUserSchema(WireModel):
    user_id: RefId = Field(alias="userId")
    status: str
    last_seen: datetime | None = Field(None, alias="lastSeen")


class OnlineUsersResponse(WireModel):
    users: list[OnlineUserSchema] = Field(default_factory=list)


class NotificationActionSchema(WireModel):
    label: str
    action: str
    url: str | None = None
    data: Any = None


class NotificationSchema(WireModel):
    id: str | None = Field(None, alias="_id")
    notification_id: str = Field(alias="notificationId")
    type: str = "individual"
    title: str
    message: str = ""
    sender: PopulatedUser = None
    priority: str = "medium"
    category: str = "general"
    actions: list[NotificationActionSchema] = Field(default_factory=list)
    read_by: list[str] = Field(default_factory=list, alias="readBy")
    is_read: bool = Field(False, alias="isRead")
    expires_at: datetime | None = Field(None, alias="expiresAt")
    created_at: datetime | None = Field(None, alias="createdAt")
    updated_at: datetime | None = Field(None, alias="updatedAt")

    @field_validator("read_by", mode="before")
    @classmethod
    def _ids(cls, value: Any) -> Any:
        return [_ref_id(v) for v in value or []]


class NotificationsResponse(WireModel):
    notifications: list[NotificationSchema] = Field(default_factory=list)


class NotificationResponse(WireModel):
    notification: NotificationSchema | None = None


class CountResponse(WireModel):
    count: int = 0


class NotificationGroupSchema(WireModel):
    id: str | None = Field(None, alias="_id")
    group_id: str = Field(alias="groupId")
    name: str
    description: str | None = None
    members: list[UserSummarySchema] = Field(default_factory=list)
    created_by: PopulatedUser = Field(None, alias="createdBy")

    @field_validator("members", mode="before")
    @classmethod
    def _populated_only(cls, value: Any) -> Any:
        return [m for m in value or [] if isinstance(m, dict)]


class GroupsResponse(WireModel):
    groups: list[NotificationGroupSchema] = Field(default_factory=list)


class GroupResponse(WireModel):
    group: NotificationGroupSchema
