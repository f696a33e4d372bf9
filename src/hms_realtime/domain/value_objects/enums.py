from __future__ import annotations

from enum import StrEnum


class RoomKind(StrEnum):
    DIRECT = "direct"
    GROUP = "group"


class MessageKind(StrEnum):
    TEXT = "text"
    FILE = "file"
    IMAGE = "image"
    SYSTEM = "system"


class PresenceStatus(StrEnum):
    ONLINE = "online"
    OFFLINE = "offline"
    AWAY = "away"
    BUSY = "busy"


class ReceiptKind(StrEnum):
    DELIVERED = "delivered"
    READ = "read"


class Provenance(StrEnum):
    OPTIMISTIC = "optimistic"
    CONFIRMED = "confirmed"
    PUSH = "push"
    PULL = "pull"


class ConnectionState(StrEnum):
    IDLE = "idle"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    FAILED = "failed"
    AUTH_FAILED = "auth_failed"
    SERVER_DISCONNECTED = "server_disconnected"
    CLOSED = "closed"


class NotificationType(StrEnum):
    INDIVIDUAL = "individual"
    GROUP = "group"
    ROLE = "role"
    SYSTEM = "system"


class NotificationPriority(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class NotificationCategory(StrEnum):
    APPOINTMENT = "appointment"
    ANNOUNCEMENT = "announcement"
    ALERT = "alert"
    REMINDER = "reminder"
    SYSTEM = "system"
    CHAT = "chat"
    GENERAL = "general"


class UserRole(StrEnum):
    MASTER_ADMIN = "master_admin"
    ADMIN = "admin"
    SUB_ADMIN = "sub_admin"
    DOCTOR = "doctor"
    RECEPTIONIST = "receptionist"


class NoticeKind(StrEnum):
    AUTH_ERROR = "auth_error"
    CONNECTION_FAILED = "connection_failed"
    SERVER_DISCONNECT = "server_disconnect"
    SERVER_ERROR = "server_error"
    MUTATION_FAILED = "mutation_failed"
    NEW_MESSAGE = "new_message"
    NEW_NOTIFICATION = "new_notification"
    SUCCESS = "success"


class EventKind(StrEnum):
    """Server → client push event names."""

    NEW_MESSAGE = "new_message"
    USER_TYPING = "user_typing"
    MESSAGE_DELIVERED = "message_delivered"
    MESSAGE_READ = "message_read"
    USER_STATUS_CHANGE = "user_status_change"
    UNREAD_COUNTS = "unread_counts"
    ERROR = "error"
    NEW_NOTIFICATION = "new_notification"
    NOTIFICATION_UPDATED = "notification_updated"
    MALFORMED = "malformed"
