from __future__ import annotations

from typing import Union

from hms_realtime.domain.events.chat import (
    MalformedPayload,
    MessageDelivered,
    MessageRead,
    NewMessagePushed,
    UserTyping,
)
from hms_realtime.domain.events.presence import UnreadCountsPushed, UserStatusChanged
from hms_realtime.domain.events.system import (
    NotificationPushed,
    NotificationUpdated,
    ServerError,
)

PushEvent = Union[
    NewMessagePushed,
    UserTyping,
    MessageDelivered,
    MessageRead,
    MalformedPayload,
    UserStatusChanged,
    UnreadCountsPushed,
    ServerError,
    NotificationPushed,
    NotificationUpdated,
]
