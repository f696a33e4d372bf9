from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True, slots=True)
class PresenceRecord:
    user_id: str
    status: str
    last_seen: datetime | None


@dataclass(frozen=True, slots=True)
class UnreadCounts:
    messages: int = 0
    notifications: int = 0
