from __future__ import annotations

from dataclasses import dataclass

from hms_realtime.domain.value_objects.enums import NoticeKind


@dataclass(frozen=True, slots=True)
class Notice:
    """User-visible condition (toast) raised instead of an exception."""

    kind: NoticeKind
    title: str
    description: str = ""
    destructive: bool = False
