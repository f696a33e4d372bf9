from __future__ import annotations

import logging
from typing import Protocol

from hms_realtime.application.dto.notice import Notice

logger = logging.getLogger(__name__)


class Notifier(Protocol):
    def notify(self, notice: Notice) -> None: ...


class LoggingNotifier:
    """Default sink: notices end up in the log until a UI subscribes."""

    def notify(self, notice: Notice) -> None:
        level = logging.WARNING if notice.destructive else logging.INFO
        logger.log(level, "[%s] %s: %s", notice.kind, notice.title, notice.description)
