"""Routes decoded push events to exactly one handler each."""
from __future__ import annotations

import inspect
import logging
from typing import Any, Awaitable, Callable, Mapping

from hms_realtime.domain.events.union import PushEvent
from hms_realtime.domain.value_objects.enums import EventKind
from hms_realtime.infrastructure.ws.protocol import decode_event

logger = logging.getLogger(__name__)

Handler = Callable[[Any], "Awaitable[None] | None"]


class EventDispatcher:
    def __init__(self, handlers: Mapping[EventKind, Handler]) -> None:
        self._handlers = dict(handlers)

    @property
    def kinds(self) -> frozenset[EventKind]:
        return frozenset(self._handlers)

    async def dispatch_raw(self, event_name: str, payload: Any) -> None:
        """Decode a transport event and dispatch it. Unknown names are ignored."""
        event = decode_event(event_name, payload)
        if event is None:
            logger.debug("Ignoring unknown push event: %s", event_name)
            return
        await self.dispatch(event)

    async def dispatch(self, event: PushEvent) -> None:
        handler = self._handlers.get(event.kind)
        if handler is None:
            logger.debug("No handler for %s", event.kind)
            return
        try:
            result = handler(event)
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.exception("Handler for %s failed", event.kind)
