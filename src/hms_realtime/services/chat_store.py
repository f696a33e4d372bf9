"""The only writer of the ``chat-messages`` cache entries."""
from __future__ import annotations

import logging
from typing import Callable, Iterable

from hms_realtime.application.cache import ROOMS_KEY, QueryCache, messages_key
from hms_realtime.domain.entities.message import Message
from hms_realtime.domain.value_objects.enums import Provenance, ReceiptKind
from hms_realtime.services import reconciler
from hms_realtime.services.reconciler import MessageView

logger = logging.getLogger(__name__)


class ChatStore:
    def __init__(self, cache: QueryCache) -> None:
        self._cache = cache

    @property
    def cache(self) -> QueryCache:
        return self._cache

    def view(self, room_id: str) -> MessageView | None:
        return self._cache.get(messages_key(room_id))

    def reset(self, room_id: str) -> MessageView:
        view = MessageView(room_id=room_id)
        self._cache.set_data(messages_key(room_id), view)
        return view

    def drop(self, room_id: str) -> None:
        self._cache.remove(messages_key(room_id))

    def _mutate(self, room_id: str, fn: Callable[[MessageView], MessageView]) -> bool:
        view = self.view(room_id)
        if view is None:
            return False
        updated = fn(view)
        if updated is view:
            return False
        self._cache.set_data(messages_key(room_id), updated)
        # Room previews follow every mutation; the message entry itself is
        # already current and is not invalidated.
        self._cache.invalidate(ROOMS_KEY)
        return True

    def apply_optimistic(self, message: Message, temp_id: str) -> bool:
        return self._mutate(
            message.room_id,
            lambda v: reconciler.reconcile(v, message, Provenance.OPTIMISTIC, temp_id=temp_id),
        )

    def apply_confirmed(self, message: Message, temp_id: str, self_id: str | None) -> bool:
        return self._mutate(
            message.room_id,
            lambda v: reconciler.reconcile(
                v, message, Provenance.CONFIRMED, self_id=self_id, temp_id=temp_id,
            ),
        )

    def apply_push(self, message: Message, self_id: str | None) -> bool:
        return self._mutate(
            message.room_id,
            lambda v: reconciler.reconcile(v, message, Provenance.PUSH, self_id=self_id),
        )

    def apply_receipt(self, room_id: str, message_id: str, user_id: str, kind: ReceiptKind) -> bool:
        return self._mutate(
            room_id,
            lambda v: reconciler.apply_receipt(v, message_id, user_id, kind),
        )

    def discard_optimistic(self, room_id: str, temp_id: str) -> bool:
        return self._mutate(room_id, lambda v: reconciler.discard_optimistic(v, temp_id))

    def replace_page(self, room_id: str, messages: Iterable[Message], self_id: str | None) -> bool:
        view = self.view(room_id)
        if view is None:
            logger.debug("Dropping page for room %s: no view", room_id)
            return False
        self._cache.set_data(
            messages_key(room_id),
            reconciler.replace_page(view, messages, self_id=self_id),
        )
        return True
