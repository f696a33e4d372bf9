"""Active-room state: which room is open, who is typing, who is online."""
from __future__ import annotations

import logging
from typing import Callable

from hms_realtime.application.ports.clock import Scheduler, TimerHandle
from hms_realtime.domain.entities.presence import PresenceRecord, UnreadCounts
from hms_realtime.services.chat_store import ChatStore

logger = logging.getLogger(__name__)


class RoomSession:
    """``no-room`` → ``active(room)`` → ``active(room')`` [reset] → ``no-room``.

    Switching rooms is a hard reset of the typing set and the message view.
    Presence and unread counters are session-wide and survive switches.
    """

    def __init__(
        self,
        store: ChatStore,
        scheduler: Scheduler,
        *,
        typing_timeout: float = 3.0,
    ) -> None:
        self._store = store
        self._scheduler = scheduler
        self._typing_timeout = typing_timeout
        self._active_room_id: str | None = None
        self._generation = 0
        self._typing: dict[str, TimerHandle] = {}
        self._local_typing: TimerHandle | None = None
        self._presence: dict[str, PresenceRecord] = {}
        self._unread = UnreadCounts()

    @property
    def active_room_id(self) -> str | None:
        return self._active_room_id

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def typing_users(self) -> frozenset[str]:
        return frozenset(self._typing)

    @property
    def presence(self) -> dict[str, PresenceRecord]:
        return dict(self._presence)

    @property
    def unread(self) -> UnreadCounts:
        return self._unread

    @property
    def local_typing(self) -> bool:
        return self._local_typing is not None

    def is_current(self, room_id: str, generation: int | None = None) -> bool:
        if room_id != self._active_room_id:
            return False
        return generation is None or generation == self._generation

    def join(self, room_id: str) -> bool:
        """Make ``room_id`` active. Returns False when it already was."""
        if room_id == self._active_room_id:
            return False
        previous = self._active_room_id
        self._reset()
        if previous is not None:
            self._store.drop(previous)
        self._active_room_id = room_id
        self._store.reset(room_id)
        logger.debug("Active room %s -> %s (gen=%d)", previous, room_id, self._generation)
        return True

    def leave(self) -> str | None:
        previous = self._active_room_id
        if previous is None:
            return None
        self._reset()
        self._store.drop(previous)
        self._active_room_id = None
        return previous

    def _reset(self) -> None:
        self._generation += 1
        self.clear_typing()
        self.disarm_local_typing()

    def set_typing(self, user_id: str, room_id: str, is_typing: bool) -> bool:
        if room_id != self._active_room_id:
            return False
        handle = self._typing.pop(user_id, None)
        if handle is not None:
            handle.cancel()
        if is_typing:
            self._typing[user_id] = self._scheduler.call_later(
                self._typing_timeout,
                lambda: self._expire_typing(user_id, room_id),
            )
        return True

    def _expire_typing(self, user_id: str, room_id: str) -> None:
        if room_id == self._active_room_id:
            self._typing.pop(user_id, None)

    def clear_typing(self) -> None:
        for handle in self._typing.values():
            handle.cancel()
        self._typing.clear()

    def arm_local_typing(self, on_idle: Callable[[], None]) -> bool:
        """(Re)start the idle timer for our own typing. Returns True if it was not running."""
        started = self._local_typing is None
        if self._local_typing is not None:
            self._local_typing.cancel()
        self._local_typing = self._scheduler.call_later(self._typing_timeout, on_idle)
        return started

    def disarm_local_typing(self) -> bool:
        if self._local_typing is None:
            return False
        self._local_typing.cancel()
        self._local_typing = None
        return True

    def update_presence(self, record: PresenceRecord) -> None:
        self._presence[record.user_id] = record

    def seed_presence(self, records: list[PresenceRecord]) -> None:
        for record in records:
            self._presence.setdefault(record.user_id, record)

    def set_unread(self, counts: UnreadCounts) -> None:
        self._unread = counts

    def close(self) -> None:
        self.clear_typing()
        self.disarm_local_typing()
