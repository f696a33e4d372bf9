"""Pure reconciliation of the active room's message list.

Two write paths feed the same view: the current user's optimistic sends
(confirmed later by the REST response) and server pushes. Identity is the
server ``message_id`` once known and the client ``temp_id`` before that, so
the REST confirmation and the push echo of one send collapse into a single
entry whichever arrives first.
"""
from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Iterable

from hms_realtime.application.exceptions import MalformedResponseError
from hms_realtime.domain.entities.message import Message
from hms_realtime.domain.value_objects.enums import Provenance, ReceiptKind


@dataclass(frozen=True, slots=True)
class MessageView:
    room_id: str
    entries: tuple[Message, ...] = ()

    def index_of_message(self, message_id: str | None) -> int | None:
        if message_id is None:
            return None
        for i, entry in enumerate(self.entries):
            if entry.message_id == message_id:
                return i
        return None

    def index_of_temp(self, temp_id: str | None) -> int | None:
        if temp_id is None:
            return None
        for i, entry in enumerate(self.entries):
            if entry.temp_id == temp_id:
                return i
        return None

    @property
    def pending(self) -> tuple[Message, ...]:
        return tuple(e for e in self.entries if e.pending)

    def __len__(self) -> int:
        return len(self.entries)


def _merge(existing: Message, incoming: Message) -> Message:
    """Server fields win; receipt sets only grow."""
    return replace(
        incoming,
        read_by=existing.read_by | incoming.read_by,
        delivered_to=existing.delivered_to | incoming.delivered_to,
        temp_id=existing.temp_id or incoming.temp_id,
        pending=False,
    )


def _same_content(entry: Message, message: Message) -> bool:
    return entry.body == message.body and entry.kind == message.kind


def _match_pending(
    entries: Iterable[Message],
    message: Message,
    self_id: str | None,
) -> int | None:
    """Find the optimistic entry a server copy of ``message`` stands for."""
    entries = list(entries)
    if message.client_msg_id is not None:
        for i, entry in enumerate(entries):
            if entry.pending and entry.temp_id == message.client_msg_id:
                return i
    if self_id is None or message.sender_id != self_id:
        return None
    for i, entry in enumerate(entries):
        if entry.pending and _same_content(entry, message):
            return i
    return None


def _require_sender(message: Message) -> None:
    if message.sender is None:
        raise MalformedResponseError(
            f"Message {message.message_id or message.temp_id} has no resolved sender"
        )


def reconcile(
    view: MessageView,
    message: Message,
    provenance: Provenance,
    *,
    self_id: str | None = None,
    temp_id: str | None = None,
) -> MessageView:
    """Return the view with ``message`` merged in.

    Raises ``MalformedResponseError`` for a message without a sender, or a
    server copy without a ``message_id``; such messages are never inserted.
    """
    if message.room_id != view.room_id:
        return view
    _require_sender(message)

    if provenance is Provenance.OPTIMISTIC:
        return _append_optimistic(view, message, temp_id or message.temp_id)

    if message.message_id is None:
        raise MalformedResponseError("Server message without messageId")

    if provenance is Provenance.CONFIRMED:
        return _apply_confirmed(view, message, temp_id, self_id)
    if provenance is Provenance.PUSH:
        return _apply_push(view, message, self_id)
    raise ValueError(f"Use replace_page() for {provenance} data")


def _append_optimistic(view: MessageView, message: Message, temp_id: str | None) -> MessageView:
    if temp_id is None:
        raise ValueError("Optimistic entries need a temp_id")
    if view.index_of_temp(temp_id) is not None:
        return view
    entry = replace(message, message_id=None, temp_id=temp_id, pending=True)
    return replace(view, entries=(*view.entries, entry))


def _apply_confirmed(
    view: MessageView,
    message: Message,
    temp_id: str | None,
    self_id: str | None,
) -> MessageView:
    entries = list(view.entries)
    confirmed = replace(message, temp_id=temp_id, pending=False)
    existing_idx = view.index_of_message(message.message_id)
    temp_idx = view.index_of_temp(temp_id)

    if existing_idx is not None:
        # push echo got here first
        previous_marker = entries[existing_idx].temp_id
        entries[existing_idx] = replace(
            _merge(entries[existing_idx], confirmed), temp_id=temp_id or previous_marker,
        )
        if temp_idx is not None and temp_idx != existing_idx:
            slot = entries[temp_idx]
            if slot.pending:
                del entries[temp_idx]
            else:
                # the slot holds the echo of another send with identical content
                entries[temp_idx] = replace(slot, temp_id=previous_marker)
        return replace(view, entries=tuple(entries))

    if temp_idx is None:
        entries.append(confirmed)
        return replace(view, entries=tuple(entries))

    slot = entries[temp_idx]
    if slot.pending:
        entries[temp_idx] = _merge(slot, confirmed)
        return replace(view, entries=tuple(entries))

    # An echo of a different send with identical content claimed this slot.
    # Hand that echo the temp marker of the next matching pending entry and
    # put the confirmed message where that pending entry was.
    other = _match_pending(entries, message, self_id)
    if other is None:
        entries.append(confirmed)
        return replace(view, entries=tuple(entries))
    entries[temp_idx] = replace(slot, temp_id=entries[other].temp_id)
    entries[other] = replace(_merge(entries[other], confirmed), temp_id=temp_id)
    return replace(view, entries=tuple(entries))


def _apply_push(view: MessageView, message: Message, self_id: str | None) -> MessageView:
    entries = list(view.entries)
    incoming = replace(message, temp_id=None, pending=False)
    existing_idx = view.index_of_message(message.message_id)
    if existing_idx is not None:
        entries[existing_idx] = _merge(entries[existing_idx], incoming)
        return replace(view, entries=tuple(entries))

    pending_idx = _match_pending(entries, message, self_id)
    if pending_idx is not None:
        entries[pending_idx] = _merge(entries[pending_idx], incoming)
    else:
        entries.append(incoming)
    return replace(view, entries=tuple(entries))


def replace_page(
    view: MessageView,
    messages: Iterable[Message],
    *,
    self_id: str | None = None,
) -> MessageView:
    """Replace the view with a freshly pulled page.

    Messages without a sender are dropped. Entries newer than the page (pushed
    while the pull was in flight) and still-pending optimistic entries survive.
    """
    page: list[Message] = []
    seen: set[str] = set()
    for message in messages:
        if message.room_id != view.room_id or message.sender is None:
            continue
        if message.message_id is None or message.message_id in seen:
            continue
        seen.add(message.message_id)
        page.append(replace(message, temp_id=None, pending=False))

    newest = max((m.created_at for m in page if m.created_at is not None), default=None)
    carried: list[Message] = []
    pending: list[Message] = []
    for entry in view.entries:
        if entry.pending:
            if not _claim(page, entry, self_id):
                pending.append(entry)
            continue
        if entry.message_id in seen:
            idx = next(i for i, m in enumerate(page) if m.message_id == entry.message_id)
            page[idx] = _merge(entry, page[idx])
            continue
        if newest is None or (entry.created_at is not None and entry.created_at > newest):
            carried.append(entry)

    return replace(view, entries=(*page, *carried, *pending))


def _claim(page: list[Message], entry: Message, self_id: str | None) -> bool:
    """Tag the page message that confirms pending ``entry`` with its temp marker."""
    for i, message in enumerate(page):
        if message.temp_id is None and _match_pending([entry], message, self_id) == 0:
            page[i] = replace(message, temp_id=entry.temp_id)
            return True
    return False


def discard_optimistic(view: MessageView, temp_id: str) -> MessageView:
    idx = view.index_of_temp(temp_id)
    if idx is None or not view.entries[idx].pending:
        return view
    return replace(view, entries=view.entries[:idx] + view.entries[idx + 1 :])


def apply_receipt(
    view: MessageView,
    message_id: str,
    user_id: str,
    kind: ReceiptKind,
) -> MessageView:
    """Add ``user_id`` to the message's receipt set. Idempotent: returns ``view`` itself on no change."""
    idx = view.index_of_message(message_id)
    if idx is None:
        return view
    entry = view.entries[idx]
    if kind is ReceiptKind.READ:
        if user_id in entry.read_by:
            return view
        updated = replace(entry, read_by=entry.read_by | {user_id})
    else:
        if user_id in entry.delivered_to:
            return view
        updated = replace(entry, delivered_to=entry.delivered_to | {user_id})
    return replace(view, entries=view.entries[:idx] + (updated,) + view.entries[idx + 1 :])
