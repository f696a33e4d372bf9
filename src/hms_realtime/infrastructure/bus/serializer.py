"""``{"event": <name>, "data": <payload>}`` envelopes for the notification feed."""
from __future__ import annotations

import json
from datetime import datetime
from typing import Any


def _default(o: object) -> Any:
    if isinstance(o, datetime):
        return o.isoformat()
    raise TypeError(f"{type(o).__name__} is not JSON serializable")


def serialize_event(event: str, data: Any = None) -> str:
    return json.dumps({"event": event, "data": data}, default=_default)


def deserialize_event(raw: str | bytes) -> tuple[str, Any]:
    """Raises ``ValueError`` for anything that is not an envelope with a string
    event name. A missing ``data`` key yields ``None``."""
    envelope = json.loads(raw)
    if not isinstance(envelope, dict):
        raise ValueError(f"envelope must be a JSON object, got {type(envelope).__name__}")
    event = envelope.get("event")
    if not isinstance(event, str) or not event:
        raise ValueError("envelope has no event name")
    return event, envelope.get("data")
