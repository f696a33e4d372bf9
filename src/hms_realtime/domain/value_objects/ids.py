from __future__ import annotations

import uuid

TEMP_ID_PREFIX = "temp-"


def new_temp_id() -> str:
    """Client-side id for an optimistic message; sent to the backend as ``clientMsgId``."""
    return f"{TEMP_ID_PREFIX}{uuid.uuid4()}"
