from __future__ import annotations

from datetime import datetime, timezone

import jwt

from hms_realtime.application.dto.principal import Principal
from hms_realtime.application.exceptions import AuthenticationError


def decode_principal(token: str | None) -> Principal:
    """Read identity claims from a bearer token.

    The signature is not verified: the backend does that on every request.
    The client only needs its own user id and role.
    """
    if not token:
        raise AuthenticationError("No token provided")
    try:
        payload = jwt.decode(token, options={"verify_signature": False})
    except jwt.PyJWTError as exc:
        raise AuthenticationError(f"Invalid token: {exc}") from exc

    user_id = payload.get("id") or payload.get("userId") or payload.get("sub")
    if not user_id:
        raise AuthenticationError("Invalid token: no user id claim")

    exp = payload.get("exp")
    return Principal(
        user_id=str(user_id),
        role=payload.get("role"),
        hospital_id=payload.get("hospitalId"),
        branch_id=payload.get("branchId"),
        expires_at=datetime.fromtimestamp(exp, tz=timezone.utc) if exp else None,
    )
