from __future__ import annotations

from hms_realtime.application.dto.principal import Principal
from hms_realtime.application.exceptions import ForbiddenError
from hms_realtime.domain.entities.user import UserSummary
from hms_realtime.domain.value_objects.enums import UserRole

MESSAGING_RULES: dict[str, frozenset[str]] = {
    # master_admin only talks to hospital admins (service channel)
    UserRole.MASTER_ADMIN: frozenset({UserRole.ADMIN}),
    UserRole.ADMIN: frozenset(
        {UserRole.MASTER_ADMIN, UserRole.DOCTOR, UserRole.RECEPTIONIST, UserRole.SUB_ADMIN}
    ),
    UserRole.SUB_ADMIN: frozenset({UserRole.DOCTOR, UserRole.RECEPTIONIST}),
    UserRole.DOCTOR: frozenset(
        {UserRole.ADMIN, UserRole.SUB_ADMIN, UserRole.DOCTOR, UserRole.RECEPTIONIST}
    ),
    UserRole.RECEPTIONIST: frozenset({UserRole.ADMIN, UserRole.SUB_ADMIN, UserRole.DOCTOR}),
}


def can_message(sender_role: str | None, recipient_role: str | None) -> bool:
    if sender_role is None or recipient_role is None:
        return False
    return recipient_role in MESSAGING_RULES.get(sender_role, frozenset())


def assert_can_message(principal: Principal, recipient: UserSummary) -> None:
    """Raise if the principal's role may not open a conversation with the recipient."""
    if recipient.id == principal.user_id:
        raise ForbiddenError("Cannot open a conversation with yourself")
    if not can_message(principal.role, recipient.role):
        raise ForbiddenError(
            f"Role {principal.role!r} cannot message role {recipient.role!r}"
        )
