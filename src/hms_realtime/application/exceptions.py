from __future__ import annotations


class AppError(Exception):
    """Base application error."""

    def __init__(self, detail: str = "") -> None:
        self.detail = detail
        super().__init__(detail)


class AuthenticationError(AppError):
    """Bearer token missing, invalid or expired. Retrying with the same token is pointless."""


class ConnectivityError(AppError):
    """Network-level failure: refused connection, drop or handshake timeout."""


class ServerDisconnectError(AppError):
    pass


class MalformedResponseError(AppError):
    pass


class ApiError(AppError):
    """Backend answered with a non-success status."""

    def __init__(self, detail: str = "", status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(detail)


class MutationError(ApiError):
    """A write (send, mark-read, delete, create) was rejected or failed."""


class NotFoundError(AppError):
    pass


class ForbiddenError(AppError):
    pass


class ValidationError(AppError):
    pass
