from __future__ import annotations

from typing import Any, Callable, Coroutine, Protocol

OnPushCallback = Callable[[str, Any], Coroutine[Any, Any, None]]
OnDisconnectCallback = Callable[[str], Coroutine[Any, Any, None]]


class RealtimeSocket(Protocol):
    """A single bidirectional push connection.

    ``connect`` raises ``AuthenticationError`` when the handshake is rejected
    for the token and ``ConnectivityError`` for anything else.
    """

    @property
    def connected(self) -> bool: ...

    async def connect(self, token: str, timeout: float) -> None: ...

    async def disconnect(self) -> None: ...

    async def emit(self, event: str, data: Any = None) -> None: ...

    def set_handlers(
        self,
        on_push: OnPushCallback,
        on_disconnect: OnDisconnectCallback,
    ) -> None: ...
