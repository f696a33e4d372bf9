"""Single push-channel connection with a bounded retry policy."""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable

from hms_realtime.application.dto.notice import Notice
from hms_realtime.application.exceptions import AuthenticationError, ConnectivityError
from hms_realtime.application.ports.clock import Clock, Scheduler, SystemClock
from hms_realtime.application.ports.notifier import Notifier
from hms_realtime.application.ports.transport import OnPushCallback, RealtimeSocket
from hms_realtime.domain.value_objects.enums import ConnectionState, NoticeKind
from hms_realtime.infrastructure.auth.token import decode_principal
from hms_realtime.infrastructure.ws.socketio_client import SERVER_DISCONNECT

logger = logging.getLogger(__name__)

TokenProvider = Callable[[], "str | None"]
OnConnected = Callable[[], Awaitable[None]]

_LIVE = frozenset({ConnectionState.CONNECTING, ConnectionState.CONNECTED})


class TransportConnection:
    """``idle`` → ``connecting`` → ``connected`` | ``failed`` | ``auth_failed``.

    A live connection that drops goes back to ``connecting`` and retries under
    the same policy; a server-initiated disconnect is terminal. ``close()`` is
    accepted from every state and always ends in ``closed``.
    """

    def __init__(
        self,
        socket: RealtimeSocket,
        token_provider: TokenProvider,
        scheduler: Scheduler,
        notifier: Notifier,
        *,
        reconnect_attempts: int = 5,
        reconnect_delay: float = 1.0,
        handshake_timeout: float = 20.0,
        clock: Clock | None = None,
    ) -> None:
        self._socket = socket
        self._token_provider = token_provider
        self._scheduler = scheduler
        self._notifier = notifier
        self._reconnect_attempts = reconnect_attempts
        self._reconnect_delay = reconnect_delay
        self._handshake_timeout = handshake_timeout
        self._clock = clock or SystemClock()

        self._state = ConnectionState.IDLE
        self._epoch = 0
        self._attempts = 0
        self._retry_task: asyncio.Task[None] | None = None
        self._on_push: OnPushCallback | None = None
        self._on_connected: list[OnConnected] = []
        self._socket.set_handlers(self._handle_push, self._handle_disconnect)

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def connected(self) -> bool:
        return self._state is ConnectionState.CONNECTED

    @property
    def attempts(self) -> int:
        """Handshake attempts made by the most recent connect cycle."""
        return self._attempts

    def set_push_handler(self, on_push: OnPushCallback) -> None:
        self._on_push = on_push

    def add_connected_listener(self, callback: OnConnected) -> None:
        self._on_connected.append(callback)

    async def connect(self) -> ConnectionState:
        """Connect, retrying connectivity failures. No-op while connecting or connected."""
        if self._state in _LIVE:
            return self._state
        self._state = ConnectionState.CONNECTING
        await self._run(tries=1 + self._reconnect_attempts, delay_first=False, epoch=self._epoch)
        return self._state

    async def close(self) -> None:
        self._epoch += 1
        previous, self._state = self._state, ConnectionState.CLOSED
        task, self._retry_task = self._retry_task, None
        if task is not None and task is not asyncio.current_task():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        await self._socket.disconnect()
        if previous is not ConnectionState.CLOSED:
            logger.info("Connection closed (was %s)", previous)

    async def emit(self, event: str, data: Any = None) -> bool:
        if self._state is not ConnectionState.CONNECTED:
            logger.debug("Not connected, dropping %s", event)
            return False
        await self._socket.emit(event, data)
        return True

    async def _run(self, *, tries: int, delay_first: bool, epoch: int) -> None:
        self._attempts = 0
        last_error = ""
        for attempt in range(tries):
            if attempt > 0 or delay_first:
                await self._scheduler.sleep(self._reconnect_delay)
            if epoch != self._epoch:
                return
            self._attempts += 1
            try:
                await self._handshake()
            except AuthenticationError as exc:
                if epoch != self._epoch:
                    return
                logger.warning("Push channel rejected credentials: %s", exc.detail)
                self._state = ConnectionState.AUTH_FAILED
                self._notifier.notify(
                    Notice(
                        kind=NoticeKind.AUTH_ERROR,
                        title="Authentication Error",
                        description="Please log in again to use chat features",
                        destructive=True,
                    )
                )
                return
            except ConnectivityError as exc:
                last_error = exc.detail
                logger.info("Connect attempt %d/%d failed: %s", attempt + 1, tries, exc.detail)
                continue

            if epoch != self._epoch:
                await self._socket.disconnect()
                return
            self._state = ConnectionState.CONNECTED
            logger.info("Push channel connected after %d attempt(s)", self._attempts)
            await self._notify_connected()
            return

        if epoch != self._epoch:
            return
        logger.warning("Giving up after %d attempts: %s", self._attempts, last_error)
        self._state = ConnectionState.FAILED
        self._notifier.notify(
            Notice(
                kind=NoticeKind.CONNECTION_FAILED,
                title="Connection Error",
                description="Failed to connect to chat server. Please try again.",
                destructive=True,
            )
        )

    async def _handshake(self) -> None:
        token = self._token_provider()
        principal = decode_principal(token)
        if principal.is_expired(self._clock.now()):
            raise AuthenticationError("Token expired")
        try:
            await asyncio.wait_for(
                self._socket.connect(token, self._handshake_timeout),
                timeout=self._handshake_timeout,
            )
        except asyncio.TimeoutError as exc:
            raise ConnectivityError(
                f"Handshake timed out after {self._handshake_timeout}s"
            ) from exc

    async def _notify_connected(self) -> None:
        for callback in list(self._on_connected):
            try:
                await callback()
            except Exception:
                logger.exception("Connected listener failed")

    async def _handle_push(self, event: str, payload: Any) -> None:
        if self._on_push is not None:
            await self._on_push(event, payload)

    async def _handle_disconnect(self, reason: str) -> None:
        if self._state is not ConnectionState.CONNECTED:
            return
        if reason == SERVER_DISCONNECT:
            self._state = ConnectionState.SERVER_DISCONNECTED
            self._notifier.notify(
                Notice(
                    kind=NoticeKind.SERVER_DISCONNECT,
                    title="Connection Lost",
                    description="You have been disconnected from the chat server",
                    destructive=True,
                )
            )
            return
        logger.info("Push channel dropped (%s), reconnecting", reason)
        self._state = ConnectionState.CONNECTING
        self._retry_task = asyncio.create_task(
            self._run(tries=self._reconnect_attempts, delay_first=True, epoch=self._epoch),
            name="push-reconnect",
        )
