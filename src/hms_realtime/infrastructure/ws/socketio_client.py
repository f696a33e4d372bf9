"""python-socketio adapter for the push channel.

The library's own reconnection is disabled; retry policy lives in
``services.connection`` so attempts and delays stay observable.
"""
from __future__ import annotations

import logging
from typing import Any

import socketio

from hms_realtime.application.exceptions import AuthenticationError, ConnectivityError
from hms_realtime.application.ports.transport import OnDisconnectCallback, OnPushCallback

logger = logging.getLogger(__name__)

SERVER_DISCONNECT = "io server disconnect"
# python-socketio reports the same condition without the "io " prefix
_SERVER_REASONS = frozenset({SERVER_DISCONNECT, "server disconnect"})
_AUTH_MARKERS = ("authentication error", "invalid token", "unauthorized", "jwt")


def is_auth_rejection(message: str | None) -> bool:
    text = (message or "").lower()
    return any(marker in text for marker in _AUTH_MARKERS)


def _error_message(data: Any) -> str:
    if isinstance(data, dict):
        return str(data.get("message") or data)
    return str(data) if data is not None else ""


class SocketIOClient:
    """Implements application.ports.transport.RealtimeSocket."""

    def __init__(
        self,
        url: str,
        *,
        path: str = "socket.io",
        transports: list[str] | None = None,
    ) -> None:
        self._url = url
        self._path = path
        self._transports = transports or ["websocket", "polling"]
        self._sio: socketio.AsyncClient | None = None
        self._on_push: OnPushCallback | None = None
        self._on_disconnect: OnDisconnectCallback | None = None
        self._connect_error: str | None = None

    @property
    def connected(self) -> bool:
        return self._sio is not None and self._sio.connected

    def set_handlers(
        self,
        on_push: OnPushCallback,
        on_disconnect: OnDisconnectCallback,
    ) -> None:
        self._on_push = on_push
        self._on_disconnect = on_disconnect

    def _build(self) -> socketio.AsyncClient:
        sio = socketio.AsyncClient(reconnection=False, logger=False, engineio_logger=False)

        async def _connect_error(data: Any = None) -> None:
            self._connect_error = _error_message(data)
            logger.info("Socket.IO connect_error: %s", self._connect_error)

        async def _disconnect(reason: Any = None) -> None:
            if self._sio is not sio:
                # torn down by us, or a previous client
                return
            text = str(reason) if reason is not None else "transport close"
            if text in _SERVER_REASONS:
                text = SERVER_DISCONNECT
            logger.info("Socket.IO disconnected: %s", text)
            if self._on_disconnect is not None:
                await self._on_disconnect(text)

        async def _any_event(event: str, data: Any = None) -> None:
            if self._on_push is not None:
                await self._on_push(event, data)

        sio.on("connect_error", _connect_error)
        sio.on("disconnect", _disconnect)
        sio.on("*", _any_event)
        return sio

    async def connect(self, token: str, timeout: float) -> None:
        await self._drop()
        self._connect_error = None
        sio = self._build()
        self._sio = sio
        try:
            await sio.connect(
                self._url,
                auth={"token": token},
                transports=self._transports,
                socketio_path=self._path,
                wait_timeout=timeout,
            )
        except socketio.exceptions.ConnectionError as exc:
            message = self._connect_error or str(exc)
            await self._drop()
            if is_auth_rejection(message):
                raise AuthenticationError(message) from exc
            raise ConnectivityError(message) from exc
        logger.info("Socket.IO connected to %s (sid=%s)", self._url, sio.sid)

    async def disconnect(self) -> None:
        await self._drop()

    async def _drop(self) -> None:
        sio, self._sio = self._sio, None
        if sio is not None:
            await sio.disconnect()

    async def emit(self, event: str, data: Any = None) -> None:
        if self._sio is None or not self._sio.connected:
            logger.debug("Dropping %s: socket not connected", event)
            return
        await self._sio.emit(event, data)
