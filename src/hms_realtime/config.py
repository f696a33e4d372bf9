from __future__ import annotations

from pydantic import ConfigDict
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    API_URL: str = "http://localhost:5000"
    SOCKET_URL: str | None = None
    SOCKET_PATH: str = "socket.io"
    SOCKET_TRANSPORTS: list[str] = ["websocket", "polling"]

    API_TOKEN: str | None = None
    HTTP_TIMEOUT: float = 15.0

    RECONNECT_ATTEMPTS: int = 5
    RECONNECT_DELAY: float = 1.0
    HANDSHAKE_TIMEOUT: float = 20.0

    MESSAGE_PAGE_SIZE: int = 50
    TYPING_TIMEOUT: float = 3.0
    NOTIFICATION_POLL_INTERVAL: float = 30.0
    CACHE_STALE_SECONDS: float = 300.0

    REDIS_URL: str | None = None
    NOTIFICATIONS_CHANNEL: str = "hms.notifications"

    @property
    def socket_url(self) -> str:
        return self.SOCKET_URL or self.API_URL

    model_config = ConfigDict(
        env_file=".env",
        extra="ignore",
    )


settings = Settings()
