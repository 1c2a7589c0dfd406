from __future__ import annotations

from pydantic import ConfigDict
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    API_BASE_URL: str = "http://localhost:3001/api"
    SOCKET_URL: str = "http://localhost:3001"

    USER_ID: str = ""
    ACCESS_TOKEN: str = ""

    HTTP_TIMEOUT_SECONDS: float = 10.0

    SOCKET_RECONNECTION_ATTEMPTS: int = 5
    SOCKET_RECONNECTION_DELAY_SECONDS: float = 1.0

    TYPING_EXPIRY_SECONDS: float = 2.0
    TYPING_IDLE_SECONDS: float = 2.0

    RECENT_IDS_CAPACITY: int = 1000

    SEARCH_DEBOUNCE_SECONDS: float = 0.3
    SEARCH_MIN_QUERY_LENGTH: int = 2

    CONVERSATIONS_PAGE_SIZE: int = 20
    MESSAGES_PAGE_SIZE: int = 50

    RELAY_SENT_MESSAGES: bool = False

    model_config = ConfigDict(
        env_file=".env",
        extra="ignore",
    )


settings = Settings()
