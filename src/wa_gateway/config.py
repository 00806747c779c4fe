"""Application configuration with environment variable support."""

from typing import List, Literal, Optional
from pydantic_settings import BaseSettings, SettingsConfigDict

ApiKeyPolicy = Literal["retain", "rotate_on_disconnect"]


class Settings(BaseSettings):
    """
    Application settings with environment variable support.

    Priority: ENV > .env.local > .env > defaults
    .env.local is gitignored for local overrides
    """

    model_config = SettingsConfigDict(
        env_file=(".env", ".env.local"),
        env_file_encoding="utf-8",
        case_sensitive=True,
    )

    # Service configuration
    PROJECT_NAME: str = "WA Gateway"
    DEBUG: bool = False
    HOST: str = "localhost"
    PORT: int = 3000
    LOG_LEVEL: str = "INFO"

    # API key handling
    API_KEY_LENGTH: int = 32
    API_KEY_POLICY: ApiKeyPolicy = "retain"  # or drop the key on every transport loss
    LOGOUT_REQUIRES_API_KEY: bool = False

    # Server-side reveal gate (disabled when no PIN is configured)
    REVEAL_PIN: Optional[str] = None
    REVEAL_TOKEN_TTL_SECONDS: int = 60

    # Messaging bridge
    BRIDGE_URL: str = "http://localhost:3001"
    BRIDGE_TOKEN: Optional[str] = None  # Shared secret for /bridge/events and outbound calls
    BRIDGE_TIMEOUT: float = 30.0
    BRIDGE_HEALTH_INTERVAL: float = 0.0  # 0 disables the health watch

    # Security
    ALLOWED_ORIGINS: List[str] = []  # Empty list accepts any origin
    MAX_CONNECTIONS: int = 100

    # Notification channel
    OBSERVER_QUEUE_SIZE: int = 256
    WS_PROTOCOL_PING_INTERVAL: float = 15.0  # Protocol ping interval (seconds)
    WS_PROTOCOL_PING_TIMEOUT: float = 10.0   # Protocol pong timeout (seconds)


# Global settings instance
settings = Settings()
