"""
Configuration settings for the Top.gg client.

Values come from environment variables or a ``.env`` file in the working
directory, validated by pydantic-settings.
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

PACKAGE_ROOT_DIR = Path(__file__).parent.parent.resolve()

DEFAULT_API_BASE_URL = "https://top.gg/api"

# Posting stats more often than this only hammers the API.
MIN_AUTOPOSTER_INTERVAL_SECONDS = 900


class Settings(BaseSettings):
    """
    Top.gg client configuration.

    All settings can be overridden via environment variables.
    """

    # Application
    APP_NAME: str = "topgg-webhook"
    APP_VERSION: str = "1.4.3"
    DEBUG: bool = False
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 8080

    # Top.gg API
    TOPGG_TOKEN: Optional[SecretStr] = Field(
        default=None,
        description="Top.gg API token (bot dashboard > Webhooks)"
    )
    TOPGG_BOT_ID: Optional[str] = Field(
        default=None,
        description="Bot ID; decoded from the token when unset"
    )
    API_BASE_URL: str = DEFAULT_API_BASE_URL
    REQUEST_TIMEOUT_SECONDS: float = Field(default=10.0, gt=0)

    # Webhook
    WEBHOOK_SECRET: Optional[SecretStr] = Field(
        default=None,
        description="Shared secret Top.gg sends in the Authorization header"
    )
    WEBHOOK_PATH: str = "/webhook"

    # Autoposter
    AUTOPOSTER_ENABLED: bool = False
    AUTOPOSTER_INTERVAL_SECONDS: int = 1800

    # Logging
    LOG_LEVEL: str = "INFO"
    LOGGING_CONFIG_PATH: str = str(PACKAGE_ROOT_DIR / "config" / "logging_config.yaml")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @field_validator("AUTOPOSTER_INTERVAL_SECONDS")
    @classmethod
    def check_interval_floor(cls, value: int) -> int:
        if value < MIN_AUTOPOSTER_INTERVAL_SECONDS:
            raise ValueError(
                f"AUTOPOSTER_INTERVAL_SECONDS must be at least {MIN_AUTOPOSTER_INTERVAL_SECONDS}"
            )
        return value

    @field_validator("WEBHOOK_PATH")
    @classmethod
    def leading_slash(cls, value: str) -> str:
        return value if value.startswith("/") else f"/{value}"

    @property
    def token(self) -> Optional[str]:
        return self.TOPGG_TOKEN.get_secret_value() if self.TOPGG_TOKEN else None

    @property
    def webhook_secret(self) -> Optional[str]:
        return self.WEBHOOK_SECRET.get_secret_value() if self.WEBHOOK_SECRET else None


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Returns:
        Settings: Configured settings instance
    """
    return Settings()
