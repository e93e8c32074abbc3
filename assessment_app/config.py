"""Application configuration with validation."""
import logging
import sys
from functools import lru_cache
from typing import Literal, Optional

import structlog
from pydantic import Field, SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Client settings for the assessment state-synchronization core."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    APP_NAME: str = "Innovation Assessment Client"
    APP_VERSION: str = "1.0.0"
    APP_ENV: Literal["development", "staging", "production"] = "development"
    DEBUG: bool = False
    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    LOG_FORMAT: Literal["json", "console"] = "console"

    # Remote application store
    API_BASE_URL: str = "http://localhost:3000"
    API_TOKEN: Optional[SecretStr] = None
    REQUEST_TIMEOUT_SECONDS: float = Field(default=12.0, ge=1.0, le=60.0)

    # Persistence pipeline
    PARTIAL_SAVE_DEBOUNCE_SECONDS: float = Field(default=0.5, ge=0.0, le=10.0)
    AUTO_SAVE_IDLE_SECONDS: float = Field(default=2.0, ge=0.0, le=60.0)
    SAVE_MAX_RETRIES: int = Field(default=3, ge=0, le=10)
    SAVE_RETRY_BASE_DELAY_SECONDS: float = Field(default=1.0, ge=0.0, le=30.0)

    # Navigation gating
    NAVIGATION_COMPLETION_THRESHOLD: float = Field(default=100.0, ge=0.0, le=100.0)

    # Redis
    REDIS_URL: str = "redis://localhost:6379/0"
    CACHE_TTL_APPLICATION: int = 300  # 5 minutes

    @model_validator(mode="after")
    def validate_save_windows(self):
        """The consolidated auto-save must wait longer than a partial save."""
        if self.AUTO_SAVE_IDLE_SECONDS <= self.PARTIAL_SAVE_DEBOUNCE_SECONDS:
            raise ValueError(
                "AUTO_SAVE_IDLE_SECONDS must be greater than PARTIAL_SAVE_DEBOUNCE_SECONDS, "
                f"got {self.AUTO_SAVE_IDLE_SECONDS} <= {self.PARTIAL_SAVE_DEBOUNCE_SECONDS}"
            )
        return self

    @model_validator(mode="after")
    def validate_production_settings(self):
        """Ensure production talks to the store over TLS."""
        if self.APP_ENV == "production":
            if self.DEBUG:
                raise ValueError("DEBUG must be False in production")
            if not self.API_BASE_URL.startswith("https://"):
                raise ValueError("API_BASE_URL must use https in production")
        return self


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()


def configure_logging(config: Optional[Settings] = None) -> None:
    """
    Route structlog through stdlib logging on stderr, rendered by LOG_FORMAT.

    stdout stays free for command output such as the progress report's JSON.
    """
    config = config or get_settings()
    level = getattr(logging, config.LOG_LEVEL)

    logging.basicConfig(
        level=level,
        format="%(message)s",
        stream=sys.stderr,
    )

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]
    if config.LOG_FORMAT == "json":
        processors += [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.make_filtering_bound_logger(level),
        cache_logger_on_first_use=False,
    )
