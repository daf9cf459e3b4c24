import os
from datetime import timedelta
from enum import Enum
from importlib.metadata import version as pkg_version
from typing import Any, ClassVar
from urllib.parse import quote_plus

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

PKG_VERSION = pkg_version("hop-workqueue")

DEFAULT_EXCHANGE_NAME = "hop.exchange"


def _validate_required_fields(
    fields: dict[str, str | None], url_field: str = "URL"
) -> list[str]:
    """Validate that required fields are not None.

    Args:
        fields: Mapping of field names to their values.
        url_field: Name of the URL field for error message (e.g., "RABBITMQ_URL").

    Returns:
        List of missing field names.

    Raises:
        ValueError: If any required fields are missing.
    """
    missing = [name for name, val in fields.items() if val is None]
    if missing:
        raise ValueError(
            f"{url_field} not set; missing required fields: {', '.join(missing)}"
        )
    return missing


class AppEnv(str, Enum):
    """Application environment."""

    DEVELOPMENT = "development"
    PRODUCTION = "production"
    TEST = "test"


class LogLevel(str, Enum):
    """Logging level."""

    FATAL = "fatal"
    ERROR = "error"
    WARN = "warn"
    INFO = "info"
    DEBUG = "debug"


class AppConfig(BaseSettings):
    model_config: ClassVar[SettingsConfigDict] = SettingsConfigDict(
        env_file=os.getenv("ENV_FILE", ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    app_env: AppEnv = AppEnv.PRODUCTION
    version: str = PKG_VERSION
    log_level: LogLevel = LogLevel.INFO


class QueueConfig(BaseSettings):
    """Work queue configuration.

    Instances are frozen: a WorkQueue and every Topic obtained from it share
    the same config object for their whole lifetime.

    ``exchange_name`` names the direct exchange backing the work queue. Do not
    point it at a pre-existing exchange created elsewhere; its properties are
    not guaranteed to provide work queue semantics and a mismatched declaration
    is rejected by the broker.
    """

    model_config: ClassVar[SettingsConfigDict] = SettingsConfigDict(
        env_prefix="HOP_",
        env_file=os.getenv("ENV_FILE", ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    exchange_name: str = Field(default=DEFAULT_EXCHANGE_NAME, min_length=1)
    # Durable queues and persistent messages survive broker restarts.
    persistent: bool = False
    max_connection_retry: timedelta = timedelta(minutes=15)
    retry_initial_interval: float = Field(default=0.5, gt=0)
    retry_max_interval: float = Field(default=60.0, gt=0)
    pull_interval: float = Field(default=0.05, ge=0)
    broker_options: dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="after")
    def check_intervals(self) -> "QueueConfig":
        if self.retry_max_interval < self.retry_initial_interval:
            raise ValueError(
                "HOP_RETRY_MAX_INTERVAL must not be lower than HOP_RETRY_INITIAL_INTERVAL"
            )
        return self


class RabbitMqConfig(BaseSettings):
    model_config: ClassVar[SettingsConfigDict] = SettingsConfigDict(env_prefix="RABBITMQ_")

    url: str | None = None
    host: str | None = None
    port: int = 5672
    user: str | None = None
    password: str | None = None
    vhost: str = "/"

    @model_validator(mode="after")
    def build_url(self) -> "RabbitMqConfig":
        if self.url is not None:
            if not self.url.startswith(("amqp://", "amqps://")):
                raise ValueError(
                    "RABBITMQ_URL must be an AMQP connection string (amqp://... or amqps://...)"
                )
            return self

        _validate_required_fields(
            {
                "RABBITMQ_HOST": self.host,
                "RABBITMQ_USER": self.user,
                "RABBITMQ_PASSWORD": self.password,
            },
            url_field="RABBITMQ_URL",
        )

        assert self.user is not None
        assert self.password is not None
        self.url = (
            f"amqp://{quote_plus(self.user)}:{quote_plus(self.password)}"
            f"@{self.host}:{self.port}/{self.vhost.lstrip('/')}"
        )
        return self

    @property
    def connection_url(self) -> str:
        """Get the connection URL (guaranteed non-None after validation)."""
        if self.url is None:
            raise RuntimeError("URL should be set after validation")
        return self.url


# Pure defaults, independent of the environment.
DEFAULT_CONFIG = QueueConfig.model_construct()
