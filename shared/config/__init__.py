"""Settings bases shared by services.

Each service subclasses ``BaseServiceConfig``; every field can be set from an
environment variable of the same name (case-insensitive).
"""

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_REDACTION_PATTERNS = [
    "password",
    "token",
    "secret",
    "key",
    "authorization",
    "cookie",
    "session",
]


class BaseLoggingConfig(BaseSettings):
    app_log_level: str = "INFO"
    app_log_redaction_patterns: list[str] = DEFAULT_REDACTION_PATTERNS
    app_environment: str = "production"

    @field_validator("app_log_level")
    @classmethod
    def _upper_level(cls, value: str) -> str:
        return value.strip().upper()


class BaseBackendConfig(BaseSettings):
    """Where the admin backend lives and how to authenticate against it."""

    backend_base_url: str = "http://backend:5000/api"
    backend_auth_token: str | None = None
    backend_timeout_seconds: float = 10.0


class BaseServiceConfig(BaseLoggingConfig, BaseBackendConfig):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Overridden by each service; also used as the log ``service`` field.
    otel_service_name: str = "unknown"


__all__ = [
    "BaseLoggingConfig",
    "BaseBackendConfig",
    "BaseServiceConfig",
    "DEFAULT_REDACTION_PATTERNS",
]
