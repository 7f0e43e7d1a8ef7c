"""Core service configuration via environment variables."""

from enum import StrEnum

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

from core.server.middleware import DEFAULT_PREFLIGHT_MAX_AGE


class Environment(StrEnum):
    DEVELOPMENT = "development"
    PRODUCTION = "production"


class CoreServerSettings(BaseSettings):
    model_config = {"env_prefix": "CORE_"}

    # HMAC key for session cookies -- required, no default.
    # The service refuses to start if CORE_SESSION_SECRET is missing or short.
    session_secret: str = Field(min_length=16)

    # Selects cookie strictness: production sends SameSite=None; Secure.
    environment: Environment = Environment.DEVELOPMENT

    # The one non-loopback origin allowed to make credentialed requests.
    frontend_origin: str = "http://localhost:3000"

    # Grant frontend_origin to requests from any other origin (legacy behaviour).
    cors_allow_unmatched_origins: bool = False
    cors_max_age: int = Field(default=DEFAULT_PREFLIGHT_MAX_AGE, ge=0)

    users_file: str = "backend/data/users.json"
    password_hasher: str = "bcrypt"
    log_dir: str | None = None

    @field_validator("frontend_origin")
    @classmethod
    def validate_frontend_origin(cls, v: str) -> str:
        v = v.strip().rstrip("/")
        if not v.startswith(("http://", "https://")):
            raise ValueError("frontend_origin must start with http:// or https://")
        if "*" in v:
            raise ValueError("frontend_origin must be a single origin, not a wildcard")
        return v

    @property
    def is_production(self) -> bool:
        return self.environment == Environment.PRODUCTION
