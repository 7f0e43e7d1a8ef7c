"""Edge layer configuration via environment variables."""

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings

from edge.auth_check import DEFAULT_AUTH_CHECK_TIMEOUT_SECONDS


class EdgeServerSettings(BaseSettings):
    model_config = {"env_prefix": "EDGE_", "populate_by_name": True}

    # Core service base URL for the auth-check call. BACKEND_URL is accepted
    # for deployments configured before the edge had its own prefix.
    core_url: str = Field(
        default="http://localhost:8080",
        validation_alias=AliasChoices("EDGE_CORE_URL", "BACKEND_URL"),
    )

    # Upper bound on one auth-check round trip. Timing out denies the request.
    auth_check_timeout: float = Field(default=DEFAULT_AUTH_CHECK_TIMEOUT_SECONDS, gt=0)

    ui_url: str = "http://localhost:3000"
    log_dir: str | None = None

    @field_validator("core_url", "ui_url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        v = v.strip().rstrip("/")
        if not v.startswith(("http://", "https://")):
            raise ValueError("URL must start with http:// or https://")
        return v
