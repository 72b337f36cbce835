"""Settings for docgate, read once from the environment at startup."""

from typing import Annotated, Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from docgate.core.exceptions import ConfigurationError

MIN_SECRET_KEY_LENGTH = 16


class DocGateSettings(BaseSettings):
    """Runtime configuration.

    Values come from environment variables (case-insensitive) and an
    optional ``.env`` file. There is no hot reload: build the settings
    once and hand them to :func:`docgate.fastapi.app.create_app`.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Storage backend
    aws_access_key_id: str | None = None
    aws_secret_access_key: str | None = None
    aws_bucket_name: str | None = None
    aws_default_region: str = "us-east-1"
    aws_url: str | None = None
    aws_startup_retry_attempts: int = Field(3, gt=0)
    storage_public_url: str | None = None
    upload_prefix: str = ""

    # Capabilities
    secret_key: str | None = None
    algorithm: str = "HS256"
    capability_ttl_seconds: int = Field(300, gt=0)
    session_mode: Literal["token", "cookie"] = "token"
    session_cookie_name: str = "docgate_session"
    session_cookie_secure: bool = True

    # Admission
    rate_limit_window_ms: int = Field(60_000, gt=0)
    rate_limit_max: int = Field(10, gt=0)
    trust_x_forwarded_for: bool = False
    trusted_proxies: Annotated[list[str], NoDecode] = Field(default_factory=list)

    # Upload policy
    allowed_content_type: str = "application/pdf"
    max_upload_size: int = Field(5 * 1024 * 1024, gt=0)

    # Transport and process
    allowed_origin: str = "*"
    host: str = "0.0.0.0"
    port: int = 8080
    log_level: str = "INFO"
    debug: bool = False

    @field_validator("algorithm")
    @classmethod
    def _hmac_only(cls, value: str) -> str:
        if not value.upper().startswith("HS"):
            raise ValueError("Only HMAC algorithms (HS256, HS384, HS512) are supported")
        return value.upper()

    @field_validator("trusted_proxies", mode="before")
    @classmethod
    def _split_proxies(cls, value):
        # TRUSTED_PROXIES=10.0.0.1,10.0.0.2
        if isinstance(value, str):
            return [proxy.strip() for proxy in value.split(",") if proxy.strip()]
        return value

    @property
    def rate_limit_window_seconds(self) -> float:
        return self.rate_limit_window_ms / 1000

    @property
    def allowed_origins(self) -> list[str]:
        return [
            origin.strip()
            for origin in self.allowed_origin.split(",")
            if origin.strip()
        ]

    def require_complete(self) -> None:
        """Fail fast when a required value is missing.

        Raises:
            ConfigurationError: If credentials or the signing secret are unset
        """
        missing = [
            name.upper()
            for name in (
                "aws_access_key_id",
                "aws_secret_access_key",
                "aws_bucket_name",
                "secret_key",
            )
            if not getattr(self, name)
        ]
        if missing:
            raise ConfigurationError(missing_fields=missing)

        if len(self.secret_key) < MIN_SECRET_KEY_LENGTH:
            raise ConfigurationError(
                f"SECRET_KEY must be at least {MIN_SECRET_KEY_LENGTH} characters long"
            )
