"""Application configuration."""
from functools import lru_cache

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings."""

    # App
    app_env: str = "development"
    app_debug: bool = True
    log_level: str = "DEBUG"

    # Database - required
    database_url: str = Field(
        ...,
        description="Database connection URL (required)",
    )
    db_pool_size: int = Field(
        default=20,
        description="DB connection pool size",
    )
    db_max_overflow: int = Field(
        default=10,
        description="Max overflow connections",
    )

    # Redis (Celery broker/backend and rate limiter)
    redis_url: str = Field(
        default="redis://localhost:6379/0",
        description="Redis connection URL",
    )

    # Identity provider token bridge
    identity_jwt_secret: str = Field(
        ...,
        description="Shared secret used to verify identity tokens (required, min 32 chars)",
    )
    identity_jwt_algorithm: str = "HS256"
    identity_jwt_audience: str | None = None

    # CORS
    cors_origins: str = "http://localhost:3000"

    # Tournament status engine
    live_window_minutes: int = Field(
        default=10,
        description="Minutes a tournament stays live before auto-completion",
    )
    start_grace_seconds: int = Field(
        default=30,
        description="Clock skew tolerance before an upcoming tournament goes live",
    )
    status_reconcile_interval_seconds: float = Field(
        default=60.0,
        description="Celery Beat interval for the reconciliation pass",
    )
    reconcile_on_read: bool = Field(
        default=True,
        description="Run a reconciliation pass before tournament reads",
    )

    # Wallet
    min_withdrawal_amount: int = 300
    username_min_length: int = 3
    username_max_length: int = 20
    ledger_max_retries: int = Field(
        default=5,
        description="Attempts for a read-check-write unit before giving up on a conflict",
    )

    # Image host
    image_host_upload_url: str = Field(
        default="https://api.cloudinary.com/v1_1/demo/image/upload",
        description="Unsigned upload endpoint of the image host",
    )
    image_host_upload_preset: str = "arena_unsigned"
    max_proof_image_bytes: int = 5 * 1024 * 1024
    max_logo_image_bytes: int = 2 * 1024 * 1024
    allowed_image_types: tuple[str, ...] = (
        "image/jpeg",
        "image/png",
        "image/gif",
        "image/webp",
    )

    # Rate limiting
    rate_limit_enabled: bool = True

    @field_validator("identity_jwt_secret")
    @classmethod
    def validate_identity_jwt_secret(cls, v: str) -> str:
        """Validate identity token secret strength."""
        if len(v) < 32:
            raise ValueError(
                "identity_jwt_secret must be at least 32 characters long"
            )

        weak_patterns = [
            "change-this",
            "password",
            "12345",
            "qwerty",
        ]
        lower_v = v.lower()
        for pattern in weak_patterns:
            if pattern in lower_v:
                raise ValueError(
                    f"identity_jwt_secret contains weak pattern '{pattern}'. "
                    "Use a strong, random secret key."
                )

        return v

    @model_validator(mode="after")
    def validate_production_settings(self) -> "Settings":
        """Validate settings for production environment."""
        if self.app_env == "production":
            if self.app_debug:
                raise ValueError(
                    "app_debug must be False in production environment"
                )

            origins = [o.strip() for o in self.cors_origins.split(",")]
            if "*" in origins:
                raise ValueError(
                    "CORS wildcard '*' is not allowed in production environment. "
                    "Specify explicit allowed origins."
                )

        return self

    model_config = {
        "env_file": ".env",
        "extra": "ignore",
    }


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
