"""
Bid Audit - Configuration Management

Central configuration using Pydantic settings.
"""

from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Analysis service (Gemini generateContent)
    google_api_key: Optional[str] = Field(default=None, description="Google API key")
    gemini_model: str = Field(
        default="gemini-2.0-flash",
        description="Model used for compliance audits"
    )
    gemini_base_url: str = Field(
        default="https://generativelanguage.googleapis.com/v1beta",
        description="Base URL of the generative language API"
    )
    llm_temperature: float = Field(
        default=0.2,
        ge=0.0,
        le=1.0,
        description="Model temperature"
    )

    # Retry behaviour of the analysis call
    invoker_max_retries: int = Field(default=3, ge=1, description="Attempts per audit")
    invoker_base_delay_seconds: float = Field(
        default=1.0,
        ge=0.0,
        description="Backoff base; attempt n waits 2**n * base"
    )
    invoker_timeout_seconds: float = Field(
        default=120.0,
        gt=0.0,
        description="Transport timeout for a single attempt"
    )

    # Usage tracking and gating
    max_free_audits: int = Field(default=3, ge=0, description="Audits allowed before subscription")
    force_subscribed_on_increment: bool = Field(
        default=True,
        description="Write subscribed=true on every usage increment"
    )
    usage_transaction_attempts: int = Field(
        default=20,
        ge=1,
        description="Attempts for a usage transaction on write conflict or lock timeout"
    )

    # Storage Configuration
    data_dir: Path = Field(
        default=Path("./data"),
        description="Data directory for logs and local databases"
    )

    # Database Configuration
    database_url: str = Field(
        default="sqlite+aiosqlite:///./data/bid_audit.db",
        description="Database connection URL"
    )
    database_echo: bool = Field(
        default=False,
        description="Echo SQL queries for debugging"
    )

    # API Configuration
    api_host: str = Field(default="0.0.0.0", description="API host")
    api_port: int = Field(default=8000, description="API port")
    api_env: str = Field(default="development", description="API environment")
    cors_origins: str = Field(
        default="http://localhost:5173,http://localhost:3000",
        description="CORS origins (comma-separated)"
    )

    # JWT Configuration (tokens are issued by the identity provider)
    jwt_secret: str = Field(
        default="change-this-in-production-use-long-random-string",
        description="JWT signing secret"
    )
    jwt_algorithm: str = Field(default="HS256", description="JWT algorithm")
    jwt_expire_minutes: int = Field(default=30, description="Access token expiry")

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS origins into a list."""
        return [origin.strip() for origin in self.cors_origins.split(",")]

    @property
    def generate_content_url(self) -> str:
        """Endpoint of the structured-output call for the configured model."""
        base = self.gemini_base_url.rstrip("/")
        return f"{base}/models/{self.gemini_model}:generateContent"

    @property
    def logs_dir(self) -> Path:
        """Directory for log files."""
        path = self.data_dir / "logs"
        path.mkdir(parents=True, exist_ok=True)
        return path


# Global settings instance
settings = Settings()
