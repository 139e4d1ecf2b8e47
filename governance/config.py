"""Application configuration using pydantic-settings pattern."""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    app_name: str = "Meeting Governance Engine"
    app_version: str = "0.1.0"
    app_env: str = Field(default="development")
    log_level: str = Field(default="INFO")

    # Database (Turso)
    turso_database_url: str | None = Field(default=None)
    turso_auth_token: str | None = Field(default=None)

    # One-time codes
    otp_code_length: int = Field(default=6, ge=4, le=10)
    otp_ttl_seconds: int = Field(
        default=300,
        ge=30,
        description="How long an issued code stays valid",
    )
    otp_max_attempts: int = Field(
        default=5,
        ge=1,
        description="Wrong guesses allowed before a code is locked",
    )

    # Meetings
    default_quorum_percent: float = Field(default=50.0, gt=0.0, le=100.0)
    protocol_storage_dir: str = Field(default="protocols")

    # Organization rendered into the protocol's authenticating QR token
    org_name: str = Field(default="Management Company")
    org_address: str = Field(default="")
    org_bank: str = Field(default="")
    org_account: str = Field(default="")
    org_tax_id: str = Field(default="")
    org_activity_code: str = Field(default="")
    org_bank_code: str = Field(default="")

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    @property
    def is_production(self) -> bool:
        """Whether the app runs in production (codes are never echoed back)."""
        return self.app_env.lower() == "production"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
