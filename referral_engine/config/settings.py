"""
Application settings.

Loads configuration from environment variables using pydantic-settings.
"""

from loguru import logger
from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from referral_engine.config.badges import MAX_UNLOCK_LEVELS


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    database_url: str
    database_echo: bool = False

    # Redis (for Dramatiq)
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_password: str | None = None
    redis_db: int = 0

    # Application
    environment: str = "production"
    debug: bool = False
    log_level: str = "INFO"
    log_file: str | None = "logs/referral_engine.log"

    # Commission engine
    # Comma-separated list of earning types internal services may report
    commission_earning_types: str = (
        "badge_purchase,badge_upgrade,ad_mining,subscription"
    )
    max_tree_depth: int = Field(
        default=MAX_UNLOCK_LEVELS,
        ge=1,
        le=MAX_UNLOCK_LEVELS,
        description="Maximum referral tree depth walked and rebuilt",
    )
    default_unlock_levels: int = Field(
        default=1,
        ge=1,
        le=MAX_UNLOCK_LEVELS,
        description="Levels unlocked for sponsors without a recognised badge",
    )

    # Milestone engine
    milestone_qualifying_badge: str = Field(
        default="VIP",
        description="Canonical badge a sponsor and referrals must hold",
    )

    # Referral audit
    audit_report_limit: int = Field(
        default=50,
        gt=0,
        description="Maximum number of issues included in an audit report",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level name."""
        level = v.upper()
        allowed = {"TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"}
        if level not in allowed:
            raise ValueError(
                f"Invalid LOG_LEVEL '{v}'. Expected one of: {', '.join(sorted(allowed))}"
            )
        return level

    @model_validator(mode="after")
    def validate_production(self) -> "Settings":
        """Validate production-specific requirements."""
        if self.environment == "production":
            if self.debug:
                raise ValueError(
                    "DEBUG must be False in production environment. "
                    "Set DEBUG=false in your .env file."
                )
            if self.database_url.startswith("sqlite"):
                logger.warning(
                    "DATABASE_URL points to SQLite in production. "
                    "Atomic balance increments require a PostgreSQL backend."
                )
        return self

    def get_earning_types(self) -> set[str]:
        """
        Get allowed earning types.

        Returns:
            Set of earning type names internal services may report
        """
        if not self.commission_earning_types:
            return set()
        return {
            item.strip()
            for item in self.commission_earning_types.split(",")
            if item.strip()
        }


settings = Settings()
