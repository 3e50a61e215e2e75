"""Configuration management for taskbot."""

from datetime import timedelta
from zoneinfo import ZoneInfo

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # SQLite Configuration
    sqlite_db_path: str = Field(default="data/taskbot.db", description="Path to the SQLite database file")

    # WAHA Configuration
    waha_base_url: str = Field(default="http://waha:3000", description="WAHA Base URL")
    waha_api_key: str | None = Field(default=None, description="WAHA API Key (optional)")
    waha_session: str = Field(default="default", description="WAHA session name")

    # Pydantic Logfire Configuration (optional)
    logfire_token: str | None = Field(default=None, description="Pydantic Logfire token for observability")
    environment: str = Field(default="production", description="Deployment environment name")

    # Reminder Configuration
    timezone: str = Field(default="Asia/Kolkata", description="IANA timezone used for dates shown to users")
    reminder_lead_hours: float = Field(default=6, description="How long before the due date a reminder fires")

    # Messaging Configuration
    enable_interactive_buttons: bool = Field(
        default=True, description="Send 'Mark as Done' buttons instead of plain text where supported"
    )

    @property
    def tz(self) -> ZoneInfo:
        """Configured timezone as a tzinfo object."""
        return ZoneInfo(self.timezone)

    @property
    def reminder_lead(self) -> timedelta:
        """Offset between a reminder and its task's due date."""
        return timedelta(hours=self.reminder_lead_hours)


# Application Constants
class Constants:
    """Application-wide constants."""

    # API Configuration
    API_TIMEOUT_SECONDS: int = 30

    # HTTP Status Codes
    HTTP_BAD_REQUEST: int = 400
    HTTP_FORBIDDEN: int = 403
    HTTP_NOT_FOUND: int = 404
    HTTP_SERVER_ERROR: int = 500

    # Rate Limiting
    MAX_REQUESTS_PER_MINUTE: int = 60

    # Scheduler Configuration
    REMINDER_MISFIRE_GRACE_SECONDS: int = 300  # Late fires within 5 minutes still run
    REMINDER_JOB_PREFIX: str = "reminder"

    # Chat Commands
    COMMAND_PREFIX: str = "/"
    COMPLETE_BUTTON_PREFIX: str = "complete_"
    DELETED_BY_ADMIN: str = "admin"

    # Pagination Defaults
    DEFAULT_PER_PAGE_LIMIT: int = 500  # Default pagination limit for list queries


def get_settings() -> Settings:
    """Get application settings (singleton pattern)."""
    return Settings()


# Global settings instance
settings = get_settings()
constants = Constants()
