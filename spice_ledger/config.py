from functools import lru_cache
import json

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Ledger service settings, read from the environment or `.env`."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    APP_NAME: str = "Spice Ledger"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False

    # postgresql+psycopg://... in production, sqlite+aiosqlite://... locally
    DATABASE_URL: str
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20
    DB_POOL_TIMEOUT: int = 30
    DB_POOL_RECYCLE: int = 1800  # seconds

    # Owner token
    SECRET_KEY: str
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30

    CORS_ORIGINS: list[str] = ["http://localhost:3000", "http://localhost:5173"]

    # Bills
    BILL_NUMBER_PREFIX: str = "CB"

    # Reminders
    REMINDER_UPCOMING_DAYS: int = 2
    REMINDER_ACK_SNOOZE_HOURS: int = 24

    # Background jobs
    SCHEDULER_ENABLED: bool = True
    SCHEDULER_TIMEZONE: str = "Asia/Kolkata"
    BALANCE_SYNC_INTERVAL_HOURS: int = 6
    BALANCE_SYNC_MAX_CONCURRENT: int = 5
    REMINDER_REFRESH_HOUR: int = 6  # local time, see SCHEDULER_TIMEZONE

    @field_validator('CORS_ORIGINS', mode='before')
    @classmethod
    def split_origins(cls, v):
        # Accepts a JSON list or a comma-separated string
        if not isinstance(v, str):
            return v
        if v.lstrip().startswith("["):
            return json.loads(v)
        return [origin.strip() for origin in v.split(",") if origin.strip()]


@lru_cache()
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
