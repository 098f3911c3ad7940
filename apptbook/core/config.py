# apptbook/core/config.py

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

from apptbook.utils.timeutil import to_minutes


class Settings(BaseSettings):
    # Read env from .env; ignore unknown keys so extra lines don't crash startup
    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    # --- Storage ---
    DATA_DIR: str = "."
    USERS_FILE: str = "users.csv"
    APPOINTMENTS_FILE: str = "appointments.csv"
    NOTIFICATIONS_FILE: str = "notifications.csv"
    QUARANTINE_SUFFIX: str = ".rejected"

    # --- Scheduling ---
    BUSINESS_START: str = "09:00"
    BUSINESS_END: str = "18:00"
    SLOT_STEP_MINUTES: int = 30
    DEFAULT_DURATION_MIN: int = 60
    MAX_SUGGESTIONS: int = 5

    # --- Monitoring & Logging ---
    APP_ENV: str = "production"
    LOG_LEVEL: str = "WARNING"
    LOG_FILE: str | None = None
    MAX_LOG_LENGTH: int = 200

    @property
    def data_path(self) -> Path:
        return Path(self.DATA_DIR).expanduser()

    @property
    def users_path(self) -> Path:
        return self.data_path / self.USERS_FILE

    @property
    def appointments_path(self) -> Path:
        return self.data_path / self.APPOINTMENTS_FILE

    @property
    def notifications_path(self) -> Path:
        return self.data_path / self.NOTIFICATIONS_FILE

    # Business window as minute-of-day integers
    @property
    def business_window(self) -> tuple[int, int]:
        return to_minutes(self.BUSINESS_START), to_minutes(self.BUSINESS_END)

    @property
    def is_development(self) -> bool:
        return self.APP_ENV.lower() in ("development", "dev", "local")

# Singleton
settings = Settings()
