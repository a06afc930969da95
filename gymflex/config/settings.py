from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Application
    APP_VERSION: str = "1.0.0"
    APP_ENV: Literal["development", "staging", "production"] = "development"

    # Check-in token
    CHECKIN_URL_SCHEME: str = "gymflex"
    CHECKIN_URL_HOST: str = "checkin"
    CHECKIN_PAYLOAD_VERSION: str = "1"
    CHECKIN_DISPLAY_TIMEZONE: str = "UTC"  # Used for "Session starts at" messages

    # Booking source
    BOOKING_API_URL: str = ""  # Live booking service, e.g. https://api.gymflex.it/v1
    BOOKING_API_TIMEOUT_SECONDS: float = 5.0
    BOOKING_STORE_PATH: str = "./bookings.json"  # Local store for offline mode

    # QR rendering
    QR_BOX_SIZE: int = 10
    QR_BORDER: int = 2
    QR_FILL_COLOR: str = "#000000"
    QR_BACK_COLOR: str = "#FFFFFF"

    # Observability (GlitchTip/Sentry)
    GLITCHTIP_DSN: str = ""
    GLITCHTIP_TRACES_SAMPLE_RATE: float = 0.2

    @property
    def booking_api_enabled(self) -> bool:
        """Check if a live booking service is configured."""
        return bool(self.BOOKING_API_URL)

    @property
    def is_production(self) -> bool:
        return self.APP_ENV == "production"

    @property
    def is_development(self) -> bool:
        return self.APP_ENV == "development"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
