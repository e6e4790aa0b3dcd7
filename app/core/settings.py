"""
Core settings and environment variables for Alerto.
Uses pydantic-settings for type-safe environment variable loading.
"""

from pydantic_settings import BaseSettings
from typing import List, Optional


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.
    Create a .env file in the root directory to configure these.
    """

    # Application
    APP_NAME: str = "Alerto de Pin API"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # CORS - Frontend URLs allowed to access this API (comma-separated)
    CORS_ORIGINS: str = "http://localhost:5173"

    # Firebase/Firestore
    FIREBASE_PROJECT_ID: Optional[str] = None
    FIREBASE_CREDENTIALS_PATH: Optional[str] = None  # Path to service account JSON

    # In-memory store for local development and tests
    USE_MOCK_DB: bool = False

    # Session tokens
    JWT_SECRET: str = "change-me-in-production"
    JWT_EXPIRES_HOURS: int = 24 * 7

    # Geocoding (device alerts only)
    # - GEOCODING_PROVIDER: "locationiq" (default) or "none"
    # - without LOCATIONIQ_KEY device alerts use coordinate addresses
    GEOCODING_PROVIDER: str = "locationiq"
    LOCATIONIQ_KEY: Optional[str] = None
    GEOCODING_TIMEOUT_SECONDS: float = 3.0

    # Alert fan-out
    RESPONDER_FANOUT_LIMIT: int = 20

    # Synthetic reporter used by unauthenticated sensor devices
    DEVICE_REPORTER_ID: str = "iot-device-reporter"
    DEVICE_REPORTER_NAME: str = "AlertoDePin Device"
    DEVICE_REPORTER_EMAIL: str = "device@alertodepin.local"

    # Real-time channel
    REALTIME_REQUIRE_AUTH: bool = True
    OUTBOX_MAX_ATTEMPTS: int = 2

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "allow"

    @property
    def cors_origins(self) -> List[str]:
        """Split CORS_ORIGINS and drop trailing slashes and blanks."""
        return [
            origin.strip().rstrip("/")
            for origin in self.CORS_ORIGINS.split(",")
            if origin.strip()
        ]


# Global settings instance
settings = Settings()
