"""BidSync configuration settings.

Loads configuration from environment variables with sensible defaults.
The API token is read from the environment only; it is never logged.
"""

import os
from typing import Optional
from dataclasses import dataclass, field
from dotenv import load_dotenv

# Load .env file for local configuration (API base URL, emulator hosts, etc.)
load_dotenv()


def _get_default_api_base_url() -> str:
    """Get default backend URL based on environment mode."""
    if os.getenv("BIDSYNC_ENV", "development").lower() == "production":
        return "https://api.bidsync.example.com/api"
    return "http://localhost:5000/api"


@dataclass
class Settings:
    """Application settings loaded from environment variables."""

    # Backend item store
    api_base_url: str = field(default_factory=lambda: os.getenv("BIDSYNC_API_BASE_URL", _get_default_api_base_url()))
    api_timeout_seconds: float = field(default_factory=lambda: float(os.getenv("BIDSYNC_API_TIMEOUT_SECONDS", "30")))
    api_token: Optional[str] = field(default_factory=lambda: os.getenv("BIDSYNC_API_TOKEN"), repr=False)
    fetch_max_attempts: int = field(default_factory=lambda: int(os.getenv("FETCH_MAX_ATTEMPTS", "3")))

    # Aggregate synchronizer
    total_persist_debounce_seconds: float = field(
        default_factory=lambda: float(os.getenv("TOTAL_PERSIST_DEBOUNCE_SECONDS", "1.0"))
    )

    # Firebase Configuration (snapshot cache)
    firebase_project_id: Optional[str] = field(default_factory=lambda: os.getenv("FIREBASE_PROJECT_ID"))
    use_firebase_emulators: bool = field(default_factory=lambda: os.getenv("USE_FIREBASE_EMULATORS", "false").lower() == "true")
    firestore_emulator_host: str = field(default_factory=lambda: os.getenv("FIRESTORE_EMULATOR_HOST", "localhost:8081"))
    snapshot_cache_enabled: bool = field(default_factory=lambda: os.getenv("SNAPSHOT_CACHE_ENABLED", "true").lower() == "true")

    # Logging
    log_level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))

    def validate(self) -> None:
        """Validate required settings are present.

        Raises:
            ValueError: If required settings are missing or out of range.
        """
        if not self.api_base_url:
            raise ValueError("BIDSYNC_API_BASE_URL is required")
        if self.total_persist_debounce_seconds < 0:
            raise ValueError("TOTAL_PERSIST_DEBOUNCE_SECONDS must not be negative")
        if self.fetch_max_attempts < 1:
            raise ValueError("FETCH_MAX_ATTEMPTS must be at least 1")

    @property
    def is_emulator_mode(self) -> bool:
        """Check if running against the Firestore emulator."""
        return self.use_firebase_emulators


# Singleton settings instance
settings = Settings()
