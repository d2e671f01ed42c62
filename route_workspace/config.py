"""
Configuration module for the route workspace engine.

Centralizes the external directory connection settings, the defaults used by
the timetable generator and the HTTP surface options.
"""

import os
from typing import Any, Dict


class Config:
    """Application configuration loaded from environment variables."""

    # External route/stop/schedule directory
    DIRECTORY_BASE_URL: str = os.getenv(
        "DIRECTORY_BASE_URL",
        "http://localhost:8080"
    )
    DIRECTORY_TIMEOUT_SECONDS: float = float(
        os.getenv("DIRECTORY_TIMEOUT_SECONDS", "10.0")
    )

    # Timetable generation defaults
    DEFAULT_START_TIME: str = os.getenv("DEFAULT_START_TIME", "06:00")
    DEFAULT_AVG_SPEED_KMH: float = float(os.getenv("DEFAULT_AVG_SPEED_KMH", "25"))
    DEFAULT_DWELL_SECONDS: int = int(os.getenv("DEFAULT_DWELL_SECONDS", "60"))

    # New stop defaults
    DEFAULT_COUNTRY: str = os.getenv("DEFAULT_COUNTRY", "Sri Lanka")

    # Runtime
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").strip().upper() or "INFO"
    CORS_ALLOW_ORIGINS: str = os.getenv("CORS_ALLOW_ORIGINS", "*")

    @classmethod
    def cors_origins(cls) -> list:
        """Return the configured CORS origins as a list."""
        return [origin.strip() for origin in cls.CORS_ALLOW_ORIGINS.split(",") if origin.strip()]

    @classmethod
    def get_config_dict(cls) -> Dict[str, Any]:
        """Return configuration as dictionary (for debugging)."""
        return {
            "DIRECTORY_BASE_URL": cls.DIRECTORY_BASE_URL,
            "DIRECTORY_TIMEOUT_SECONDS": cls.DIRECTORY_TIMEOUT_SECONDS,
            "DEFAULT_START_TIME": cls.DEFAULT_START_TIME,
            "DEFAULT_AVG_SPEED_KMH": cls.DEFAULT_AVG_SPEED_KMH,
            "DEFAULT_DWELL_SECONDS": cls.DEFAULT_DWELL_SECONDS,
            "DEFAULT_COUNTRY": cls.DEFAULT_COUNTRY,
            "LOG_LEVEL": cls.LOG_LEVEL,
        }


# Global configuration instance
config = Config()
