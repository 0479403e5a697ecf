"""Application settings loaded from environment."""

from __future__ import annotations

import os


def _flag(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


class Settings:
    """Application settings loaded from environment."""

    def __init__(self) -> None:
        """Load settings from environment variables."""
        # Persistence
        self.storage_backend = os.getenv("KPIBOARD_STORAGE_BACKEND", "file").lower()
        self.storage_path = os.getenv("KPIBOARD_STORAGE_PATH", "./.kpiboard")
        self.database_url = os.getenv("KPIBOARD_DATABASE_URL", "sqlite:///kpiboard.db")
        self.encryption_key = os.getenv("KPIBOARD_ENCRYPTION_KEY") or None

        # Data source service
        self.datasource_api_url = os.getenv("KPIBOARD_DATASOURCE_API_URL", "http://localhost:3007")
        self.health_url = os.getenv("KPIBOARD_HEALTH_URL", "http://localhost:3001")
        self.request_timeout = float(os.getenv("KPIBOARD_REQUEST_TIMEOUT", "10"))

        self.invitation_ttl_days = int(os.getenv("KPIBOARD_INVITATION_TTL_DAYS", "7"))

        # Logging
        self.log_level = os.getenv("KPIBOARD_LOG_LEVEL", "INFO").upper()
        self.log_json = _flag("KPIBOARD_LOG_JSON")

        self.demo_mode = _flag("KPIBOARD_DEMO_MODE")

        if self.storage_backend not in {"memory", "file", "sql"}:
            raise ValueError(
                "KPIBOARD_STORAGE_BACKEND must be memory, file or sql, "
                f"got {self.storage_backend!r}"
            )
        if self.invitation_ttl_days <= 0:
            raise ValueError("KPIBOARD_INVITATION_TTL_DAYS must be positive")
