"""
Arbor configuration — all environment variables in one place.

Read from environment at runtime. Nothing here is required for the pure
kernel; only the Postgres adapter needs a database URL.
"""

from __future__ import annotations

import os


class Settings:
    """Application settings from environment variables."""

    # Database
    DATABASE_URL: str = os.environ.get("ARBOR_DATABASE_URL", os.environ.get("DATABASE_URL", ""))
    DB_POOL_MIN_SIZE: int = int(os.environ.get("ARBOR_DB_POOL_MIN_SIZE", "1"))
    DB_POOL_MAX_SIZE: int = int(os.environ.get("ARBOR_DB_POOL_MAX_SIZE", "10"))

    # Autosave (seconds)
    AUTOSAVE_DELAY: float = float(os.environ.get("ARBOR_AUTOSAVE_DELAY", "2.0"))
    AUTOSAVE_MAX_DELAY: float = float(os.environ.get("ARBOR_AUTOSAVE_MAX_DELAY", "5.0"))
    AUTOSAVE_BATCH_THRESHOLD: int = int(os.environ.get("ARBOR_AUTOSAVE_BATCH_THRESHOLD", "3"))


# Singleton instance
settings = Settings()
