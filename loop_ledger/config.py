"""Process configuration read from the environment.

``load_config()`` reads a local ``.env`` (without overriding variables that
are already set) and returns an immutable :class:`AppConfig`. Command-line
flags override individual fields via :meth:`AppConfig.model_copy`.

Environment variables
---------------------
DATABASE_URL
    SQLAlchemy URL of the ledger database (optional; JSON snapshots work
    without one).
LOOP_LEDGER_USER_ID
    Owner of the records to load (default ``local``).
LOOP_LEDGER_MAPS_API_KEY / LOOP_LEDGER_MAPS_URL
    Distance-matrix credentials and endpoint for mileage estimates.
LOOP_LEDGER_LOG_LEVEL
    Logging level name or number (default ``INFO``).
"""

from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, field_validator

from .mileage import DEFAULT_DISTANCE_MATRIX_URL, DistanceMatrixEstimator

DEFAULT_USER_ID = "local"


class AppConfig(BaseModel):
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    database_url: str | None = None
    user_id: str = DEFAULT_USER_ID
    maps_api_key: str | None = None
    maps_url: str = DEFAULT_DISTANCE_MATRIX_URL
    log_level: str = "INFO"

    @field_validator("database_url", "maps_api_key", mode="before")
    @classmethod
    def _blank_to_none(cls, v: object) -> object:
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("user_id", mode="before")
    @classmethod
    def _default_user(cls, v: object) -> object:
        if v is None or (isinstance(v, str) and not v.strip()):
            return DEFAULT_USER_ID
        return v

    def mileage_estimator(self) -> DistanceMatrixEstimator | None:
        """Return a distance-matrix client, or ``None`` without an API key."""

        if not self.maps_api_key:
            return None
        return DistanceMatrixEstimator(api_key=self.maps_api_key, base_url=self.maps_url)


def load_config(*, dotenv_path: Path | None = None) -> AppConfig:
    """Build :class:`AppConfig` from ``.env`` and the process environment."""

    load_dotenv(dotenv_path=dotenv_path or Path.cwd() / ".env", override=False)
    return AppConfig(
        database_url=os.getenv("DATABASE_URL"),
        user_id=os.getenv("LOOP_LEDGER_USER_ID") or DEFAULT_USER_ID,
        maps_api_key=os.getenv("LOOP_LEDGER_MAPS_API_KEY"),
        maps_url=os.getenv("LOOP_LEDGER_MAPS_URL") or DEFAULT_DISTANCE_MATRIX_URL,
        log_level=os.getenv("LOOP_LEDGER_LOG_LEVEL") or "INFO",
    )


__all__ = ["DEFAULT_USER_ID", "AppConfig", "load_config"]
