"""
Backend configuration read from EQUIPMENT_TRACKER_* environment variables.

Example:
    EQUIPMENT_TRACKER_PORT=9000
    EQUIPMENT_TRACKER_AUTOSAVE_PATH=/var/lib/tracker/autosave.json
    EQUIPMENT_TRACKER_CORS_ORIGINS=http://localhost:5173,http://localhost:3000
"""

import os
from functools import lru_cache
from pathlib import Path
from typing import Mapping, Optional

from pydantic import BaseModel, Field, field_validator


ENV_PREFIX = "EQUIPMENT_TRACKER_"

DEFAULT_DATA_DIR = Path.home() / ".equipment-tracker"


class Settings(BaseModel):
    """Runtime settings for the HTTP service and its controller."""
    host: str = "127.0.0.1"
    port: int = 8765
    data_dir: Path = DEFAULT_DATA_DIR
    autosave_path: Optional[Path] = None  # defaults to <data_dir>/autosave.json
    autosave_enabled: bool = True
    load_autosave_on_start: bool = True
    grid_size: int = Field(default=20, ge=1)
    snap_to_grid: bool = True
    max_undo: int = Field(default=100, ge=1)
    log_level: str = "INFO"
    log_file: Optional[Path] = None
    cors_origins: list[str] = Field(default_factory=lambda: [
        "http://localhost:5173", "http://localhost:3000", "http://127.0.0.1:5173",
    ])

    @field_validator("cors_origins", mode="before")
    @classmethod
    def split_origins(cls, value):
        """Accept a comma-separated string from the environment."""
        if isinstance(value, str):
            return [origin.strip() for origin in value.split(",") if origin.strip()]
        return value

    @field_validator("log_level")
    @classmethod
    def upper_level(cls, value: str) -> str:
        return value.upper()

    @property
    def resolved_autosave_path(self) -> Path:
        return self.autosave_path or self.data_dir / "autosave.json"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        """Build settings from EQUIPMENT_TRACKER_* variables (unset ones keep defaults)."""
        environ = os.environ if environ is None else environ
        values = {}
        for name in cls.model_fields:
            raw = environ.get(f"{ENV_PREFIX}{name.upper()}")
            if raw is not None and raw != "":
                values[name] = raw
        return cls.model_validate(values)


@lru_cache
def get_settings() -> Settings:
    """Get the process-wide settings (read once)."""
    return Settings.from_env()
