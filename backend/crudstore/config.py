"""
crudstore — Application Configuration
=====================================

What:  Centralized configuration management using Pydantic Settings.
How:   Pydantic Settings reads from environment variables (or .env file),
       validates types/ranges, and provides a module-level `settings` object.
Who:   Imported by the application factory and the entry point.

Only configuration lives here. Stores are built from these values by
`create_app()`; nothing in this module holds collection state.
"""

import re
from typing import List

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

# Collection names become file names and URL path segments
COLLECTION_NAME_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")

# Paths already taken by non-collection routes
RESERVED_COLLECTION_NAMES = {"health", "docs", "redoc", "openapi.json"}

DURABILITY_MODES = {"awaited", "best_effort"}


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings have defaults suitable for local development.
    """

    # ── Storage ───────────────────────────────────────────────────────────
    # What: Directory holding one `<collection>.json` file per collection
    storage_root: str = Field(default="./storage")

    # What: Collections to expose, comma-separated. Each is mounted at /<name>
    collections: str = Field(default="cars")

    # What: How write failures after a mutation are reported
    #   awaited:     the write is awaited and failures raise PersistenceError
    #   best_effort: the write is awaited but failures are only logged
    durability_mode: str = Field(default="awaited")

    @field_validator("collections")
    @classmethod
    def validate_collections(cls, v: str) -> str:
        """Every name must be usable as both a file name and a path segment."""
        names = [name.strip() for name in v.split(",") if name.strip()]
        if not names:
            raise ValueError("At least one collection name must be configured")
        for name in names:
            if not COLLECTION_NAME_PATTERN.match(name):
                raise ValueError(
                    f"Invalid collection name '{name}'. "
                    "Use letters, digits, '_' or '-' only."
                )
            if name in RESERVED_COLLECTION_NAMES:
                raise ValueError(f"Collection name '{name}' is reserved")
        if len(set(names)) != len(names):
            raise ValueError(f"Duplicate collection names in '{v}'")
        return ",".join(names)

    @property
    def collections_list(self) -> List[str]:
        return self.collections.split(",")

    @field_validator("durability_mode")
    @classmethod
    def validate_durability_mode(cls, v: str) -> str:
        lower = v.lower()
        if lower not in DURABILITY_MODES:
            raise ValueError(
                f"Invalid durability_mode '{v}'. Must be one of: {sorted(DURABILITY_MODES)}"
            )
        return lower

    @property
    def best_effort_writes(self) -> bool:
        return self.durability_mode == "best_effort"

    # ── CORS ──────────────────────────────────────────────────────────────
    cors_origins: str = Field(default="*")

    @property
    def cors_origins_list(self) -> List[str]:
        """Splits comma-separated CORS origins into a list."""
        return [origin.strip() for origin in self.cors_origins.split(",")]

    # ── Server ────────────────────────────────────────────────────────────
    backend_host: str = Field(default="0.0.0.0")
    backend_port: int = Field(default=3000, ge=1, le=65535)

    # Valid: DEBUG, INFO, WARNING, ERROR, CRITICAL
    log_level: str = Field(default="INFO")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Ensures log level is a valid Python logging level name."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper = v.upper()
        if upper not in valid_levels:
            raise ValueError(f"Invalid log_level '{v}'. Must be one of: {valid_levels}")
        return upper

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,  # STORAGE_ROOT and storage_root both work
    }


settings = Settings()
