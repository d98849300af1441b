"""Engine configuration read from the environment."""

import logging
import os
from typing import Mapping

from pydantic import BaseModel, Field, field_validator

from chronologicon.search import MAX_PAGE_SIZE

DEFAULT_DATABASE_URL = "sqlite:///./chronologicon.db"


class EngineConfig(BaseModel, frozen=True):
    """Settings shared by the pipeline, the repository factory and the CLI.

    Attributes:
        database_url: ``memory://`` or ``sqlite:///<path>``.
        log_level: Name of a standard logging level.
        progress_interval: Lines between pipeline progress log records; 0 disables them.
        page_size: Default search page size.
    """

    database_url: str = Field(default=DEFAULT_DATABASE_URL)
    log_level: str = Field(default="INFO")
    progress_interval: int = Field(default=1000, ge=0)
    page_size: int = Field(default=10, ge=1, le=MAX_PAGE_SIZE)

    @field_validator("log_level")
    @classmethod
    def known_log_level(cls, value: str) -> str:
        level = value.strip().upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"Unknown log level: {value!r}")
        return level

    @property
    def log_level_number(self) -> int:
        return logging.getLevelName(self.log_level)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "EngineConfig":
        """Build a config from ``CHRONOLOGICON_*`` variables, falling back to defaults."""
        env = os.environ if environ is None else environ
        values: dict[str, str] = {}
        for field_name, var in (
            ("database_url", "CHRONOLOGICON_DATABASE_URL"),
            ("log_level", "CHRONOLOGICON_LOG_LEVEL"),
            ("progress_interval", "CHRONOLOGICON_PROGRESS_INTERVAL"),
            ("page_size", "CHRONOLOGICON_PAGE_SIZE"),
        ):
            if env.get(var):
                values[field_name] = env[var]
        return cls.model_validate(values)
