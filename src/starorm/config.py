"""
Configuration Management for StarORM

🔧 Process-wide settings:
Runtime environment (used by environment-scoped plugins), pagination
defaults and logging options, loaded from ``STARORM_*`` environment
variables.
"""

import logging
import os
import sys
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger(__name__)


class Environment(str, Enum):
    """Runtime environments understood by ``Model.use``"""
    SERVER = "server"
    BROWSER = "browser"

    @classmethod
    def parse(cls, value: str) -> "Environment":
        # "node" is accepted as a synonym of "server"
        value = value.strip().lower()
        if value == "node":
            return cls.SERVER
        return cls(value)

    @classmethod
    def detect(cls) -> "Environment":
        """Pyodide reports ``emscripten`` as platform."""
        return cls.BROWSER if sys.platform == "emscripten" else cls.SERVER


class Settings(BaseModel):
    """Complete StarORM configuration"""
    environment: Environment = Field(default_factory=Environment.detect)
    default_limit: int = Field(default=50, gt=0)
    log_level: str = "WARNING"
    log_format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    @field_validator("environment", mode="before")
    @classmethod
    def _parse_environment(cls, value: Any) -> Any:
        if isinstance(value, str):
            return Environment.parse(value)
        return value

    @field_validator("log_level")
    @classmethod
    def _check_log_level(cls, value: str) -> str:
        value = value.upper()
        if not isinstance(logging.getLevelName(value), int):
            raise ValueError(f"Unknown log level: {value}")
        return value

    @classmethod
    def from_environment(cls) -> "Settings":
        """Create settings from environment variables"""
        values: Dict[str, Any] = {}

        if os.getenv("STARORM_ENV"):
            values["environment"] = os.getenv("STARORM_ENV")

        if os.getenv("STARORM_DEFAULT_LIMIT"):
            values["default_limit"] = int(os.getenv("STARORM_DEFAULT_LIMIT"))

        if os.getenv("STARORM_LOG_LEVEL"):
            values["log_level"] = os.getenv("STARORM_LOG_LEVEL")

        return cls(**values)


_current_settings: Optional[Settings] = None


def set_settings(settings: Optional[Settings]) -> None:
    """Set the process-wide settings (``None`` reloads from the environment)"""
    global _current_settings
    _current_settings = settings


def get_settings() -> Settings:
    """Get the current process-wide settings"""
    global _current_settings
    if _current_settings is None:
        _current_settings = Settings.from_environment()
    return _current_settings


def configure_logging(settings: Optional[Settings] = None) -> logging.Logger:
    """
    Apply level and format to the ``starorm`` logger.

    The library never touches the root logger; applications call this
    once at startup if they want StarORM records formatted on stderr.
    """
    settings = settings or get_settings()
    package_logger = logging.getLogger("starorm")
    package_logger.setLevel(settings.log_level)

    if not package_logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(settings.log_format))
        package_logger.addHandler(handler)

    logger.debug("Logging configured at %s", settings.log_level)
    return package_logger


__all__ = [
    "Environment",
    "Settings",
    "get_settings",
    "set_settings",
    "configure_logging",
]
