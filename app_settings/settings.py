"""
Pydantic Settings for the Relay service.

This module reads the process environment (optionally seeded from a local
.env file) once at startup and produces an immutable Settings value.

Usage:
    from app_settings import load_settings

    settings = load_settings()
    print(settings.port)
    print(settings.is_development)
"""

import logging
from pathlib import Path
from typing import Optional, Union

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("relay.config")

DEFAULT_ENV_FILE = ".env"

# Only this environment currently builds a server
DEVELOPMENT = "development"


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    PORT, HOST and ENV are copied verbatim with no validation; an empty PORT
    or an unrecognized ENV only surfaces once the controller tries to start.
    """

    model_config = SettingsConfigDict(
        env_file=None,
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        frozen=True,
        populate_by_name=True,
    )

    # =========================================================================
    # SERVER
    # =========================================================================

    host: str = Field(
        default="",
        description="Informational host label (not bound into the listener address)",
    )
    port: str = Field(
        default="",
        description="Listener address string, e.g. ':3000' or '127.0.0.1:3000'",
    )
    environment: str = Field(
        default="",
        validation_alias="ENV",
        description="Deployment environment; only 'development' starts a server",
    )

    # =========================================================================
    # TIMEOUTS (seconds)
    # =========================================================================

    read_timeout: float = Field(
        default=10.0,
        description="Maximum wait for request data from a client",
    )
    write_timeout: float = Field(
        default=10.0,
        description="Maximum wait while writing a response to a client",
    )
    idle_timeout: float = Field(
        default=60.0,
        description="Keep-alive timeout for idle connections",
    )
    shutdown_timeout: float = Field(
        default=5.0,
        description="Drain deadline once a shutdown signal is received",
    )

    # =========================================================================
    # LOGGING
    # =========================================================================

    log_level: str = Field(
        default="INFO",
        description="Application log level",
    )
    log_json: bool = Field(
        default=False,
        description="Emit JSON log lines instead of colored console output",
    )

    # =========================================================================
    # COMPUTED PROPERTIES
    # =========================================================================

    @property
    def is_development(self) -> bool:
        """Check if running in the development environment."""
        return self.environment == DEVELOPMENT


def load_settings(env_file: Optional[Union[str, Path]] = DEFAULT_ENV_FILE) -> Settings:
    """
    Load settings from the environment, seeded from an optional override file.

    Values already present in the process environment take precedence over
    the file. A missing file is not an error.

    Args:
        env_file: Path to a key=value override file, or None to skip it.

    Returns:
        A frozen Settings instance.
    """
    if env_file is not None and not Path(env_file).is_file():
        logger.warning("[CONFIG] Error loading .env file, using system environment variables")
        env_file = None

    return Settings(_env_file=env_file)
