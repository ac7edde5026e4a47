"""Centralized configuration management using Pydantic Settings.

This module provides type-safe configuration with environment variable support,
validation, and clear defaults for the CouchDB MCP server. It serves as the single
source of truth for application settings across all modules.

Configuration can be overridden via environment variables (e.g., COUCHDB_URL)
and is validated at startup to ensure all required settings are correctly configured.

Example:
    Loading and validating settings:
    >>> from src.config.settings import settings
    >>> settings.validate_configuration()
    >>> print(settings.couchdb_url)
    'http://localhost:5984'
"""

import logging
from typing import Literal
from urllib.parse import urlsplit, urlunsplit

import httpx
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Application settings loaded from environment variables with validation.

    Settings are loaded from:
    1. Environment variables (highest priority)
    2. .env file (if present)
    3. Class defaults (lowest priority)

    All settings can be overridden via environment variables using uppercase names
    (e.g., COUCHDB_URL=http://couchdb.internal:5984).

    Attributes:
        CouchDB Configuration settings for the HTTP endpoint and credentials
        MCP Server Configuration for the advertised server identity
        Logging Configuration for log levels
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ========================================================================
    # CouchDB Configuration
    # ========================================================================

    couchdb_url: str = Field(
        default="http://localhost:5984",
        description=(
            "Base URL of the CouchDB server. "
            "Format: http[s]://[username:password@]host[:port]"
        ),
    )

    couchdb_user: str | None = Field(
        default=None,
        description="CouchDB username. Used for basic auth together with couchdb_password.",
    )

    couchdb_password: str | None = Field(
        default=None,
        description="CouchDB password. Used for basic auth together with couchdb_user.",
    )

    couchdb_timeout: float = Field(
        default=30.0,
        description="HTTP timeout in seconds for every CouchDB request",
        ge=1,
        le=300,
    )

    # ========================================================================
    # MCP Server Configuration
    # ========================================================================

    mcp_server_name: str = Field(
        default="couchdb-mcp-server",
        description="Server name advertised to MCP clients during initialization",
    )

    # ========================================================================
    # Logging Configuration
    # ========================================================================

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging level for application logs. DEBUG provides most detail",
    )

    # ========================================================================
    # Field Validators
    # ========================================================================

    @field_validator("couchdb_url")
    @classmethod
    def strip_trailing_slash(cls, value: str) -> str:
        """Normalize the base URL so request paths can be appended directly."""
        return value.rstrip("/")

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, value: str) -> str:
        if isinstance(value, str):
            return value.upper()
        return value

    # ========================================================================
    # Helper Properties
    # ========================================================================

    @property
    def couchdb_auth(self) -> httpx.BasicAuth | None:
        """Basic auth for the CouchDB client, or None when credentials are incomplete.

        Credentials embedded in couchdb_url are handled by httpx itself and do not
        need to be repeated here.
        """
        if self.couchdb_user and self.couchdb_password:
            return httpx.BasicAuth(self.couchdb_user, self.couchdb_password)
        return None

    @property
    def couchdb_display_url(self) -> str:
        """couchdb_url with any embedded credentials masked, safe for logs.

        Example:
            >>> Settings(couchdb_url="http://admin:secret@db:5984").couchdb_display_url
            'http://***:***@db:5984'
        """
        parts = urlsplit(self.couchdb_url)
        if "@" not in parts.netloc:
            return self.couchdb_url
        host = parts.netloc.rsplit("@", 1)[1]
        return urlunsplit(parts._replace(netloc=f"***:***@{host}"))

    # ========================================================================
    # Helper Methods
    # ========================================================================

    def validate_configuration(self) -> None:
        """Validate complete application configuration at startup.

        Raises:
            ValueError: If configuration is invalid with descriptive message
                       indicating what needs to be fixed

        Example:
            >>> from src.config.settings import settings
            >>> try:
            ...     settings.validate_configuration()
            ... except ValueError as e:
            ...     print(f"Configuration error: {e}")
        """
        logger.info("Validating application configuration...")

        parts = urlsplit(self.couchdb_url)
        if parts.scheme not in ("http", "https") or not parts.netloc:
            error_msg = (
                f"Invalid couchdb_url: {self.couchdb_display_url}. "
                f"Expected http[s]://host[:port]"
            )
            logger.error(error_msg)
            raise ValueError(error_msg)

        if bool(self.couchdb_user) != bool(self.couchdb_password):
            error_msg = "couchdb_user and couchdb_password must be configured together"
            logger.error(error_msg)
            raise ValueError(error_msg)

        logger.info("Configuration validation passed")

    def print_config(self) -> None:
        """Print current configuration in a formatted table (excluding sensitive data).

        Example:
            >>> from src.config.settings import settings
            >>> settings.print_config()
        """
        from rich.console import Console
        from rich.table import Table

        console = Console(stderr=True)
        table = Table(title="Application Configuration", show_header=True)
        table.add_column("Setting", style="cyan", no_wrap=False)
        table.add_column("Value", style="magenta", no_wrap=False)

        config_items = {
            "CouchDB URL": self.couchdb_display_url,
            "CouchDB User": self.couchdb_user or "-",
            "Timeout": f"{self.couchdb_timeout:g}s",
            "MCP Server Name": self.mcp_server_name,
            "Log Level": self.log_level,
        }

        for key, value in config_items.items():
            table.add_row(key, str(value))

        console.print(table)


# Global settings instance - initialized once at module import
settings = Settings()


def print_config() -> None:
    """Convenience function to print current configuration."""
    settings.print_config()


if __name__ == "__main__":
    # Script: Validate and display configuration
    import sys

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    try:
        logger.info("Starting configuration validation...")
        settings.validate_configuration()
        print_config()
        logger.info("✓ Configuration is valid and ready for use")
        sys.exit(0)

    except ValueError as e:
        logger.error(f"✗ Configuration validation failed: {e}")
        sys.exit(1)
