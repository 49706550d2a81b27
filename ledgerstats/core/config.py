"""
ledgerstats: Configuration Management

This module provides centralised configuration management for ledgerstats.
It loads configuration from environment variables (optionally via a .env
file), with strongly typed access via Pydantic BaseSettings.

Key responsibilities:
- Load and validate configuration from environment variables
- Provide typed configuration objects for the ledger and stats databases
- Expose chart update settings (schema, enabled charts, scheduling)
- Expose a cached global configuration accessor for convenience

External dependencies:
- pydantic: Data validation and settings management
- pydantic-settings: Environment variable integration for settings
- python-dotenv: Optional .env loading for local development

Database tables accessed:
- None (configuration only)

Thread safety: Thread-safe (configuration is immutable after initial load)
"""

# ============================================================================
# Imports
# ============================================================================

from __future__ import annotations

from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# ============================================================================
# Data Models
# ============================================================================


class DatabaseConfig(BaseModel):
    """Database connection configuration.

    Describes a single PostgreSQL database connection including basic
    pooling configuration. Pool management itself lives in
    :mod:`ledgerstats.core.database`.

    Attributes:
        host: Database host name or IP address.
        port: TCP port for the PostgreSQL instance.
        name: Database name.
        user: Database user for connections.
        password: Password for the database user.
        pool_size: Maximum number of connections in the pool.
    """

    host: str
    port: int
    name: str
    user: str
    password: str
    pool_size: int = 5


def _split_csv(raw: str) -> List[str]:
    return [item.strip() for item in raw.split(",") if item.strip()]


class LedgerStatsConfig(BaseSettings):
    """Main ledgerstats configuration loaded from environment variables.

    Environment variables use the following mapping by default:

    - LEDGER_DB_* for the read-only ledger (blockscout) database
    - STATS_DB_* for the stats database holding persisted chart rows
    - LEDGER_SCHEMA / LEDGER_SCHEMA_ALLOWLIST for ledger table namespacing
    - ENABLED_CHARTS for restricting which charts are registered
    - UPDATE_INTERVAL_SECONDS / UPDATE_WORKERS for the update daemon
    - LOG_LEVEL / LOG_FILE for logging
    - ENVIRONMENT for environment name (development/staging/production)
    """

    model_config = SettingsConfigDict(
        env_prefix="",
        case_sensitive=False,
    )

    # Ledger DB (read-only)
    ledger_db_host: str = Field(default="localhost", alias="LEDGER_DB_HOST")
    ledger_db_port: int = Field(default=5432, alias="LEDGER_DB_PORT")
    ledger_db_name: str = Field(default="blockscout", alias="LEDGER_DB_NAME")
    ledger_db_user: str = Field(default="blockscout", alias="LEDGER_DB_USER")
    ledger_db_password: str = Field(default="", alias="LEDGER_DB_PASSWORD")
    ledger_db_pool_size: int = Field(default=5, alias="LEDGER_DB_POOL_SIZE")

    # Stats DB
    stats_db_host: str = Field(default="localhost", alias="STATS_DB_HOST")
    stats_db_port: int = Field(default=5432, alias="STATS_DB_PORT")
    stats_db_name: str = Field(default="stats", alias="STATS_DB_NAME")
    stats_db_user: str = Field(default="stats", alias="STATS_DB_USER")
    stats_db_password: str = Field(default="", alias="STATS_DB_PASSWORD")
    stats_db_pool_size: int = Field(default=5, alias="STATS_DB_POOL_SIZE")

    # Ledger layout
    ledger_schema: str = Field(default="public", alias="LEDGER_SCHEMA")
    ledger_schema_allowlist_raw: str = Field(default="", alias="LEDGER_SCHEMA_ALLOWLIST")

    # Charts and scheduling
    enabled_charts_raw: str = Field(default="", alias="ENABLED_CHARTS")
    update_interval_seconds: int = Field(default=600, alias="UPDATE_INTERVAL_SECONDS")
    update_workers: int = Field(default=4, alias="UPDATE_WORKERS")

    # Logging
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_file: str = Field(default="ledgerstats.log", alias="LOG_FILE")

    # Environment
    environment: str = Field(default="development", alias="ENVIRONMENT")

    @property
    def ledger_db(self) -> DatabaseConfig:
        """Return database configuration for the ledger DB."""

        return DatabaseConfig(
            host=self.ledger_db_host,
            port=self.ledger_db_port,
            name=self.ledger_db_name,
            user=self.ledger_db_user,
            password=self.ledger_db_password,
            pool_size=self.ledger_db_pool_size,
        )

    @property
    def stats_db(self) -> DatabaseConfig:
        """Return database configuration for the stats DB."""

        return DatabaseConfig(
            host=self.stats_db_host,
            port=self.stats_db_port,
            name=self.stats_db_name,
            user=self.stats_db_user,
            password=self.stats_db_password,
            pool_size=self.stats_db_pool_size,
        )

    @property
    def ledger_schema_allowlist(self) -> List[str]:
        """Schemas the ledger queries may target.

        An empty list means only the configured ``LEDGER_SCHEMA`` is
        accepted.
        """

        allowed = _split_csv(self.ledger_schema_allowlist_raw)
        return allowed or [self.ledger_schema]

    @property
    def enabled_charts(self) -> List[str]:
        """Chart names to register. Empty means every built-in chart."""

        return _split_csv(self.enabled_charts_raw)


# ============================================================================
# Public API
# ============================================================================


def load_config(env_file: Optional[Path] = None) -> LedgerStatsConfig:
    """Load ledgerstats configuration.

    For local development this function will attempt to load a `.env` file
    from the current working directory if one is present. Environment
    variables always take precedence over values from `.env`.

    Args:
        env_file: Optional explicit path to a `.env` file. If omitted,
            the function will look for `.env` in the current working
            directory.

    Returns:
        A fully populated :class:`LedgerStatsConfig` instance.

    Raises:
        FileNotFoundError: If an explicit ``env_file`` is provided but
            does not exist.
    """

    if env_file is not None:
        if not env_file.exists():
            msg = f"Environment file not found: {env_file}"
            raise FileNotFoundError(msg)
        # An explicit file wins over the current environment so that tests
        # and one-off runs can control configuration.
        load_dotenv(env_file, override=True)
    else:
        default_env = Path(".env")
        if default_env.exists():
            load_dotenv(default_env)

    return LedgerStatsConfig()  # type: ignore[call-arg]


_global_config: Optional[LedgerStatsConfig] = None


def get_config() -> LedgerStatsConfig:
    """Return the global ledgerstats configuration singleton.

    The configuration is loaded on first access and cached for subsequent
    calls.

    Returns:
        A cached :class:`LedgerStatsConfig` instance.
    """

    global _global_config
    if _global_config is None:
        _global_config = load_config()
    return _global_config
