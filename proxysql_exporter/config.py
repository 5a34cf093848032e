"""Application configuration via environment variables and .env file.

Uses pydantic-settings to load configuration from environment variables
with optional fallback to a .env file. All settings can be overridden
by setting the corresponding environment variable.
"""

from __future__ import annotations

from typing import NamedTuple

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_ADMIN_PORT = 6032


class AdminTarget(NamedTuple):
    """Resolved location of the ProxySQL admin interface."""

    host: str
    port: int
    database: str | None


def parse_dsn(dsn: str) -> AdminTarget:
    """Split a ``host[:port][/database]`` string into its parts.

    Raises:
        ValueError: If the host is empty or the port is not a number.
    """
    address, _, database = dsn.strip().partition("/")
    host, sep, port = address.rpartition(":")
    if not sep:
        host, port = address, ""
    if not host:
        raise ValueError(f"DSN {dsn!r} has no host")
    try:
        port_number = int(port) if port else DEFAULT_ADMIN_PORT
    except ValueError:
        raise ValueError(f"DSN {dsn!r} has an invalid port") from None
    return AdminTarget(host=host, port=port_number, database=database or None)


class Settings(BaseSettings):
    """Central configuration for the ProxySQL exporter.

    Attributes:
        LISTEN_HOST: Interface the metrics HTTP server binds to.
        LISTEN_PORT: Port the metrics HTTP server binds to.
        PROXYSQL_DSN: Admin interface location, ``host[:port][/database]``.
        PROXYSQL_USER: Admin interface username.
        PROXYSQL_PASSWORD: Admin interface password.
        RETRY_MILLIS: Delay before reconnecting after a database failure.
        SCRAPE_MILLIS: Delay between status polling runs.
        CONNECT_TIMEOUT_SECONDS: Timeout for opening an admin connection.
        QUERY_TIMEOUT_SECONDS: Upper bound on a single admin query.
        LOG_LEVEL: Minimum log level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
    """

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    LISTEN_HOST: str = "0.0.0.0"
    LISTEN_PORT: int = 2314
    PROXYSQL_DSN: str = "localhost:6032/admin"
    PROXYSQL_USER: str = "admin"
    PROXYSQL_PASSWORD: str = "admin"
    RETRY_MILLIS: int = 1000
    SCRAPE_MILLIS: int = 1000
    CONNECT_TIMEOUT_SECONDS: float = 5.0
    QUERY_TIMEOUT_SECONDS: float = 10.0
    LOG_LEVEL: str = "INFO"

    @field_validator("PROXYSQL_DSN")
    @classmethod
    def _check_dsn(cls, value: str) -> str:
        parse_dsn(value)
        return value

    @field_validator(
        "RETRY_MILLIS",
        "SCRAPE_MILLIS",
        "CONNECT_TIMEOUT_SECONDS",
        "QUERY_TIMEOUT_SECONDS",
    )
    @classmethod
    def _check_positive(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("must be greater than zero")
        return value

    @property
    def admin_target(self) -> AdminTarget:
        return parse_dsn(self.PROXYSQL_DSN)

    @property
    def retry_interval(self) -> float:
        """Reconnect delay in seconds."""
        return self.RETRY_MILLIS / 1000.0

    @property
    def scrape_interval(self) -> float:
        """Status polling interval in seconds."""
        return self.SCRAPE_MILLIS / 1000.0


settings = Settings()
