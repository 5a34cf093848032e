"""Tests for settings loading and DSN parsing."""

from __future__ import annotations

import aiomysql
import pytest
from pydantic import ValidationError

from proxysql_exporter import connection
from proxysql_exporter.config import AdminTarget, Settings, parse_dsn
from proxysql_exporter.errors import ConnectError


def test_defaults() -> None:
    config = Settings()

    assert config.LISTEN_PORT == 2314
    assert config.admin_target == AdminTarget("localhost", 6032, "admin")
    assert config.retry_interval == 1.0
    assert config.scrape_interval == 1.0


def test_environment_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("PROXYSQL_DSN", "proxysql.internal:16032")
    monkeypatch.setenv("RETRY_MILLIS", "250")
    monkeypatch.setenv("SCRAPE_MILLIS", "5000")

    config = Settings()

    assert config.admin_target == AdminTarget("proxysql.internal", 16032, None)
    assert config.retry_interval == 0.25
    assert config.scrape_interval == 5.0


@pytest.mark.parametrize(
    ("dsn", "expected"),
    [
        ("localhost:6032/admin", AdminTarget("localhost", 6032, "admin")),
        ("127.0.0.1", AdminTarget("127.0.0.1", 6032, None)),
        ("db/stats", AdminTarget("db", 6032, "stats")),
    ],
)
def test_parse_dsn(dsn: str, expected: AdminTarget) -> None:
    assert parse_dsn(dsn) == expected


@pytest.mark.parametrize("dsn", [":6032/admin", "localhost:port/admin", ""])
def test_parse_dsn_rejects_invalid(dsn: str) -> None:
    with pytest.raises(ValueError):
        parse_dsn(dsn)


def test_invalid_settings_fail_at_load(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SCRAPE_MILLIS", "0")

    with pytest.raises(ValidationError):
        Settings()


@pytest.mark.asyncio
async def test_connector_wraps_driver_errors(monkeypatch: pytest.MonkeyPatch) -> None:
    calls: list[dict] = []

    async def refuse(**kwargs):
        calls.append(kwargs)
        raise aiomysql.OperationalError(2003, "Can't connect to MySQL server")

    monkeypatch.setattr(connection.aiomysql, "connect", refuse)
    connect = connection.mysql_connector(Settings())

    with pytest.raises(ConnectError):
        await connect()
    assert calls[0]["host"] == "localhost"
    assert calls[0]["port"] == 6032
    assert calls[0]["db"] == "admin"
    assert calls[0]["user"] == "admin"
