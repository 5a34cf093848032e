"""Tests for the /health endpoint."""

from __future__ import annotations

import httpx
import pytest

from proxysql_exporter import __version__


@pytest.mark.asyncio
async def test_health_returns_ok(client: httpx.AsyncClient) -> None:
    """GET /health should return 200 with status 'ok'."""
    response = await client.get("/health")

    assert response.status_code == 200

    data = response.json()
    assert data["status"] == "ok"
    assert data["version"] == __version__


@pytest.mark.asyncio
async def test_health_does_not_touch_admin_interface(
    client: httpx.AsyncClient, connector
) -> None:
    """GET /health should answer without opening admin connections."""
    await client.get("/health")

    assert connector.attempts == 0
