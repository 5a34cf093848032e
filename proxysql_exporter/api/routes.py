"""API route definitions for the ProxySQL exporter.

Both endpoints are unauthenticated so that Prometheus and load-balancers
can reach them without credentials.
"""

from __future__ import annotations

from fastapi import APIRouter, Request
from prometheus_client import CONTENT_TYPE_LATEST
from starlette.responses import Response as StarletteResponse

from proxysql_exporter import __version__

router = APIRouter()


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------

@router.get("/health", tags=["health"])
async def health_check() -> dict[str, str]:
    """Liveness probe.

    Returns:
        A JSON object with ``status`` and ``version`` fields.
    """
    return {"status": "ok", "version": __version__}


# ---------------------------------------------------------------------------
# Prometheus metrics
# ---------------------------------------------------------------------------

@router.get("/metrics", tags=["monitoring"])
async def prometheus_metrics(request: Request) -> StarletteResponse:
    """Prometheus metrics endpoint.

    Status metrics come from the background poller; connection pool
    metrics are collected while this request is being served.  A failed
    pool collection leaves those metrics out of the response and is
    reported through ``proxysql_exporter_last_scrape_error``.

    Returns:
        Metrics in Prometheus text exposition format.
    """
    exporter = request.app.state.exporter
    return StarletteResponse(
        content=await exporter.render_metrics(),
        media_type=CONTENT_TYPE_LATEST,
    )
