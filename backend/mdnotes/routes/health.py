"""
mdnotes Backend - Health Check Route
======================================

What:  GET /health for container health checks and load balancer probes.
How:   Runs SELECT 1 on the application engine and reports uptime.
Who:   Docker health checks, orchestrators. No session required.

Status levels:
    ok:         database reachable
    unhealthy:  database unreachable (HTTP 503)
"""

import logging
import time

from fastapi import APIRouter, Request, Response
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from mdnotes import __version__
from mdnotes.schemas.auth import HealthResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

_start_time = time.time()


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Service health check",
)
async def health_check(request: Request, response: Response) -> HealthResponse:
    db_status = "connected"
    overall = "ok"

    engine = getattr(request.app.state, "engine", None)
    try:
        if engine is None:
            raise RuntimeError("storage not initialized")
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except (SQLAlchemyError, OSError, RuntimeError) as e:
        db_status = "disconnected"
        overall = "unhealthy"
        response.status_code = 503
        logger.warning("Health check: database unreachable: %s", e)

    return HealthResponse(
        status=overall,
        version=__version__,
        database=db_status,
        uptime_seconds=round(time.time() - _start_time, 2),
    )
