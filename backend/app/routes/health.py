"""
StackIt Backend — Health Check Route
=====================================

What:  Health check endpoint for monitoring and load balancer probes.
How:   Probes the database with SELECT 1 and reports the notification
       writer's state and backlog.

Status levels:
    - healthy:   Database reachable, notification writer running (HTTP 200)
    - degraded:  Notification writer stopped or its queue is full (HTTP 200).
                 Votes and acceptance still work; notifications are delayed
                 or dropped.
    - unhealthy: Database unreachable (HTTP 503)
"""

import logging
import time

from fastapi import APIRouter, Request, Response
from sqlalchemy import text

from app import __version__
from app.database import engine as db_engine
from app.schemas.common import HealthResponse

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
    overall = "healthy"

    try:
        async with db_engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as e:
        db_status = "disconnected"
        overall = "unhealthy"
        logger.warning("Health check: database unreachable: %s", str(e))

    sink = getattr(request.app.state, "notification_sink", None)
    backlog = sink.backlog if sink is not None else 0
    if sink is None or not sink.running:
        queue_status = "stopped"
    elif sink.saturated:
        queue_status = "saturated"
    else:
        queue_status = "running"
    if queue_status != "running" and overall == "healthy":
        overall = "degraded"

    if overall == "unhealthy":
        response.status_code = 503

    return HealthResponse(
        status=overall,
        version=__version__,
        database=db_status,
        notification_queue=queue_status,
        notification_backlog=backlog,
        uptime_seconds=round(time.time() - _start_time, 2),
    )
