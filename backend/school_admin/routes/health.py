"""
School Admin Backend — Health Check Route
===========================================

What:  GET /health for container probes and load balancers.
How:   Runs SELECT 1 against the application's engine and answers with the
       standard envelope:

           {"ok": true, "data": {"status": "healthy", "service": ..., "version": ...,
                                 "database": "connected", "uptime_seconds": ...,
                                 "timestamp": ...}}

       A database failure turns the answer into a 503 with the same data
       under "errors".
"""

import logging
import time
from datetime import datetime, timezone

from fastapi import APIRouter, Request
from sqlalchemy.exc import SQLAlchemyError

from school_admin import __version__
from school_admin.database import ping
from school_admin.dispatch.responses import ResponseDispatcher

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

_start_time = time.time()


@router.get("/health", summary="Service health check")
async def health_check(request: Request):
    state = request.app.state
    db_status = "connected"
    try:
        await ping(state.engine)
    except (SQLAlchemyError, OSError) as e:
        db_status = "disconnected"
        logger.warning("Health check: database unreachable: %s", str(e))

    report = {
        "status": "healthy" if db_status == "connected" else "unhealthy",
        "service": state.settings.service_name,
        "version": __version__,
        "database": db_status,
        "uptime_seconds": round(time.time() - _start_time, 2),
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
    dispatcher: ResponseDispatcher = state.dispatcher
    if db_status != "connected":
        return dispatcher.error(503, report)
    return dispatcher.success(report)
