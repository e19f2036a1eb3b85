"""
School Admin Backend — Request Logging Middleware
===================================================

What:  One access-log line per request, tagged with the dispatch target.

    POST /api/student/transfer_student 200 12.3ms [a1b2c3d4] from 10.0.0.7

How:   /api/<module>/<fn> paths add ``api_module`` and ``api_fn`` to the record's
       extra fields so log tooling can group by manager function. Severity
       follows the status class: 5xx ERROR, 4xx WARNING, otherwise INFO.

Privacy: request bodies, query strings and the ``token`` / Authorization
headers are never logged.
"""

import logging
import time
from typing import Dict, Optional

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from school_admin.middleware.request_id import request_id_var

logger = logging.getLogger("school_admin.access")

QUIET_PATHS = frozenset({"/health"})


def dispatch_target(path: str) -> Optional[Dict[str, str]]:
    """``/api/school/get_school`` → {"api_module": "school", "api_fn": "get_school"}."""
    parts = path.strip("/").split("/")
    if len(parts) == 3 and parts[0] == "api":
        return {"api_module": parts[1], "api_fn": parts[2]}
    return None


def level_for(status: int) -> int:
    if status >= 500:
        return logging.ERROR
    if status >= 400:
        return logging.WARNING
    return logging.INFO


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        path = request.url.path
        if path in QUIET_PATHS:
            return await call_next(request)

        started = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = round((time.perf_counter() - started) * 1000, 2)

        client_ip = request.client.host if request.client else "unknown"
        rid = getattr(request.state, "request_id", "") or request_id_var.get("")
        extra = {
            "request_id": rid,
            "method": request.method,
            "path": path,
            "status": response.status_code,
            "duration_ms": elapsed_ms,
            "client_ip": client_ip,
        }
        extra.update(dispatch_target(path) or {})

        logger.log(
            level_for(response.status_code),
            "%s %s %d %.1fms [%s] from %s",
            request.method, path, response.status_code, elapsed_ms, rid, client_ip,
            extra=extra,
        )
        return response
