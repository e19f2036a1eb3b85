"""
School Admin Backend — Request ID Middleware
==============================================

What:  Gives each request a correlation id, echoed in X-Request-ID.
How:   A well-formed client X-Request-ID (1-64 letters, digits, "-" or "_")
       is kept; anything else is replaced by 8 hex chars of a uuid4. The id
       lives in a ContextVar for the duration of the request and on
       request.state, where RequestContext picks it up for the dispatch
       engine's log lines.
"""

import re
import uuid
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

HEADER = "X-Request-ID"
_CLIENT_ID = re.compile(r"^[A-Za-z0-9_-]{1,64}$")

request_id_var: ContextVar[str] = ContextVar("request_id", default="")


def new_request_id() -> str:
    return uuid.uuid4().hex[:8]


def accept_request_id(supplied: str) -> str:
    """Keeps a client id only when it is safe to write into log lines."""
    if supplied and _CLIENT_ID.match(supplied):
        return supplied
    return new_request_id()


class RequestIDMiddleware(BaseHTTPMiddleware):
    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        rid = accept_request_id(request.headers.get(HEADER, ""))
        request.state.request_id = rid
        reset_token = request_id_var.set(rid)
        try:
            response = await call_next(request)
        finally:
            request_id_var.reset(reset_token)
        response.headers[HEADER] = rid
        return response
