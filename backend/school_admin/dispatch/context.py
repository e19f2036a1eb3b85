"""
Request Context
================

What:  Per-request state handed to every dispatch middleware.
How:   Built once per /api call from the Starlette request: path segments,
       query string, parsed body, headers and the request id.

The merged parameter bag (``params``) is query + body, body winning on key
collisions. Keys carrying the special-parameter prefix are dropped so a
client cannot supply a value for ``__long_token`` or any other injected
parameter.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional
from urllib.parse import parse_qsl

from starlette.requests import Request

from school_admin.dispatch.params import SPECIAL_PREFIX
from school_admin.exceptions import BadRequestError
from school_admin.middleware.request_id import request_id_var

logger = logging.getLogger(__name__)


@dataclass
class RequestContext:
    method: str
    module_name: str = ""
    fn_name: str = ""
    query: Dict[str, Any] = field(default_factory=dict)
    body: Dict[str, Any] = field(default_factory=dict)
    headers: Mapping[str, str] = field(default_factory=dict)
    request_id: str = ""
    request: Optional[Request] = None

    @property
    def params(self) -> Dict[str, Any]:
        merged = {**self.query, **self.body}
        return {k: v for k, v in merged.items() if not str(k).startswith(SPECIAL_PREFIX)}

    def header(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """Case-insensitive header lookup (works for plain dicts in tests)."""
        value = self.headers.get(name)
        if value is None:
            lowered = name.lower()
            for key, candidate in self.headers.items():
                if key.lower() == lowered:
                    return candidate
            return default
        return value

    @classmethod
    async def from_request(cls, request: Request) -> "RequestContext":
        """
        Raises:
            BadRequestError: body is not valid JSON or not a JSON object
        """
        return cls(
            method=request.method.lower(),
            module_name=request.path_params.get("module_name", ""),
            fn_name=request.path_params.get("fn_name", ""),
            query=dict(request.query_params),
            body=await _read_body(request),
            headers=request.headers,
            request_id=getattr(request.state, "request_id", "") or request_id_var.get(""),
            request=request,
        )


async def _read_body(request: Request) -> Dict[str, Any]:
    raw = await request.body()
    if not raw or not raw.strip():
        return {}

    content_type = request.headers.get("content-type", "").lower()
    if content_type.startswith("application/x-www-form-urlencoded"):
        try:
            pairs = parse_qsl(raw.decode("utf-8"), keep_blank_values=True, errors="strict")
        except UnicodeDecodeError as exc:
            raise BadRequestError("malformed form body", context={"error": str(exc)}) from exc
        return dict(pairs)

    try:
        data = json.loads(raw)
    except ValueError as exc:
        raise BadRequestError("malformed JSON body", context={"error": str(exc)}) from exc
    if not isinstance(data, dict):
        raise BadRequestError("request body must be a JSON object")
    return data
