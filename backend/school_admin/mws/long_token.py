"""
``__long_token`` — authenticates the caller.

Reads the token from the ``token`` header, falling back to
``Authorization: Bearer <token>``. A valid token passes its decoded payload
on, so handlers declaring ``__long_token`` receive
``{"user_id", "role", "school_id", ...}``.
"""

import logging
from typing import Any, Dict, Mapping, Optional

from school_admin.dispatch.context import RequestContext

logger = logging.getLogger(__name__)

NAME = "__long_token"


def read_token(ctx: RequestContext) -> Optional[str]:
    token = ctx.header("token")
    if token:
        return token.strip()
    authorization = ctx.header("authorization") or ""
    scheme, _, credentials = authorization.partition(" ")
    if scheme.lower() == "bearer" and credentials.strip():
        return credentials.strip()
    return None


def long_token(injectable: Mapping[str, Any]):
    tokens = injectable["tokens"]
    dispatcher = injectable["dispatcher"]

    async def middleware(ctx: RequestContext, results: Dict[str, Any], call_next):
        token = read_token(ctx)
        if not token:
            logger.info("[%s] %s.%s: no token", ctx.request_id, ctx.module_name, ctx.fn_name)
            return dispatcher.error(401, "unauthorized")

        payload = tokens.verify_long_token(token)
        if payload is None:
            logger.info("[%s] %s.%s: token rejected", ctx.request_id, ctx.module_name, ctx.fn_name)
            return dispatcher.error(401, "unauthorized")

        return await call_next(payload)

    return middleware
