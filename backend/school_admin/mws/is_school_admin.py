"""``__is_school_admin`` — school admins and superadmins pass, others get 403."""

from typing import Any, Dict, Mapping

from school_admin.dispatch.context import RequestContext
from school_admin.mws.long_token import NAME as LONG_TOKEN

NAME = "__is_school_admin"

ALLOWED_ROLES = ("superadmin", "schooladmin")


def is_school_admin(injectable: Mapping[str, Any]):
    dispatcher = injectable["dispatcher"]

    async def middleware(ctx: RequestContext, results: Dict[str, Any], call_next):
        token_data = results.get(LONG_TOKEN)
        if not token_data or token_data.get("role") not in ALLOWED_ROLES:
            return dispatcher.error(403, "forbidden: schooladmin or superadmin access required")
        return await call_next(token_data)

    return middleware
