"""``__is_super_admin`` — lets superadmins through, 403 for everyone else."""

from typing import Any, Dict, Mapping

from school_admin.dispatch.context import RequestContext
from school_admin.mws.long_token import NAME as LONG_TOKEN

NAME = "__is_super_admin"


def is_super_admin(injectable: Mapping[str, Any]):
    dispatcher = injectable["dispatcher"]

    async def middleware(ctx: RequestContext, results: Dict[str, Any], call_next):
        token_data = results.get(LONG_TOKEN)
        if not token_data or token_data.get("role") != "superadmin":
            return dispatcher.error(403, "forbidden: superadmin access required")
        return await call_next(token_data)

    return middleware
