"""
School Admin Backend — Business API Route
===========================================

Mounts the single dynamic endpoint:

    GET | POST | PUT | PATCH | DELETE  /api/{module_name}/{fn_name}

Every verb goes to ApiHandler.mw; the exposure lists decide which verb is
valid for which function.
"""

from fastapi import APIRouter

from school_admin.dispatch.api_handler import ApiHandler

API_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE"]


def build_router(api_handler: ApiHandler) -> APIRouter:
    router = APIRouter(prefix="/api", tags=["API"])
    router.add_api_route(
        "/{module_name}/{fn_name}",
        api_handler.mw,
        methods=API_METHODS,
        name="dispatch",
        summary="Dispatch to an exposed manager function",
    )
    return router
