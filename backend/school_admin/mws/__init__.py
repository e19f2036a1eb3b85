"""
School Admin Backend — Dispatch Middlewares
=============================================

One module per special parameter. A handler opts into a middleware by
declaring its name as a parameter:

    async def create_school(self, __long_token=None, __is_super_admin=None, name=None): ...

Guards read the token payload from ``results["__long_token"]``, so
``__long_token`` must be declared before them.
"""

from school_admin.dispatch.registry import MiddlewareRegistry
from school_admin.mws import is_school_admin, is_super_admin, long_token


def build_registry() -> MiddlewareRegistry:
    registry = MiddlewareRegistry()
    registry.register(long_token.NAME, long_token.long_token)
    registry.register(is_super_admin.NAME, is_super_admin.is_super_admin)
    registry.register(is_school_admin.NAME, is_school_admin.is_school_admin)
    return registry
