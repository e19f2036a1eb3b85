"""
VirtualStack — Dispatch Stack Builder and Executor
====================================================

What:  Builds and runs the middleware chain for one handler call.
How:   The chain is derived from the handler's own parameter list:

           async def create_school(self, __long_token, __is_super_admin, name): ...

       gives the stack [prestack..., "__long_token", "__is_super_admin"].
       Each middleware either returns ``await call_next(value)`` to continue
       or returns its own response to stop the chain. The value passed to
       ``call_next`` is bound to the handler parameter of the same name.

Outcome normalisation (applies with or without middlewares):
    mapping with truthy "error"/"errors" → 400, not logged as a fault
    anything else (None included)        → 200 {"ok": true, "data": ...}
    exception in handler or middleware   → 500 {"ok": false, "errors": msg}

All state (stack position, results) lives in one run() call, so concurrent
requests never share it.
"""

import inspect
import logging
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from starlette.responses import Response

from school_admin.dispatch.context import RequestContext
from school_admin.dispatch.params import bind_arguments, get_param_names, special_params
from school_admin.dispatch.registry import Middleware, MiddlewareRegistry
from school_admin.dispatch.responses import ResponseDispatcher
from school_admin.exceptions import DispatchError

logger = logging.getLogger(__name__)

StackEntry = Tuple[str, Middleware]


class VirtualStack:
    """
    Args:
        registry:    middleware factories by name
        injectable:  shared dependencies handed to every factory
        prestack:    names that run first for every handler of this route group
        dispatcher:  envelope builder
    """

    def __init__(
        self,
        registry: MiddlewareRegistry,
        injectable: Optional[Mapping[str, Any]] = None,
        prestack: Sequence[str] = (),
        dispatcher: Optional[ResponseDispatcher] = None,
    ):
        self.registry = registry
        self.dispatcher = dispatcher or ResponseDispatcher()
        self.injectable = {"dispatcher": self.dispatcher, **(injectable or {})}
        self.prestack = list(prestack)
        self._built: Dict[str, Middleware] = {}

    # ── Builder ───────────────────────────────────────────────────────────

    def _resolve(self, name: str) -> Optional[Middleware]:
        if name in self._built:
            return self._built[name]
        factory = self.registry.get(name)
        if factory is None:
            return None
        middleware = factory(self.injectable)
        self._built[name] = middleware
        return middleware

    def build_stack(self, handler: Callable) -> List[StackEntry]:
        """Pre-stage middlewares, then one per registered special parameter."""
        stack: List[StackEntry] = []
        for name in self.prestack:
            middleware = self._resolve(name)
            if middleware is not None:
                stack.append((name, middleware))
        for name in special_params(get_param_names(handler)):
            middleware = self._resolve(name)
            if middleware is None:
                logger.debug("no middleware registered for %s, skipping", name)
                continue
            stack.append((name, middleware))
        return stack

    # ── Executor ──────────────────────────────────────────────────────────

    async def run(self, handler: Callable, ctx: RequestContext, module: Any = None) -> Response:
        """
        Walk the stack, then call ``handler``. Never raises: every failure
        becomes an envelope response. ``module`` is the object exposing the
        handler and only names it in fault logs.
        """
        where = getattr(handler, "__qualname__", None) or repr(handler)
        if module is not None:
            where = "%s.%s" % (type(module).__name__, getattr(handler, "__name__", "?"))
        specials = special_params(get_param_names(handler))
        stack = self.build_stack(handler)
        results: Dict[str, Any] = {}
        handled: List[Response] = []

        async def step(index: int) -> Optional[Response]:
            if index >= len(stack):
                response = await self._invoke(handler, ctx, specials, results, where)
                handled.append(response)
                return response

            name, middleware = stack[index]
            called = False

            async def call_next(value: Any = None) -> Optional[Response]:
                nonlocal called
                if called:
                    raise DispatchError(f"middleware '{name}' called next more than once")
                called = True
                results[name] = value
                return await step(index + 1)

            response = await middleware(ctx, results, call_next)
            if response is None and not called:
                raise DispatchError(f"middleware '{name}' ended the chain without a response")
            return response

        try:
            response = await step(0)
        except Exception as exc:
            return self._fault(exc, ctx, where)

        if response is None:
            # a middleware continued the chain but dropped the downstream response
            response = handled[-1] if handled else self._fault(
                DispatchError("middleware chain produced no response"), ctx, where
            )
        return response

    async def _invoke(
        self,
        handler: Callable,
        ctx: RequestContext,
        specials: List[str],
        results: Mapping[str, Any],
        where: str,
    ) -> Response:
        params = ctx.params
        for name in specials:
            params[name] = results.get(name)

        try:
            args, kwargs = bind_arguments(handler, params)
            data = handler(*args, **kwargs)
            if inspect.isawaitable(data):
                data = await data
        except Exception as exc:
            return self._fault(exc, ctx, where)

        return self._normalise(data, ctx)

    def _normalise(self, data: Any, ctx: RequestContext) -> Response:
        if isinstance(data, Mapping):
            for key in ("error", "errors"):
                if data.get(key):
                    logger.warning(
                        "[%s] %s.%s business error: %s",
                        ctx.request_id, ctx.module_name, ctx.fn_name, data[key],
                    )
                    return self.dispatcher.error(400, data[key])
        return self.dispatcher.success(data)

    def _fault(self, exc: Exception, ctx: RequestContext, where: str) -> Response:
        message = getattr(exc, "message", None) or str(exc) or exc.__class__.__name__
        logger.error(
            "[%s] %s.%s failed in %s: %s | Context: %s",
            ctx.request_id,
            ctx.module_name,
            ctx.fn_name,
            where,
            message,
            getattr(exc, "context", {}),
            exc_info=exc,
        )
        return self.dispatcher.error(500, message)
