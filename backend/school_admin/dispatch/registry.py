"""
Middleware Registry
====================

Name → factory table. A factory takes the shared injectable mapping
(settings, managers, store, tokens, dispatcher) and returns a middleware:

    async def middleware(ctx, results, call_next) -> Response

Unknown names resolve to None so a handler may declare a special parameter
before its middleware exists.
"""

import logging
from typing import Any, Awaitable, Callable, Dict, Iterator, List, Mapping, Optional

from starlette.responses import Response

from school_admin.dispatch.context import RequestContext
from school_admin.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

CallNext = Callable[..., Awaitable[Response]]
Middleware = Callable[[RequestContext, Dict[str, Any], CallNext], Awaitable[Optional[Response]]]
MiddlewareFactory = Callable[[Mapping[str, Any]], Middleware]


class MiddlewareRegistry:
    """Registry of middleware factories keyed by special-parameter name."""

    def __init__(self, factories: Optional[Mapping[str, MiddlewareFactory]] = None):
        self._factories: Dict[str, MiddlewareFactory] = {}
        for name, factory in (factories or {}).items():
            self.register(name, factory)

    def register(self, name: str, factory: Optional[MiddlewareFactory] = None):
        """
        Register ``factory`` under ``name``. Without a factory, returns a
        decorator:

            @registry.register("__long_token")
            def long_token(injectable): ...
        """
        if factory is None:
            def decorator(fn: MiddlewareFactory) -> MiddlewareFactory:
                self.register(name, fn)
                return fn
            return decorator

        if not callable(factory):
            raise ConfigurationError(f"middleware factory for '{name}' is not callable")
        if name in self._factories:
            raise ConfigurationError(f"middleware '{name}' is already registered")
        self._factories[name] = factory
        logger.debug("middleware registered: %s", name)
        return factory

    def get(self, name: str) -> Optional[MiddlewareFactory]:
        return self._factories.get(name)

    def names(self) -> List[str]:
        return list(self._factories)

    def __contains__(self, name: object) -> bool:
        return name in self._factories

    def __iter__(self) -> Iterator[str]:
        return iter(self._factories)

    def __len__(self) -> int:
        return len(self._factories)
