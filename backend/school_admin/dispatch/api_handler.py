"""
ApiHandler — Route Resolver for /api/{module_name}/{fn_name}
==============================================================

What:  The single endpoint behind every business call.
How:   1. look up the module (manager) by name
       2. read its exposure list (``http_exposed``, entries "verb=name")
       3. find the entry matching the HTTP verb and function name
       4. pick the callable and hand it to the VirtualStack

Every resolution failure is a 404 produced before any middleware runs.

Exposure entries:
    "post=create_school"   → POST /api/school/create_school
    "get_school"           → GET  (verb defaults to get)
    "=get_school"          → GET
"""

import logging
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from starlette.requests import Request
from starlette.responses import Response

from school_admin.dispatch.context import RequestContext
from school_admin.dispatch.responses import ResponseDispatcher
from school_admin.dispatch.stack import VirtualStack
from school_admin.exceptions import BadRequestError, ConfigurationError, RouteNotFoundError

logger = logging.getLogger(__name__)

DEFAULT_VERB = "get"


def parse_exposure(entry: str) -> Tuple[str, str]:
    """Splits "verb=name" into (verb, name); a missing verb means "get"."""
    verb, sep, name = entry.partition("=")
    if not sep:
        return DEFAULT_VERB, entry.strip()
    return (verb.strip().lower() or DEFAULT_VERB), name.strip()


class ApiHandler:
    """
    Args:
        managers:    module name → object exposing handlers
        stack:       VirtualStack running the middleware chain
        prop:        attribute holding the exposure list
    """

    def __init__(
        self,
        managers: Mapping[str, Any],
        stack: VirtualStack,
        prop: str = "http_exposed",
        dispatcher: Optional[ResponseDispatcher] = None,
    ):
        self.managers = managers
        self.stack = stack
        self.prop = prop
        self.dispatcher = dispatcher or stack.dispatcher
        self._check_exposure_tables()

    def _check_exposure_tables(self) -> None:
        """Fails startup on a duplicated (verb, name) pair within a module."""
        for module_name, module in self.managers.items():
            exposed = getattr(module, self.prop, None)
            if not isinstance(exposed, (list, tuple)):
                continue
            seen: Dict[Tuple[str, str], str] = {}
            for entry in exposed:
                key = parse_exposure(entry)
                if key in seen:
                    raise ConfigurationError(
                        f"module '{module_name}' exposes '{key[0]}={key[1]}' twice",
                        context={"entries": [seen[key], entry]},
                    )
                seen[key] = entry

    def routes(self) -> List[Tuple[str, str, str]]:
        """(verb, module, name) for every exposed function, for logs and docs."""
        table = []
        for module_name, module in self.managers.items():
            for entry in getattr(module, self.prop, None) or []:
                verb, name = parse_exposure(entry)
                table.append((verb, module_name, name))
        return table

    def resolve(self, module_name: str, fn_name: str, verb: str) -> Tuple[Any, Callable]:
        """
        Returns (module, handler).

        Raises:
            RouteNotFoundError: module, exposure list, entry or callable missing
        """
        module = self.managers.get(module_name)
        if module is None:
            raise RouteNotFoundError("module not found", module_name, fn_name)

        exposed = getattr(module, self.prop, None)
        if not isinstance(exposed, (list, tuple)):
            raise RouteNotFoundError("module has no exposed functions", module_name, fn_name)

        verb = (verb or DEFAULT_VERB).lower()
        match = None
        for entry in exposed:
            entry_verb, name = parse_exposure(entry)
            if name == fn_name and entry_verb == verb:
                match = entry
                break
        if match is None:
            raise RouteNotFoundError("method not found", module_name, fn_name)

        # The method is looked up under the entry's name as written; an entry
        # without "=" has none, and a padded one ("get= x") names no attribute.
        # Both fall back to fn_name.
        # TODO: the fn_name fallback can hide a typo in the exposure list; decide
        # whether to drop it once every module is audited.
        _, sep, exposed_name = match.partition("=")
        handler = self._callable(module, exposed_name if sep else None) or self._callable(module, fn_name)
        if handler is None:
            raise RouteNotFoundError("handler not found", module_name, fn_name)
        return module, handler

    @staticmethod
    def _callable(module: Any, name: Optional[str]) -> Optional[Callable]:
        if not name or name.startswith("_"):
            return None
        candidate = getattr(module, name, None)
        return candidate if callable(candidate) else None

    async def mw(self, request: Request) -> Response:
        """FastAPI endpoint: resolve, build the request context, run the stack."""
        module_name = request.path_params.get("module_name", "")
        fn_name = request.path_params.get("fn_name", "")
        try:
            module, handler = self.resolve(module_name, fn_name, request.method)
        except RouteNotFoundError as exc:
            logger.info("%s /api/%s/%s: %s", request.method, module_name, fn_name, exc.message)
            return self.dispatcher.error(404, exc.message)

        try:
            ctx = await RequestContext.from_request(request)
        except BadRequestError as exc:
            return self.dispatcher.error(400, exc.message)

        return await self.stack.run(handler, ctx, module)
