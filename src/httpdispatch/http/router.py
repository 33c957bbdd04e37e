"""
=============================================================================
URL ROUTER
=============================================================================

Maps (method, path) to a handler.

- Static paths:        /echo, /api/health
- Dynamic parameters:  /echo/:id, /posts/:post_id/comments/:comment_id
- Methods are case-insensitive: "post", "POST" and "Post" are one table

=============================================================================
ROUTING TABLE
=============================================================================

Routes are grouped by method. Each group is a list with the NEWEST route
at the front:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                        ROUTING TABLE                                │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   router.add_route("echo/:id",    "GET", by_id)      # 1st           │
    │   router.add_route("echo/static", "GET", static)     # 2nd           │
    │                                                                      │
    │   "GET"  → [ /echo/static → static,     ← registered last, tried 1st │
    │              /echo/:id    → by_id ]                                  │
    │   "POST" → [ ... ]                                                   │
    │                                                                      │
    │   GET /echo/static  →  static     (first match wins)                 │
    │   GET /echo/42      →  by_id      {"id": "42"}                       │
    │   GET /nothing      →  404                                           │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Precedence is LAST-REGISTERED-FIRST, not "most specific first". A
parameterized route registered after a static one shadows it:

    router.add_route("echo/static", "GET", static)
    router.add_route("echo/:id",    "GET", by_id)
    GET /echo/static  →  by_id {"id": "static"}

There is no 405: a path registered only for POST answers GET with 404.

=============================================================================
"""

import dataclasses
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from ..invoke import invoke
from .pattern import PathPattern
from .request import RequestContext
from .response import not_found

logger = logging.getLogger(__name__)

Handler = Callable[[RequestContext], Any]


@dataclass(frozen=True)
class RouteEntry:
    """
    One registration: method + compiled path pattern + handler.

        RouteEntry(
            method="POST",                      # upper-cased
            pattern=PathPattern("/echo/:id"),   # compiled once
            handler=echo_by_id,                 # sync or async
        )
    """

    method: str
    pattern: PathPattern
    handler: Handler

    @property
    def path(self) -> str:
        return self.pattern.template


@dataclass
class RouteMatch:
    """
    Result of a successful match.

        Pattern: /echo/:id
        Path:    /echo/123
        Result:  RouteMatch(route=<RouteEntry>, params={"id": "123"})
    """

    route: RouteEntry
    params: Dict[str, str]


class Router:
    """
    Method-grouped route table with last-registered-first precedence.

    Usage:
        router = Router()
        router.add_route("echo", "POST", echo)

        @router.get("echo/:id")
        def get_echo(ctx):
            return ok(ctx.groups["id"])

        result = await router.dispatch(ctx)
    """

    def __init__(self):
        self._routes: Dict[str, List[RouteEntry]] = {}

    # =========================================================================
    # ROUTE REGISTRATION
    # =========================================================================

    def add_route(self, path: str, method: str, handler: Handler) -> RouteEntry:
        """
        Register a route at the FRONT of its method's list.

        Args:
            path:    Template, leading "/" optional ("echo/:id" == "/echo/:id")
            method:  HTTP method, any case
            handler: Callable taking a RequestContext, sync or async

        Raises:
            TypeError:  If the handler is not callable.
            ValueError: If the method is empty or the template is invalid.
        """
        if not callable(handler):
            raise TypeError(f"Handler for {method} {path} is not callable")
        if not method:
            raise ValueError("Route method must not be empty")

        entry = RouteEntry(
            method=method.upper(),
            pattern=PathPattern(path),
            handler=handler,
        )
        self._routes.setdefault(entry.method, []).insert(0, entry)

        logger.debug(f"Route registered: {entry.method} {entry.path}")
        return entry

    # =========================================================================
    # MATCHING
    # =========================================================================

    def match(self, method: str, path: str) -> Optional[RouteMatch]:
        """
        Find the route for a request.

        Scans the method's list front to back and returns the first match.
        """
        for route in self._routes.get(method.upper(), ()):
            params = route.pattern.match(path)
            if params is not None:
                return RouteMatch(route=route, params=params)
        return None

    async def dispatch(self, context: RequestContext) -> Any:
        """
        Route a request to its handler and return the handler's result.

        The handler receives a COPY of the context with ``groups`` set; the
        caller's context is left as the middlewares saw it.

        Returns:
            Whatever the handler returned, or the 404 result on no match.
        """
        found = self.match(context.method, context.path)
        if found is None:
            return not_found()

        handler_context = dataclasses.replace(context, groups=found.params)
        return await invoke(found.route.handler, handler_context)

    # =========================================================================
    # DECORATOR-STYLE REGISTRATION
    # =========================================================================
    #
    #     @router.post("echo")
    #     def echo(ctx):
    #         return ok(ctx.payload)
    #
    # is equivalent to:
    #
    #     router.add_route("echo", "POST", echo)
    #
    # =========================================================================

    def route(self, path: str, method: str) -> Callable[[Handler], Handler]:
        """Decorator registering the function for ``method path``."""
        def decorator(handler: Handler) -> Handler:
            self.add_route(path, method, handler)
            return handler
        return decorator

    def get(self, path: str) -> Callable[[Handler], Handler]:
        return self.route(path, "GET")

    def post(self, path: str) -> Callable[[Handler], Handler]:
        return self.route(path, "POST")

    def put(self, path: str) -> Callable[[Handler], Handler]:
        return self.route(path, "PUT")

    def patch(self, path: str) -> Callable[[Handler], Handler]:
        return self.route(path, "PATCH")

    def delete(self, path: str) -> Callable[[Handler], Handler]:
        return self.route(path, "DELETE")

    # =========================================================================
    # INTROSPECTION
    # =========================================================================

    def routes(self) -> List[RouteEntry]:
        """All registered routes, grouped by method, in matching order."""
        return [route for group in self._routes.values() for route in group]

    def methods(self) -> List[str]:
        return sorted(self._routes)

    def __len__(self) -> int:
        return sum(len(group) for group in self._routes.values())
