"""
=============================================================================
HTTPDISPATCH
=============================================================================

A small HTTP/1.1 request dispatcher on asyncio:

    raw request → body parser → middlewares → router → handler → response

=============================================================================
QUICK START
=============================================================================

    import asyncio
    from httpdispatch import Dispatcher, HandlerResult

    app = Dispatcher(port=1337)

    @app.post("echo")
    def echo(ctx):
        return HandlerResult(payload=ctx.payload)

    @app.post("echo/:id")
    def echo_id(ctx):
        return HandlerResult(
            status_code=201,
            content_type="text/plain",
            payload=ctx.groups["id"],
        )

    app.run()

    $ curl -X POST localhost:1337/echo -d '{"hello": "world"}'
    {"hello": "world"}

=============================================================================
PACKAGE LAYOUT
=============================================================================

    httpdispatch/
    ├── server.py        Dispatcher (registration, pipeline, lifecycle)
    ├── config.py        ServerConfig
    ├── invoke.py        sync/async call helper
    ├── core/            asyncio listener and connections
    ├── http/            requests, responses, router, path patterns
    └── middleware/      middleware chain and the built-in body parser

=============================================================================
"""

__version__ = "1.0.0"

from .config import ServerConfig
from .core.listener import ServerAlreadyRunningError, ServerNotRunningError
from .http.headers import Headers, QueryParams
from .http.request import InvalidURLError, RequestContext
from .http.response import HandlerResult, created, not_found, ok
from .middleware.base import Middleware
from .middleware.body_parser import BodyDecodeError
from .server import Dispatcher, configure_logging

__all__ = [
    "Dispatcher",
    "ServerConfig",
    "configure_logging",

    "RequestContext",
    "HandlerResult",
    "Headers",
    "QueryParams",
    "Middleware",
    "ok",
    "created",
    "not_found",

    "BodyDecodeError",
    "InvalidURLError",
    "ServerNotRunningError",
    "ServerAlreadyRunningError",

    "__version__",
]
