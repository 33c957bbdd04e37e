"""
=============================================================================
MIDDLEWARE
=============================================================================

Callables that run before routing and mutate the RequestContext.

BodyParser:
    Built in, always first. Decodes the request body into ctx.payload
    (JSON by default, text for text/*).

Anything else is user code registered with Dispatcher.use():

    def stamp(ctx):
        ctx.payload = {**(ctx.payload or {}), "seen": True}

    app.use(stamp)

=============================================================================
"""

from .base import Middleware, MiddlewareChain, middleware_name
from .body_parser import BodyDecodeError, BodyParser, read_text

__all__ = [
    "Middleware",
    "MiddlewareChain",
    "middleware_name",
    "BodyParser",
    "BodyDecodeError",
    "read_text",
]
