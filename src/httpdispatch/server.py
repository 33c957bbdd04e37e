"""
=============================================================================
DISPATCHER
=============================================================================

The public entry point. Ties the listener, the middleware chain and the
router together into one request pipeline:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                        REQUEST PIPELINE                             │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   Listener ──► IncomingRequest, ServerResponse                       │
    │                    │                                                 │
    │                    ▼                                                 │
    │   normalize_request()        → RequestContext                        │
    │                    │                                                 │
    │                    ▼                                                 │
    │   MiddlewareChain.run()      BodyParser, then use()'d middlewares    │
    │                    │                                                 │
    │                    ▼                                                 │
    │   Router.dispatch()          handler(copy with groups) or 404        │
    │                    │                                                 │
    │                    ▼                                                 │
    │   write_result()             status, headers, body                   │
    │                                                                      │
    │   ANY exception above  ──►   500, text/plain, body = str(error)      │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
USAGE
=============================================================================

    app = Dispatcher(port=8080)

    @app.post("echo")
    def echo(ctx):
        return HandlerResult(payload=ctx.payload)

    app.add_handler("echo/:id", "POST", lambda ctx: HandlerResult(
        status_code=201, content_type="text/plain", payload=ctx.groups["id"],
    ))

    async def main():
        await app.start()       # "Started httpdispatch. Listening on ..."
        ...
        await app.stop()

Or simply ``app.run()`` to serve until Ctrl+C.

=============================================================================
"""

import asyncio
import dataclasses
import logging
import sys
import time
from typing import Any, Callable, Optional, Tuple

from .config import ServerConfig
from .core.listener import Listener
from .http.request import IncomingRequest, normalize_request
from .http.response import ServerResponse, write_result
from .http.router import Handler, Router
from .middleware.base import MiddlewareChain, MiddlewareFunc
from .middleware.body_parser import BodyParser

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def configure_logging(level: str = "INFO") -> None:
    """
    Configure stdlib logging for a host process that has not done so.

    DEBUG shows route registration, connections and one line per request.
    """
    log_level = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(
        level=log_level,
        format=LOG_FORMAT,
        datefmt=LOG_DATE_FORMAT,
        stream=sys.stdout,
    )
    logging.getLogger("httpdispatch").setLevel(log_level)


def print_logger(message: str) -> None:
    """Default user-facing logger: one line to standard output."""
    print(message, flush=True)


class Dispatcher:
    """
    HTTP request dispatcher.

    =========================================================================
    CONSTRUCTION
    =========================================================================

        Dispatcher()                              # localhost:1337
        Dispatcher(port=0, logger=log.info)       # keyword overrides
        Dispatcher(ServerConfig.from_env())       # from HTTP_* variables

    Invalid configuration raises ValueError here, not at start().

    =========================================================================
    REGISTRATION
    =========================================================================

    Registration methods return the dispatcher, so calls chain:

        app.use(auth).use(audit).add_handler("echo", "POST", echo)

    Routes registered later take precedence over earlier ones that match
    the same request (see Router).

    =========================================================================
    """

    def __init__(self, config: Optional[ServerConfig] = None, **overrides: Any):
        if config is None:
            config = ServerConfig(**overrides)
        elif overrides:
            config = dataclasses.replace(config, **overrides)
        config.validate()

        self.config = config
        self._logger: Callable[[str], None] = config.logger or print_logger

        self._router = Router()
        # BodyParser is pinned at position 0
        self._middleware = MiddlewareChain(BodyParser())
        self._listener = Listener(config)

    # =========================================================================
    # PROPERTIES
    # =========================================================================

    @property
    def logger(self) -> Callable[[str], None]:
        """The configured user-facing logger callable."""
        return self._logger

    @property
    def router(self) -> Router:
        return self._router

    @property
    def middleware(self) -> MiddlewareChain:
        return self._middleware

    @property
    def is_running(self) -> bool:
        return self._listener.is_listening

    @property
    def address(self) -> Optional[Tuple[str, int]]:
        """Bound (host, port) while running, else None."""
        return self._listener.address

    # =========================================================================
    # REGISTRATION
    # =========================================================================

    def use(self, middleware: MiddlewareFunc) -> "Dispatcher":
        """
        Append a middleware.

        Middlewares run in registration order, after the body parser, each
        awaited fully before the next. They receive the RequestContext and
        mutate it in place.
        """
        self._middleware.add(middleware)
        return self

    use_middleware = use

    def add_handler(self, path: str, method: str, handler: Handler) -> "Dispatcher":
        """
        Register a handler for ``method path``.

        Args:
            path:    Template such as "echo" or "/echo/:id"
            method:  HTTP method, any case
            handler: Callable(RequestContext) returning a HandlerResult,
                     a mapping with the same keys, or None
        """
        self._router.add_route(path, method, handler)
        return self

    def route(self, path: str, method: str):
        """Decorator form of add_handler()."""
        return self._router.route(path, method)

    def get(self, path: str):
        return self._router.get(path)

    def post(self, path: str):
        return self._router.post(path)

    def put(self, path: str):
        return self._router.put(path)

    def patch(self, path: str):
        return self._router.patch(path)

    def delete(self, path: str):
        return self._router.delete(path)

    # =========================================================================
    # REQUEST HANDLING
    # =========================================================================

    async def handle_request(self, request: IncomingRequest, response: ServerResponse) -> None:
        """
        Run one request through the pipeline and fill in the response.

        This is the listener callback. It never raises for pipeline errors:
        every exception becomes a 500 response.
        """
        started = time.perf_counter()
        try:
            context = normalize_request(request)
            await self._middleware.run(context)
            result = await self._router.dispatch(context)
            write_result(result, response)
        except Exception as e:
            self._write_error(response, e)
            logger.debug(f"Pipeline error for {request.method} {request.url}", exc_info=True)
            self._log_error(f"Error handling {request.method} {request.url}: {e}")

        duration_ms = (time.perf_counter() - started) * 1000
        logger.debug(
            f"{request.method} {request.url} {int(response.status_code)} {duration_ms:.1f}ms"
        )

    def _write_error(self, response: ServerResponse, error: Exception) -> None:
        """Replace whatever was staged with a 500 carrying the error message."""
        response.reset_headers()
        response.status_code = 500
        response.set_header("Content-Type", "text/plain; charset=utf-8")
        response.end(str(error))

    def _log_error(self, message: str) -> None:
        """Send a pipeline error to the user logger; its own failure is logged here."""
        try:
            self._logger(message)
        except Exception:
            logger.exception(f"User logger failed while reporting: {message}")

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    async def start(self) -> "Dispatcher":
        """
        Bind and start serving.

        Returns:
            The dispatcher, once the socket is bound.

        Raises:
            ServerAlreadyRunningError: If already started.
            OSError: If the address cannot be bound.
        """
        host, port = await self._listener.listen(self.handle_request)
        self._logger(f"Started httpdispatch. Listening on {host}:{port}")
        return self

    async def stop(self) -> None:
        """
        Stop serving and release the socket.

        Raises:
            ServerNotRunningError: If not started, or already stopped.
        """
        await self._listener.close()
        self._logger("Stopped httpdispatch")

    async def __aenter__(self) -> "Dispatcher":
        return await self.start()

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        if self.is_running:
            await self.stop()

    def run(self) -> None:
        """
        Serve until interrupted (blocking).

        Configures logging from ``config.log_level`` and runs its own event
        loop; use start()/stop() when embedding in an existing loop.
        """
        configure_logging(self.config.log_level)

        async def serve() -> None:
            await self.start()
            try:
                await asyncio.Event().wait()
            finally:
                await self.stop()

        try:
            asyncio.run(serve())
        except KeyboardInterrupt:
            logger.info("Received keyboard interrupt")

    def __repr__(self) -> str:
        state = "running" if self.is_running else "stopped"
        return (
            f"Dispatcher({self.config.host}:{self.config.port}, "
            f"routes={len(self._router)}, middleware={len(self._middleware)}, {state})"
        )
