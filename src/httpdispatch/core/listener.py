"""
=============================================================================
ASYNCIO TCP LISTENER
=============================================================================

Owns the listening socket and one Connection per accepted client. Every
request is handed to a single callback:

    async def on_request(request: IncomingRequest, response: ServerResponse):
        ...

=============================================================================
EVENT-DRIVEN MODEL
=============================================================================

Everything runs on one event loop thread. Connections interleave only at
await points (socket reads and writes, async middleware and handlers):

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   asyncio.start_server ── accept ──► Connection 1  serve()           │
    │         (one socket)     accept ──► Connection 2  serve()           │
    │                          accept ──► Connection 3  serve()           │
    │                                                                      │
    │   Each serve() is its own task; a slow handler on one connection     │
    │   never blocks the others as long as it awaits.                      │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
LIFECYCLE
=============================================================================

    IDLE ──listen()──► LISTENING ──close()──► CLOSING ──► IDLE

    listen()  while LISTENING  → ServerAlreadyRunningError
    close()   while not LISTENING → ServerNotRunningError

close() is graceful:
    1. stop accepting new connections
    2. close idle keep-alive connections
    3. let in-flight requests finish (their responses say "Connection: close")
    4. wait for the listening socket to be released

=============================================================================
"""

import asyncio
import logging
from enum import Enum
from typing import Dict, Optional, Tuple

from ..config import ServerConfig
from .connection import Connection, RequestCallback

logger = logging.getLogger(__name__)


class ServerNotRunningError(RuntimeError):
    """Raised when stopping a listener that is not listening."""


class ServerAlreadyRunningError(RuntimeError):
    """Raised when starting a listener that is already listening."""


class ListenerState(Enum):
    IDLE = "idle"
    LISTENING = "listening"
    CLOSING = "closing"


class Listener:
    """
    HTTP/1.1 listener on top of asyncio streams.

    Usage:
        listener = Listener(ServerConfig(port=0))
        host, port = await listener.listen(on_request)
        ...
        await listener.close()
    """

    def __init__(self, config: Optional[ServerConfig] = None):
        self.config = config or ServerConfig()
        self.state = ListenerState.IDLE
        self._server: Optional[asyncio.AbstractServer] = None
        self._on_request: Optional[RequestCallback] = None
        self._connections: Dict[Connection, asyncio.Task] = {}

    @property
    def is_listening(self) -> bool:
        return self.state == ListenerState.LISTENING

    @property
    def address(self) -> Optional[Tuple[str, int]]:
        """Actual bound (host, port), or None when not listening."""
        if self._server is None or not self._server.sockets:
            return None
        host, port = self._server.sockets[0].getsockname()[:2]
        return host, port

    @property
    def connection_count(self) -> int:
        return len(self._connections)

    async def listen(self, on_request: RequestCallback) -> Tuple[str, int]:
        """
        Bind and start accepting connections.

        Returns:
            The bound (host, port); the port is the real one when 0 was
            configured.

        Raises:
            ServerAlreadyRunningError: If already listening.
            OSError: If the address cannot be bound.
        """
        if self.state != ListenerState.IDLE:
            raise ServerAlreadyRunningError("Server is already running")

        self._on_request = on_request
        try:
            self._server = await asyncio.start_server(
                self._handle_connection,
                self.config.host,
                self.config.port,
                backlog=self.config.backlog,
                limit=self.config.max_header_size,
            )
        except OSError as e:
            logger.error(f"Failed to bind to {self.config.host}:{self.config.port}: {e}")
            raise

        self.state = ListenerState.LISTENING
        host, port = self.address
        logger.debug(f"Listening on {host}:{port}")
        return host, port

    async def _handle_connection(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
    ) -> None:
        conn = Connection(reader, writer, self._on_request, self.config)
        self._connections[conn] = asyncio.current_task()
        logger.debug(f"[{conn.id}] Accepted connection from {conn.client_ip}:{conn.client_port}")

        if self.state != ListenerState.LISTENING:
            conn.shutdown()
        try:
            await conn.serve()
        except Exception as e:
            logger.exception(f"[{conn.id}] Connection error: {e}")
        finally:
            self._connections.pop(conn, None)

    async def close(self) -> None:
        """
        Stop accepting connections and wait for open ones to finish.

        Raises:
            ServerNotRunningError: If not listening.
        """
        if self.state != ListenerState.LISTENING:
            raise ServerNotRunningError("Server is not running")

        self.state = ListenerState.CLOSING
        logger.debug(f"Closing listener with {self.connection_count} open connection(s)")
        server = self._server
        try:
            server.close()

            for conn in list(self._connections):
                conn.shutdown()

            # a handler may stop the server from inside its own connection
            current = asyncio.current_task()
            from_connection = current in self._connections.values()
            pending = [task for task in self._connections.values() if task is not current]
            if pending:
                await asyncio.wait(pending)

            # wait_closed() also waits for the calling connection on newer Pythons
            if not from_connection:
                await server.wait_closed()
        finally:
            self._server = None
            self._on_request = None
            self.state = ListenerState.IDLE

        logger.debug("Listener closed")
