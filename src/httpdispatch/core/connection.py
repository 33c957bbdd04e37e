"""
=============================================================================
CONNECTION MANAGEMENT
=============================================================================

One Connection object serves one accepted TCP connection, possibly for
many requests (HTTP/1.1 keep-alive).

=============================================================================
TCP IS A BYTE STREAM, NOT A MESSAGE PROTOCOL
=============================================================================

Bytes arrive in arbitrary pieces. A request head may come in three reads,
or a head and half a body may come in one. asyncio's StreamReader buffers
for us, so the connection only has to say what it is waiting for:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   reader.readuntil(b"\\r\\n\\r\\n")  → the whole head, however split   │
    │   reader.read(n)                  → up to n body bytes               │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

The head is parsed right away. The body is NOT read here: it is wrapped
in a BodyStream and read lazily by whoever consumes the request (the body
parser middleware). Whatever is left unread after the response is ready
is drained, so the next request on the connection starts at its head.

=============================================================================
REQUEST LOOP
=============================================================================

    ┌──────────┐   head   ┌──────────┐  callback  ┌────────────┐
    │   NEW /  │ ───────► │ READING  │ ─────────► │ PROCESSING │
    │KEEP_ALIVE│          └──────────┘            └─────┬──────┘
    └────▲─────┘                                        │ response
         │                                              ▼
         │  keep-alive                            ┌──────────┐
         └─────────────────────────────────────── │ WRITING  │
                                                  └────┬─────┘
                                     close / EOF       │
                                                       ▼
                                              CLOSING → CLOSED

A malformed head is answered directly with the HTTPParseError status
(400, 431, 501, 505) and the connection is closed.

=============================================================================
"""

import asyncio
import itertools
import logging
import time
from enum import Enum
from typing import AsyncIterator, Awaitable, Callable, Optional

from ..config import ServerConfig
from ..http.request import BodyStream, HTTPParseError, IncomingRequest, RequestParser
from ..http.response import ServerResponse

logger = logging.getLogger(__name__)

RequestCallback = Callable[[IncomingRequest, ServerResponse], Awaitable[None]]

_connection_ids = itertools.count(1)


class ConnectionState(Enum):
    """Connection lifecycle states."""
    NEW = "new"                # Accepted, waiting for the first head
    READING = "reading"        # Head received, request being built
    PROCESSING = "processing"  # Callback running
    WRITING = "writing"        # Sending the response
    KEEP_ALIVE = "keep_alive"  # Response sent, waiting for the next head
    CLOSING = "closing"
    CLOSED = "closed"


async def read_body(
    reader: asyncio.StreamReader,
    length: int,
    chunk_size: int = 8192,
) -> AsyncIterator[bytes]:
    """
    Yield exactly ``length`` body bytes from the reader, in chunks.

    Raises:
        ConnectionError: If the peer closes before the body is complete.
    """
    remaining = length
    while remaining > 0:
        chunk = await reader.read(min(remaining, chunk_size))
        if not chunk:
            raise ConnectionError(
                f"Connection closed with {remaining} of {length} body bytes unread"
            )
        remaining -= len(chunk)
        yield chunk


class Connection:
    """
    Serves HTTP/1.1 requests on one accepted stream pair.

    Usage (done by the Listener):
        conn = Connection(reader, writer, on_request, config)
        await conn.serve()

    Attributes:
        id: Sequential connection number (for logging).
        state: Current ConnectionState.
        client_address: Peer (ip, port).
        requests_handled: Responses written on this connection.
    """

    def __init__(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
        on_request: RequestCallback,
        config: Optional[ServerConfig] = None,
    ):
        self.reader = reader
        self.writer = writer
        self.on_request = on_request
        self.config = config or ServerConfig()
        self.parser = RequestParser()

        self.id = next(_connection_ids)
        self.state = ConnectionState.NEW
        self.created_at = time.monotonic()
        self.requests_handled = 0
        # cleared by shutdown(); the current response then closes the connection
        self.keep_alive_allowed = self.config.keep_alive

        peer = writer.get_extra_info("peername")
        self.client_address = tuple(peer[:2]) if peer else ("", 0)

    # =========================================================================
    # PROPERTIES
    # =========================================================================

    @property
    def client_ip(self) -> str:
        return self.client_address[0]

    @property
    def client_port(self) -> int:
        return self.client_address[1]

    @property
    def age(self) -> float:
        """Seconds since the connection was accepted."""
        return time.monotonic() - self.created_at

    @property
    def is_idle(self) -> bool:
        """True while waiting for a request head."""
        return self.state in (ConnectionState.NEW, ConnectionState.KEEP_ALIVE)

    # =========================================================================
    # REQUEST LOOP
    # =========================================================================

    async def serve(self) -> None:
        """Handle requests until the peer leaves or keep-alive ends."""
        try:
            while True:
                request = await self.read_request()
                if request is None:
                    break
                if not await self.handle(request):
                    break
                # shutdown() may have arrived while the response was written
                if not self.keep_alive_allowed:
                    break
                self.state = ConnectionState.KEEP_ALIVE
        except HTTPParseError as e:
            logger.debug(f"[{self.id}] Bad request: {e}")
            await self.send_error(e.status_code, str(e))
        except ConnectionError as e:
            logger.debug(f"[{self.id}] Connection lost: {e}")
        finally:
            await self.close()

    async def read_request(self) -> Optional[IncomingRequest]:
        """
        Read and parse the next request head.

        Returns:
            The request with an unread body stream, or None when the peer
            closed the connection between requests.

        Raises:
            HTTPParseError: If the head is malformed or too large.
        """
        try:
            head = await self.reader.readuntil(b"\r\n\r\n")
        except asyncio.IncompleteReadError as e:
            if e.partial:
                logger.debug(f"[{self.id}] Peer closed mid-head ({len(e.partial)} bytes)")
            return None
        except asyncio.LimitOverrunError:
            raise HTTPParseError(
                f"Request head exceeds {self.config.max_header_size} bytes",
                status_code=431,
            )

        self.state = ConnectionState.READING
        request = self.parser.parse(head, self.client_address)
        request.stream = BodyStream(
            read_body(self.reader, request.content_length, self.config.buffer_size)
        )
        return request

    async def handle(self, request: IncomingRequest) -> bool:
        """
        Run the callback for one request and write its response.

        Returns:
            True if the connection should stay open for another request.
        """
        self.state = ConnectionState.PROCESSING
        response = ServerResponse(request.version)
        await self.on_request(request, response)
        if not response.finished:
            response.end()

        # the next head starts right after this body
        await request.stream.drain()

        keep_alive = self.keep_alive_allowed and request.is_keep_alive
        await self.send(
            response.to_bytes(
                server_name=self.config.server_name,
                keep_alive=keep_alive,
                include_body=request.method.upper() != "HEAD",
            )
        )
        self.requests_handled += 1
        return keep_alive

    # =========================================================================
    # WRITING
    # =========================================================================

    async def send(self, data: bytes) -> None:
        """
        Write bytes and wait until the transport buffer drains.

        Raises:
            ConnectionError: If the peer went away.
        """
        self.state = ConnectionState.WRITING
        self.writer.write(data)
        await self.writer.drain()

    async def send_error(self, status_code: int, message: str) -> None:
        """Answer with a plain-text error and "Connection: close"."""
        response = ServerResponse()
        response.status_code = status_code
        response.set_header("Content-Type", "text/plain; charset=utf-8")
        response.end(message)
        try:
            await self.send(response.to_bytes(self.config.server_name, keep_alive=False))
        except ConnectionError as e:
            logger.warning(f"[{self.id}] Send failed: {e}")

    # =========================================================================
    # CLOSING
    # =========================================================================

    def shutdown(self) -> None:
        """
        Stop serving further requests.

        An idle connection is closed immediately; a busy one finishes its
        current request and answers it with "Connection: close".
        """
        self.keep_alive_allowed = False
        if self.is_idle:
            self.state = ConnectionState.CLOSING
            self.writer.close()

    async def close(self) -> None:
        """Close the transport and wait for it to be released."""
        if self.state == ConnectionState.CLOSED:
            return

        self.state = ConnectionState.CLOSING
        self.writer.close()
        try:
            await self.writer.wait_closed()
        except OSError:
            pass  # peer already gone

        self.state = ConnectionState.CLOSED
        logger.debug(
            f"[{self.id}] Connection closed after {self.requests_handled} requests "
            f"({self.age:.1f}s)"
        )
