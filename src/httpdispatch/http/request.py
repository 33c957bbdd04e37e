"""
=============================================================================
HTTP REQUESTS: RAW REQUEST, REQUEST CONTEXT, NORMALIZER
=============================================================================

A request exists in two shapes on its way through the dispatcher:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                        REQUEST SHAPES                               │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   socket bytes                                                       │
    │        │                                                             │
    │        │  RequestParser.parse()        (listener side)               │
    │        ▼                                                             │
    │   IncomingRequest                                                    │
    │     method  "post"                                                   │
    │     url     "/echo/123?debug=1"                                      │
    │     headers Headers(...)                                             │
    │     stream  BodyStream  ← body bytes NOT read yet                    │
    │        │                                                             │
    │        │  normalize_request()          (dispatcher side)             │
    │        ▼                                                             │
    │   RequestContext                                                     │
    │     path    "/echo/123"                                              │
    │     query   QueryParams("debug=1")                                   │
    │     method  "post"                                                   │
    │     headers Headers(...)                                             │
    │     payload None   ← filled in by the body parser middleware         │
    │     groups  None   ← filled in on the handler's copy by the router   │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

The listener only parses the request HEAD (request line + headers). The
body is handed over as a BodyStream: an async iterator of byte chunks that
can be consumed exactly once. Reading it is the body parser's job.

=============================================================================
"""

import re
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Dict, List, Optional, Tuple
from urllib.parse import urlsplit

from .headers import Headers, QueryParams
from .mime_types import media_type
from .pattern import normalize_path


class HTTPParseError(Exception):
    """
    Raised when the request head cannot be parsed.

    Carries the status code the listener answers with before closing the
    connection:

        400 Bad Request                - Malformed request line or header
        431 Header Fields Too Large    - Head exceeds max_header_size
        501 Not Implemented            - Transfer-Encoding not supported
        505 HTTP Version Not Supported - Unknown HTTP version
    """

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.status_code = status_code


class InvalidURLError(ValueError):
    """Raised by the normalizer when a request URL cannot be parsed."""


# =============================================================================
# BODY STREAM
# =============================================================================

class BodyStream:
    """
    One-shot async stream of request body chunks.

        async for chunk in request.stream:   # bytes, in arrival order
            ...

    Iterating a second time raises RuntimeError: the bytes are gone.
    ``drain()`` discards whatever is left so the connection can be reused
    for the next keep-alive request.
    """

    def __init__(self, chunks: AsyncIterator[bytes]):
        self._chunks = chunks
        self._consumed = False

    def __aiter__(self) -> AsyncIterator[bytes]:
        if self._consumed:
            raise RuntimeError("Request body has already been consumed")
        self._consumed = True
        return self._chunks

    @property
    def consumed(self) -> bool:
        return self._consumed

    async def read(self) -> bytes:
        """Read the whole body into memory."""
        return b"".join([chunk async for chunk in self])

    async def drain(self) -> None:
        """Discard unread body bytes (safe to call after a partial read)."""
        self._consumed = True
        async for _ in self._chunks:
            pass

    @classmethod
    def from_bytes(cls, data: bytes = b"", chunk_size: int = 8192) -> "BodyStream":
        """Build a stream over an in-memory body, split into ``chunk_size`` pieces."""
        if chunk_size < 1:
            raise ValueError("chunk_size must be >= 1")

        async def chunks() -> AsyncIterator[bytes]:
            for start in range(0, len(data), chunk_size):
                yield data[start:start + chunk_size]

        return cls(chunks())

    @classmethod
    def empty(cls) -> "BodyStream":
        return cls.from_bytes(b"")


# =============================================================================
# RAW REQUEST (listener → dispatcher)
# =============================================================================

@dataclass
class IncomingRequest:
    """
    A request as delivered by the listener, before normalization.

    Attributes:
        method:         Method token exactly as sent ("GET", "post", ...)
        url:            Request target ("/path?query" or absolute form)
        version:        "HTTP/1.1" or "HTTP/1.0"
        headers:        Request headers (case-insensitive, multi-valued)
        stream:         Unread request body
        client_address: (ip, port) of the peer
    """

    method: str
    url: str
    version: str = "HTTP/1.1"
    headers: Headers = field(default_factory=Headers)
    stream: BodyStream = field(default_factory=BodyStream.empty, repr=False)
    client_address: tuple = ("", 0)

    @property
    def content_length(self) -> int:
        """Declared body length (0 when absent)."""
        value = self.headers.get("content-length")
        return int(value) if value else 0

    @property
    def is_keep_alive(self) -> bool:
        """
        HTTP/1.1 keeps the connection open unless "Connection: close";
        HTTP/1.0 closes it unless "Connection: keep-alive".
        """
        connection = self.headers.get("connection", "").lower()
        if self.version == "HTTP/1.1":
            return connection != "close"
        return connection == "keep-alive"


class RequestParser:
    """
    Parses a raw request HEAD into an IncomingRequest.

    The head is everything up to and including the blank line:

        POST /echo?x=1 HTTP/1.1\\r\\n        ← request line
        Host: localhost:1337\\r\\n           ← headers
        Content-Type: application/json\\r\\n
        Content-Length: 17\\r\\n
        \\r\\n                                ← end of head

    The body is NOT part of the input; the connection streams it separately
    using the Content-Length parsed here.
    """

    # token per RFC 9110; case is preserved, the router upper-cases later
    REQUEST_LINE_PATTERN = re.compile(
        r"^([!#$%&'*+\-.^_`|~0-9A-Za-z]+) ([^ ]+) (HTTP/\d\.\d)$"
    )
    HEADER_PATTERN = re.compile(r"^([^:\s]+):\s*(.*)$")

    def parse(self, head: bytes, client_address: tuple = ("", 0)) -> IncomingRequest:
        """
        Parse the request head.

        Raises:
            HTTPParseError: If the head is malformed or unsupported.
        """
        text = head.decode("utf-8", errors="replace")
        lines = text.rstrip("\r\n").split("\r\n")
        if not lines or not lines[0]:
            raise HTTPParseError("Empty request line")

        match = self.REQUEST_LINE_PATTERN.match(lines[0])
        if not match:
            raise HTTPParseError(f"Invalid request line: {lines[0]!r}")
        method, url, version = match.groups()

        if version not in ("HTTP/1.0", "HTTP/1.1"):
            raise HTTPParseError(f"Unsupported HTTP version: {version}", status_code=505)

        headers = self._parse_headers(lines[1:])

        if "transfer-encoding" in headers:
            raise HTTPParseError(
                "Transfer-Encoding is not supported; send Content-Length",
                status_code=501,
            )

        lengths = headers.get_list("content-length")
        if lengths:
            if len(set(lengths)) > 1:
                raise HTTPParseError("Conflicting Content-Length headers")
            if not lengths[0].isdigit():
                raise HTTPParseError(f"Invalid Content-Length: {lengths[0]!r}")

        return IncomingRequest(
            method=method,
            url=url,
            version=version,
            headers=headers,
            client_address=client_address,
        )

    def _parse_headers(self, lines: List[str]) -> Headers:
        """
        Parse "Name: value" lines.

        Repeated headers are kept as separate values rather than comma-joined,
        so ``headers.get_list("accept")`` returns each line's value.
        Lines starting with whitespace continue the previous header
        (obsolete folding, still accepted).
        """
        pairs: List[Tuple[str, str]] = []
        for line in lines:
            if not line:
                continue

            if line[0] in (" ", "\t"):
                if not pairs:
                    raise HTTPParseError("Header continuation without a header")
                name, value = pairs[-1]
                pairs[-1] = (name, f"{value} {line.strip()}")
                continue

            match = self.HEADER_PATTERN.match(line)
            if not match:
                raise HTTPParseError(f"Invalid header line: {line!r}")

            name, value = match.groups()
            pairs.append((name, value.strip()))

        try:
            return Headers(pairs)
        except ValueError as e:
            raise HTTPParseError(str(e))


# =============================================================================
# REQUEST CONTEXT (what middlewares and handlers see)
# =============================================================================

@dataclass
class RequestContext:
    """
    The mutable per-request record threaded through the pipeline.

    Middlewares mutate it in place (typically setting ``payload``). The
    handler receives a COPY with ``groups`` filled in, so path parameters
    are never visible to middlewares.
    """

    path: str
    query: QueryParams
    method: str
    headers: Headers
    stream: BodyStream = field(default_factory=BodyStream.empty, repr=False)
    payload: Any = None
    groups: Optional[Dict[str, str]] = None
    url: str = ""
    client_address: tuple = ("", 0)

    @property
    def content_type(self) -> str:
        """Media type of the request body without parameters ("" if absent)."""
        return media_type(self.headers.get("content-type"))

    def get_header(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """Case-insensitive header lookup (first value)."""
        return self.headers.get(name, default)


def normalize_request(request: IncomingRequest) -> RequestContext:
    """
    Turn a raw request into a RequestContext.

    - path:    URL path, always starting with "/", query stripped
    - query:   parsed from the URL query component
    - method:  kept exactly as sent (the router matches case-insensitively)
    - headers: shared with the raw request

    Raises:
        InvalidURLError: If the URL cannot be parsed.
    """
    url = request.url
    if not url or any(ch.isspace() or ord(ch) < 0x20 or ord(ch) == 0x7F for ch in url):
        raise InvalidURLError(f"Invalid URL: {url!r}")
    try:
        parts = urlsplit(url)
    except ValueError as e:
        raise InvalidURLError(f"Invalid URL: {url!r}: {e}") from e

    return RequestContext(
        path=normalize_path(parts.path),
        query=QueryParams(parts.query),
        method=request.method,
        headers=request.headers,
        stream=request.stream,
        url=url,
        client_address=request.client_address,
    )
