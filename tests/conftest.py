"""
pytest configuration and fixtures.
"""

import asyncio
import json
from dataclasses import dataclass, field
from typing import Dict, List, Optional

import pytest

# Add src to path for imports
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from httpdispatch import ServerConfig
from httpdispatch.http import Headers, IncomingRequest, RequestContext, QueryParams
from httpdispatch.http.request import BodyStream


@dataclass
class RawResponse:
    """A response as read off the socket by the test client."""

    status_code: int
    reason: str
    headers: Dict[str, List[str]] = field(default_factory=dict)
    body: bytes = b""

    def header(self, name: str) -> Optional[str]:
        values = self.headers.get(name.lower())
        return values[0] if values else None

    @property
    def text(self) -> str:
        return self.body.decode("utf-8")

    def json(self):
        return json.loads(self.body)


async def read_response(reader: asyncio.StreamReader, method: str = "GET") -> RawResponse:
    """Read one Content-Length framed response."""
    head = await reader.readuntil(b"\r\n\r\n")
    lines = head.decode("latin-1").rstrip("\r\n").split("\r\n")
    _, status, reason = lines[0].split(" ", 2)

    headers: Dict[str, List[str]] = {}
    for line in lines[1:]:
        name, value = line.split(":", 1)
        headers.setdefault(name.strip().lower(), []).append(value.strip())

    length = int(headers.get("content-length", ["0"])[0])
    body = b""
    if method.upper() != "HEAD" and length:
        body = await reader.readexactly(length)
    return RawResponse(int(status), reason, headers, body)


async def send_request(
    port: int,
    method: str = "GET",
    path: str = "/",
    body: bytes = b"",
    headers: Optional[Dict[str, str]] = None,
    host: str = "127.0.0.1",
) -> RawResponse:
    """Open a connection, send one request with "Connection: close", read the response."""
    reader, writer = await asyncio.open_connection(host, port)
    try:
        lines = [f"{method} {path} HTTP/1.1", f"Host: {host}:{port}", "Connection: close"]
        for name, value in (headers or {}).items():
            lines.append(f"{name}: {value}")
        if body:
            lines.append(f"Content-Length: {len(body)}")
        writer.write(("\r\n".join(lines) + "\r\n\r\n").encode("utf-8") + body)
        await writer.drain()
        return await read_response(reader, method)
    finally:
        writer.close()
        await writer.wait_closed()


async def send_raw(port: int, data: bytes, host: str = "127.0.0.1") -> bytes:
    """Send raw bytes and return everything the server writes until it closes."""
    reader, writer = await asyncio.open_connection(host, port)
    try:
        writer.write(data)
        await writer.drain()
        return await reader.read()
    finally:
        writer.close()
        await writer.wait_closed()


def make_context(
    path: str = "/",
    method: str = "GET",
    body: bytes = b"",
    headers: Optional[Dict[str, str]] = None,
    query: str = "",
    chunk_size: int = 8192,
) -> RequestContext:
    """Build a RequestContext over an in-memory body."""
    return RequestContext(
        path=path,
        query=QueryParams(query),
        method=method,
        headers=Headers(headers or {}),
        stream=BodyStream.from_bytes(body, chunk_size=chunk_size),
    )


def make_request(
    url: str = "/",
    method: str = "GET",
    body: bytes = b"",
    headers: Optional[Dict[str, str]] = None,
) -> IncomingRequest:
    """Build an IncomingRequest over an in-memory body."""
    return IncomingRequest(
        method=method,
        url=url,
        headers=Headers(headers or {}),
        stream=BodyStream.from_bytes(body),
    )


@pytest.fixture
def http_client():
    """Coroutine function sending one request to a local port."""
    return send_request


@pytest.fixture
def raw_client():
    """Coroutine function sending raw bytes to a local port."""
    return send_raw


@pytest.fixture
def context_factory():
    return make_context


@pytest.fixture
def request_factory():
    return make_request


@pytest.fixture
def log_lines() -> List[str]:
    """Collects lines written to a dispatcher's user-facing logger."""
    return []


@pytest.fixture
def config(log_lines: List[str]) -> ServerConfig:
    """Test configuration: loopback, OS-assigned port, captured logger."""
    return ServerConfig(
        host="127.0.0.1",
        port=0,  # Let OS pick a free port
        logger=log_lines.append,
        log_level="WARNING",
    )
