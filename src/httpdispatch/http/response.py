"""
=============================================================================
HTTP RESPONSES: HANDLER RESULTS AND THE SERIALIZER
=============================================================================

Handlers never touch the wire. They return a HandlerResult describing the
response, and the serializer turns it into status, headers and body on a
ServerResponse, which the connection then writes out.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                      RESPONSE LIFECYCLE                             │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   handler returns          write_result()         Connection         │
    │   HandlerResult   ─────►   fills        ─────►    writes             │
    │                            ServerResponse         to_bytes()         │
    │                                                                      │
    │   HandlerResult(           status_code = 201      HTTP/1.1 201 ...   │
    │     status_code=201,       Content-Type: text/    Content-Type: ...  │
    │     content_type=          plain                  Content-Length: 3  │
    │       "text/plain",        body = b"123"          ...                │
    │     payload="123",                                                   │
    │   )                                                                  │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
SERIALIZATION RULES
=============================================================================

    1. status_code   → defaults to 200
    2. content_type  → defaults to application/json, set as Content-Type
    3. headers       → applied in order AFTER Content-Type; each entry
                       REPLACES earlier values of the same name, so a result
                       header can override Content-Type
    4. payload       → encoded by content kind:

        ┌──────────────┬──────────────────────────────────────────────────┐
        │  Kind        │  Body                                            │
        ├──────────────┼──────────────────────────────────────────────────┤
        │  JSON        │  json.dumps(payload); None → empty body          │
        │  TEXT/OTHER  │  str → UTF-8, bytes → as is, None → empty body   │
        │              │  anything else → TypeError                       │
        └──────────────┴──────────────────────────────────────────────────┘

=============================================================================
"""

import json
from collections.abc import Mapping
from dataclasses import dataclass, fields
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

from .headers import HeaderValue, Headers, validate_header
from .mime_types import JSON, ContentKind, classify
from .status_codes import HTTPStatus, reason_phrase


HeaderSource = Union[Headers, Mapping, None]


@dataclass
class HandlerResult:
    """
    What a route handler returns.

    Every field is optional:

        HandlerResult()                                  # 200, JSON, empty
        HandlerResult(payload={"hello": "world"})        # 200, JSON body
        HandlerResult(
            status_code=201,
            content_type="text/plain",
            headers={"x-example": ["a", "b"]},
            payload="created",
        )

    Handlers may also return a plain mapping with the same keys, or None.
    """

    status_code: Optional[int] = None
    content_type: Optional[str] = None
    headers: HeaderSource = None
    payload: Any = None

    @classmethod
    def coerce(cls, value: Any) -> "HandlerResult":
        """
        Accept whatever a handler returned and turn it into a HandlerResult.

        Raises:
            TypeError: For unknown mapping keys or unsupported return types.
        """
        if value is None:
            return cls()
        if isinstance(value, cls):
            return value
        if isinstance(value, Mapping):
            known = {f.name for f in fields(cls)}
            unknown = set(value) - known
            if unknown:
                raise TypeError(
                    f"Unknown handler result field(s): {', '.join(sorted(unknown))}"
                )
            return cls(**value)
        raise TypeError(
            f"Handler returned {type(value).__name__}; "
            "expected HandlerResult, a mapping or None"
        )


# =============================================================================
# SERVER RESPONSE (what the listener writes)
# =============================================================================

class ServerResponse:
    """
    Per-request response buffer handed to the dispatcher by the listener.

    Mirrors a minimal node-style response object:

        response.status_code = 404
        response.set_header("Content-Type", "application/json")
        response.set_header("Set-Cookie", ["a=1", "b=2"])
        response.end(b"...")

    Nothing is sent until the connection calls ``to_bytes()``.
    """

    def __init__(self, version: str = "HTTP/1.1"):
        self.version = version
        self.status_code: int = HTTPStatus.OK
        self.headers = Headers()
        self.body: bytes = b""
        self.finished = False

    def set_header(self, name: str, value: HeaderValue) -> "ServerResponse":
        """Set a header, replacing earlier values (case-insensitive)."""
        self.headers.set(name, value)
        return self

    def get_header(self, name: str) -> Optional[str]:
        return self.headers.get(name)

    def remove_header(self, name: str) -> None:
        self.headers.remove(name)

    def reset_headers(self) -> None:
        """Discard every staged header."""
        self.headers = Headers()

    def end(self, body: Union[str, bytes, None] = None) -> None:
        """
        Finish the response.

        Raises:
            RuntimeError: If the response was already ended.
        """
        if self.finished:
            raise RuntimeError("Response already ended")
        if body is None:
            body = b""
        elif isinstance(body, str):
            body = body.encode("utf-8")
        self.body = body
        self.finished = True

    @property
    def status_line(self) -> str:
        return f"{self.version} {int(self.status_code)} {reason_phrase(self.status_code)}"

    def to_bytes(
        self,
        server_name: str = "httpdispatch/1.0",
        keep_alive: bool = True,
        include_body: bool = True,
    ) -> bytes:
        """
        Serialize for the socket.

            HTTP/1.1 200 OK\\r\\n                 ← status line
            Content-Type: application/json\\r\\n  ← staged headers
            Content-Length: 17\\r\\n              ← always from the body
            Date: Mon, 19 Oct 2026 ... GMT\\r\\n  ← added if missing
            Server: httpdispatch/1.0\\r\\n        ← added if missing
            Connection: keep-alive\\r\\n          ← always from keep_alive
            \\r\\n
            {"hello": "world"}

        Content-Length and Connection frame the message, so staged values
        for them are replaced.

        ``include_body=False`` is used for HEAD: headers (including
        Content-Length) are sent as for GET, the body is not.
        """
        headers = self.headers.copy()

        headers.set("Content-Length", str(len(self.body)))
        headers.set("Connection", "keep-alive" if keep_alive else "close")
        if "date" not in headers:
            headers.set("Date", format_http_date(datetime.now(timezone.utc)))
        if "server" not in headers:
            headers.set("Server", server_name)

        lines = [self.status_line]
        for name, value in headers.items(multi=True):
            lines.append(f"{name}: {value}")
        lines.append("")

        head = "\r\n".join(lines).encode("utf-8") + b"\r\n"
        if not include_body:
            return head
        return head + self.body


def format_http_date(dt: datetime) -> str:
    """
    Format a datetime as an HTTP-date (always GMT).

        Mon, 19 Oct 2026 12:00:00 GMT
    """
    days = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]
    months = ["Jan", "Feb", "Mar", "Apr", "May", "Jun",
              "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]
    return (
        f"{days[dt.weekday()]}, "
        f"{dt.day:02d} {months[dt.month - 1]} {dt.year} "
        f"{dt.hour:02d}:{dt.minute:02d}:{dt.second:02d} GMT"
    )


# =============================================================================
# SERIALIZER
# =============================================================================

def header_pairs(headers: HeaderSource) -> List[Tuple[str, HeaderValue]]:
    """
    Normalize any accepted header source into ordered (name, value) pairs.

    Values for one name are grouped together so that applying the pairs
    with ``set_header`` emits every value of a multi-valued header:

        {"x-a": "1", "x-b": ["2", "3"]}   → [("x-a", "1"), ("x-b", ["2", "3"])]
        Headers([("x-b", "2"), ("x-b", "3")])
                                          → [("x-b", ["2", "3"])]
    """
    if headers is None:
        return []

    if isinstance(headers, Headers):
        grouped: Dict[str, Tuple[str, List[str]]] = {}
        for name, value in headers.items(multi=True):
            grouped.setdefault(name.lower(), (name, []))[1].append(value)
        return [
            (name, values[0] if len(values) == 1 else values)
            for name, values in grouped.values()
        ]

    if isinstance(headers, Mapping):
        pairs: List[Tuple[str, HeaderValue]] = []
        for name, value in headers.items():
            if isinstance(value, (list, tuple)):
                value = [str(item) for item in value]
                checked = value
            else:
                value = str(value)
                checked = [value]
            # fail here, before write_result stages anything
            for item in checked:
                validate_header(name, item)
            pairs.append((name, value))
        return pairs

    raise TypeError(
        f"Unsupported headers type {type(headers).__name__}; "
        "expected Headers or a mapping"
    )


def _encode_json(payload: Any) -> bytes:
    if payload is None:
        return b""
    return json.dumps(payload).encode("utf-8")


def _encode_verbatim(payload: Any) -> bytes:
    if payload is None:
        return b""
    if isinstance(payload, bytes):
        return payload
    if isinstance(payload, str):
        return payload.encode("utf-8")
    raise TypeError(
        f"Cannot write {type(payload).__name__} payload verbatim; "
        "use str or bytes, or a JSON content type"
    )


_ENCODERS: Dict[ContentKind, Callable[[Any], bytes]] = {
    ContentKind.JSON: _encode_json,
    ContentKind.TEXT: _encode_verbatim,
    ContentKind.OTHER: _encode_verbatim,
}


def write_result(result: Any, response: ServerResponse) -> None:
    """
    Apply a handler result to the response and end it.

    The body is encoded BEFORE anything is staged, so a payload that
    cannot be encoded leaves the response untouched for the error path.

    Raises:
        TypeError: If the result or its payload has an unsupported type.
        ValueError: If a JSON payload cannot be serialized (e.g. cycles).
    """
    result = HandlerResult.coerce(result)

    status_code = result.status_code or HTTPStatus.OK
    content_type = result.content_type or JSON
    pairs = header_pairs(result.headers)
    body = _ENCODERS[classify(content_type)](result.payload)

    response.status_code = status_code
    response.set_header("Content-Type", content_type)
    for name, value in pairs:
        response.set_header(name, value)
    response.end(body)


# =============================================================================
# CONVENIENCE FUNCTIONS
# =============================================================================
#
#     return ok({"message": "Success"})
#     return created(user, location=f"/users/{user['id']}")
#     return not_found()
#
# =============================================================================

def ok(payload: Any = None, content_type: Optional[str] = None) -> HandlerResult:
    """200 OK with the given payload (JSON unless ``content_type`` says otherwise)."""
    return HandlerResult(
        status_code=HTTPStatus.OK,
        content_type=content_type,
        payload=payload,
    )


def created(payload: Any = None, location: Optional[str] = None) -> HandlerResult:
    """201 Created, optionally with a Location header."""
    return HandlerResult(
        status_code=HTTPStatus.CREATED,
        headers={"Location": location} if location else None,
        payload=payload,
    )


def not_found() -> HandlerResult:
    """The canonical no-route result: 404, JSON, empty body."""
    return HandlerResult(status_code=HTTPStatus.NOT_FOUND, content_type=JSON)
