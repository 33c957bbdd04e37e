"""
=============================================================================
BODY PARSER MIDDLEWARE
=============================================================================

Reads the request body stream and stores the decoded result on
``context.payload``. It is installed by the dispatcher as the first
middleware and cannot be removed.

=============================================================================
DECODING RULES
=============================================================================

    ┌──────────────────────────────┬────────────────────────────────────────┐
    │  Content-Type                │  payload                               │
    ├──────────────────────────────┼────────────────────────────────────────┤
    │  application/json            │  json.loads(body)                      │
    │  text/*                      │  body as str                           │
    │  (missing)                   │  json.loads(body)                      │
    │  anything else               │  json.loads(body)                      │
    │  any type, EMPTY body        │  unchanged (None)                      │
    └──────────────────────────────┴────────────────────────────────────────┘

JSON is the default: a request without a Content-Type whose body is not
valid JSON fails with BodyDecodeError, which becomes a 500.

Multipart and urlencoded forms are not parsed; they fall through to the
JSON default like any other unrecognised type.

=============================================================================
STREAMING AND MULTI-BYTE CHARACTERS
=============================================================================

TCP can split a UTF-8 character across two reads:

    "é" = b"\\xc3\\xa9"

    chunk 1: b"caf\\xc3"      chunk 2: b"\\xa9"

Decoding each chunk separately would yield "caf\\ufffd\\ufffd". An
incremental decoder keeps the dangling b"\\xc3" until the next chunk
arrives, so the text comes out as "café". Truly invalid bytes become
U+FFFD.

=============================================================================
"""

import codecs
import json
from typing import Any, AsyncIterable, Callable, Dict

from ..http.mime_types import ContentKind, classify
from ..http.request import RequestContext
from .base import Middleware


class BodyDecodeError(ValueError):
    """Raised when a request body cannot be decoded for its content type."""

    def __init__(self, message: str, content_type: str = ""):
        super().__init__(message)
        self.content_type = content_type


async def read_text(stream: AsyncIterable[bytes], encoding: str = "utf-8") -> str:
    """
    Consume a byte stream and decode it incrementally.

    Chunks are decoded in arrival order; a character split across chunk
    boundaries is reassembled.
    """
    decoder = codecs.getincrementaldecoder(encoding)(errors="replace")
    parts = []
    async for chunk in stream:
        parts.append(decoder.decode(chunk))
    parts.append(decoder.decode(b"", final=True))
    return "".join(parts)


def decode_json(text: str) -> Any:
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise BodyDecodeError(f"Invalid JSON body: {e}", "application/json") from e


def decode_text(text: str) -> str:
    return text


class BodyParser(Middleware):
    """
    Decode the request body into ``context.payload``.

    Usage (done by the dispatcher):
        chain = MiddlewareChain(BodyParser())

    ``decoders`` maps a ContentKind to a function from text to payload;
    kinds missing from the table use ``default``.
    """

    decoders: Dict[ContentKind, Callable[[str], Any]] = {
        ContentKind.JSON: decode_json,
        ContentKind.TEXT: decode_text,
    }
    default: Callable[[str], Any] = staticmethod(decode_json)

    async def __call__(self, context: RequestContext) -> None:
        kind = classify(context.headers.get("content-type"))
        decode = self.decoders.get(kind, self.default)

        text = await read_text(context.stream)
        if not text:
            return

        context.payload = decode(text)
