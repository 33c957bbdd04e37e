"""
=============================================================================
CONTENT TYPE CLASSIFICATION
=============================================================================

Both ends of the pipeline switch on the Content-Type header:

    REQUEST  (body parser):  how to decode the incoming body
    RESPONSE (serializer):   how to encode the handler's payload

Rather than comparing raw header strings everywhere, a header value is
reduced to its media type and classified into a ContentKind:

    ┌────────────────────────────────────┬──────────────┐
    │  Content-Type header               │  ContentKind │
    ├────────────────────────────────────┼──────────────┤
    │  application/json                  │  JSON        │
    │  application/json; charset=utf-8   │  JSON        │
    │  application/problem+json          │  JSON        │
    │  text/plain                        │  TEXT        │
    │  text/html; charset=utf-8          │  TEXT        │
    │  image/png, (missing), ...         │  OTHER       │
    └────────────────────────────────────┴──────────────┘

Each side then decides what OTHER means: the body parser treats it as
JSON, the serializer writes the payload verbatim.

=============================================================================
"""

from enum import Enum
from typing import Optional


JSON = "application/json"
TEXT = "text/plain"


class ContentKind(Enum):
    """Coarse classification of a media type."""
    JSON = "json"
    TEXT = "text"
    OTHER = "other"


def media_type(content_type: Optional[str]) -> str:
    """
    Strip parameters and normalize case.

        >>> media_type("Application/JSON; charset=utf-8")
        'application/json'
    """
    if not content_type:
        return ""
    return content_type.split(";", 1)[0].strip().lower()


def classify(content_type: Optional[str]) -> ContentKind:
    """Classify a Content-Type header value."""
    value = media_type(content_type)
    if value == JSON or (value.startswith("application/") and value.endswith("+json")):
        return ContentKind.JSON
    if value.startswith("text/"):
        return ContentKind.TEXT
    return ContentKind.OTHER
