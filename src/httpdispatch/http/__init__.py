"""
=============================================================================
HTTP PROTOCOL LAYER
=============================================================================

Request and response types plus routing:

    request.py     IncomingRequest, RequestContext, RequestParser,
                   normalize_request
    response.py    HandlerResult, ServerResponse, write_result
    router.py      Router, RouteEntry
    pattern.py     PathPattern (":param" templates)
    headers.py     Headers, QueryParams (multi-valued mappings)
    mime_types.py  Content-Type classification
    status_codes.py HTTPStatus, reason phrases

=============================================================================
"""

from .headers import Headers, QueryParams, validate_header
from .mime_types import ContentKind, classify, media_type
from .pattern import PathPattern, normalize_path
from .request import (
    BodyStream,
    HTTPParseError,
    IncomingRequest,
    InvalidURLError,
    RequestContext,
    RequestParser,
    normalize_request,
)
from .response import (
    HandlerResult,
    ServerResponse,
    created,
    header_pairs,
    not_found,
    ok,
    write_result,
)
from .router import RouteEntry, RouteMatch, Router
from .status_codes import HTTPStatus, reason_phrase

__all__ = [
    # Requests
    "IncomingRequest",
    "RequestContext",
    "RequestParser",
    "BodyStream",
    "normalize_request",
    "HTTPParseError",
    "InvalidURLError",

    # Responses
    "HandlerResult",
    "ServerResponse",
    "write_result",
    "header_pairs",
    "ok",
    "created",
    "not_found",

    # Routing
    "Router",
    "RouteEntry",
    "RouteMatch",
    "PathPattern",
    "normalize_path",

    # Supporting types
    "Headers",
    "QueryParams",
    "validate_header",
    "ContentKind",
    "classify",
    "media_type",
    "HTTPStatus",
    "reason_phrase",
]
