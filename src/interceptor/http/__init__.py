"""
=============================================================================
HTTP PRIMITIVES
=============================================================================

The pieces of HTTP the interception pipeline sits between:

    ┌─────────────────────────────────────────────────────────────────────┐
    │ request.py       Raw bytes → HTTPRequest (opaque to the pipeline)    │
    │ writer.py        ResponseWriter: the real sink, commit semantics     │
    │                  ResponseRecorder: in-memory sink                    │
    │                  http_error(): plain-text error replies              │
    │ headers.py       Case-insensitive, multi-valued Headers              │
    │ cookies.py       Cookie values and Set-Cookie serialization          │
    │ status_codes.py  HTTPStatus registry and reason phrases              │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
"""

from .cookies import Cookie, NoCookieError, parse_cookie_header
from .headers import Headers
from .request import HTTPParseError, HTTPRequest, RequestParser, parse_request
from .status_codes import HTTPStatus, body_allowed, reason_phrase
from .writer import ResponseRecorder, ResponseWriter, format_http_date, http_error

__all__ = [
    # Requests
    "HTTPRequest",
    "RequestParser",
    "HTTPParseError",
    "parse_request",

    # Response sinks
    "ResponseWriter",
    "ResponseRecorder",
    "http_error",
    "format_http_date",

    # Headers and cookies
    "Headers",
    "Cookie",
    "NoCookieError",
    "parse_cookie_header",

    # Status codes
    "HTTPStatus",
    "reason_phrase",
    "body_allowed",
]
