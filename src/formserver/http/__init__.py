"""
=============================================================================
HTTP PROTOCOL LAYER
=============================================================================

Bytes in, bytes out. Everything between the socket and the handlers:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   raw bytes ──► RequestParser ──► HTTPRequest                       │
    │                                        │                             │
    │                                        │  .parse_form()  (forms.py) │
    │                                        ▼                             │
    │                                     Router ──► handler               │
    │                                                   │                  │
    │   raw bytes ◄── HTTPResponse.to_bytes() ◄─────────┘                  │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
"""

from .request import HTTPRequest, RequestParser, HTTPParseError, parse_request
from .forms import FormParseError, FormValues, parse_query, parse_media_type
from .response import (
    HTTPResponse,
    ResponseBuilder,
    http_error,
    not_found,
    forbidden,
    internal_error,
    redirect,
)
from .router import Router, Route, Handler, clean_path
from .status_codes import HTTPStatus
from .mime_types import get_mime_type, get_content_type, detect_content_type


__all__ = [
    # Request
    "HTTPRequest",
    "RequestParser",
    "HTTPParseError",
    "parse_request",

    # Forms
    "FormParseError",
    "FormValues",
    "parse_query",
    "parse_media_type",

    # Response
    "HTTPResponse",
    "ResponseBuilder",
    "http_error",
    "not_found",
    "forbidden",
    "internal_error",
    "redirect",

    # Routing
    "Router",
    "Route",
    "Handler",
    "clean_path",

    # Status codes and content types
    "HTTPStatus",
    "get_mime_type",
    "get_content_type",
    "detect_content_type",
]
