"""
=============================================================================
HTTP STATUS CODES
=============================================================================

The status codes this server can put on the wire, with their reason phrases.

=============================================================================
WHICH CODES DOES THIS SERVER USE?
=============================================================================

    ┌────────┬────────────────────────────────────────────────────────────┐
    │  100   │ Interim reply to "Expect: 100-continue" before the body   │
    ├────────┼────────────────────────────────────────────────────────────┤
    │  200   │ Every handler's default. Also used for form parse errors! │
    │  301   │ Path cleaning and directory trailing-slash redirects      │
    ├────────┼────────────────────────────────────────────────────────────┤
    │  400   │ Request line could not be parsed                          │
    │  403   │ Static file unreadable or outside the static root         │
    │  404   │ Unknown path, missing file, and /hello with a bad method  │
    │  408   │ Client too slow to send its request                       │
    │  431   │ Header section larger than the listener allows            │
    ├────────┼────────────────────────────────────────────────────────────┤
    │  500   │ Handler raised                                             │
    │  503   │ Worker pool queue is full                                  │
    │  505   │ Neither HTTP/1.0 nor HTTP/1.1                              │
    └────────┴────────────────────────────────────────────────────────────┘

Note the 404 for a wrong method on /hello. 405 would be the textbook answer,
but the greeting endpoint has always answered 404 and clients depend on it.

=============================================================================
"""

from enum import IntEnum


class HTTPStatus(IntEnum):
    """
    HTTP status codes and reason phrases.

    IntEnum, so members compare equal to plain integers:

        >>> HTTPStatus.NOT_FOUND == 404
        True
        >>> HTTPStatus.NOT_FOUND.phrase
        'Not Found'
    """

    # 1xx INFORMATIONAL
    CONTINUE = 100

    # 2xx SUCCESS
    OK = 200
    NO_CONTENT = 204

    # 3xx REDIRECTION
    MOVED_PERMANENTLY = 301
    FOUND = 302
    NOT_MODIFIED = 304

    # 4xx CLIENT ERRORS
    BAD_REQUEST = 400
    FORBIDDEN = 403
    NOT_FOUND = 404
    METHOD_NOT_ALLOWED = 405
    REQUEST_TIMEOUT = 408
    REQUEST_HEADER_FIELDS_TOO_LARGE = 431

    # 5xx SERVER ERRORS
    INTERNAL_SERVER_ERROR = 500
    NOT_IMPLEMENTED = 501
    SERVICE_UNAVAILABLE = 503
    HTTP_VERSION_NOT_SUPPORTED = 505

    @property
    def phrase(self) -> str:
        """
        Reason phrase for the status line.

            HTTP/1.1 404 Not Found
                     ─── ─────────
                      │      └── phrase
                      └───────── code
        """
        return _STATUS_PHRASES.get(self, "Unknown")

    @property
    def allows_body(self) -> bool:
        """
        Whether a response with this status may carry a body.

        1xx, 204 and 304 never do (RFC 7230 section 3.3.3).
        """
        return not (self < 200 or self in (HTTPStatus.NO_CONTENT, HTTPStatus.NOT_MODIFIED))


_STATUS_PHRASES = {
    HTTPStatus.CONTINUE: "Continue",
    HTTPStatus.OK: "OK",
    HTTPStatus.NO_CONTENT: "No Content",
    HTTPStatus.MOVED_PERMANENTLY: "Moved Permanently",
    HTTPStatus.FOUND: "Found",
    HTTPStatus.NOT_MODIFIED: "Not Modified",
    HTTPStatus.BAD_REQUEST: "Bad Request",
    HTTPStatus.FORBIDDEN: "Forbidden",
    HTTPStatus.NOT_FOUND: "Not Found",
    HTTPStatus.METHOD_NOT_ALLOWED: "Method Not Allowed",
    HTTPStatus.REQUEST_TIMEOUT: "Request Timeout",
    HTTPStatus.REQUEST_HEADER_FIELDS_TOO_LARGE: "Request Header Fields Too Large",
    HTTPStatus.INTERNAL_SERVER_ERROR: "Internal Server Error",
    HTTPStatus.NOT_IMPLEMENTED: "Not Implemented",
    HTTPStatus.SERVICE_UNAVAILABLE: "Service Unavailable",
    HTTPStatus.HTTP_VERSION_NOT_SUPPORTED: "HTTP Version Not Supported",
}
