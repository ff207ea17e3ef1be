"""
=============================================================================
HTTP RESPONSE
=============================================================================

Everything a handler needs to answer a request: the HTTPResponse container,
a fluent ResponseBuilder, and one-line helpers for the error replies.

=============================================================================
RESPONSE STRUCTURE
=============================================================================

    HTTP/1.1 200 OK\\r\\n                             ← status line
    Content-Type: text/plain; charset=utf-8\\r\\n     ← sniffed if not set
    Content-Length: 6\\r\\n                           ← always computed
    Date: Mon, 19 Oct 2026 10:00:00 GMT\\r\\n         ← always added
    Server: formserver/1.0\\r\\n
    \\r\\n
    Hello!                                          ← body

=============================================================================
WRITING A BODY PIECE BY PIECE
=============================================================================

The form handler produces its reply one line at a time. ResponseBuilder
supports that directly:

    builder = ResponseBuilder()
    builder.write("POST request successful\\n")
    builder.write(f"Name = {name}\\n")
    return builder.build()

The status stays 200 unless a handler sets another one.

=============================================================================
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, Dict, Union

from .status_codes import HTTPStatus
from .mime_types import TEXT_PLAIN, TEXT_HTML, detect_content_type, get_content_type


DEFAULT_SERVER_NAME = "formserver/1.0"


@dataclass
class HTTPResponse:
    """
    An HTTP response ready to be serialized.

        Handler returns          to_bytes()              Connection sends
        HTTPResponse    ─────►   serializes    ─────►    raw bytes
    """

    status: HTTPStatus = HTTPStatus.OK
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    version: str = "HTTP/1.1"

    @property
    def status_line(self) -> str:
        """e.g. "HTTP/1.1 404 Not Found"."""
        status = HTTPStatus(self.status)
        return f"{self.version} {int(status)} {status.phrase}"

    def get_header(self, name: str) -> Optional[str]:
        """Case-insensitive header lookup."""
        lowered = name.lower()
        for key, value in self.headers.items():
            if key.lower() == lowered:
                return value
        return None

    def to_bytes(
        self,
        server_name: str = DEFAULT_SERVER_NAME,
        include_body: bool = True,
    ) -> bytes:
        """
        Serialize the response for socket.sendall().

        =====================================================================
        HEADERS ADDED HERE
        =====================================================================

            Content-Length   length of body (also for HEAD, which sends none)
            Content-Type     sniffed from the body when the handler set none
            Date             RFC 7231 requires it from origin servers
            Server           server_name

        1xx, 204 and 304 responses never carry a body or a Content-Length.
        =====================================================================

        Args:
            server_name: Value of the Server header.
            include_body: False for replies to HEAD.
        """
        status = HTTPStatus(self.status)
        response_headers = dict(self.headers)
        present = {name.lower() for name in response_headers}

        body = self.body if status.allows_body else b""

        if status.allows_body:
            if "content-length" not in present:
                response_headers["Content-Length"] = str(len(body))
            if "content-type" not in present and body:
                response_headers["Content-Type"] = detect_content_type(body)

        if "date" not in present:
            response_headers["Date"] = format_http_date(datetime.now(timezone.utc))

        if "server" not in present:
            response_headers["Server"] = server_name

        lines = [self.status_line]
        for name, value in response_headers.items():
            lines.append(f"{name}: {value}")
        lines.append("")

        header_bytes = "\r\n".join(lines).encode("utf-8") + b"\r\n"

        if not include_body:
            return header_bytes
        return header_bytes + body


class ResponseBuilder:
    """
    Fluent builder for HTTPResponse.

        response = (ResponseBuilder()
            .status(HTTPStatus.NOT_FOUND)
            .text("404 not found.")
            .build())

    Every method except build() returns self.
    """

    def __init__(self):
        self._status = HTTPStatus.OK
        self._headers: Dict[str, str] = {}
        self._body = bytearray()

    # =========================================================================
    # STATUS AND HEADERS
    # =========================================================================

    def status(self, status: HTTPStatus) -> "ResponseBuilder":
        self._status = HTTPStatus(status)
        return self

    def header(self, name: str, value: str) -> "ResponseBuilder":
        self._headers[name] = value
        return self

    def content_type(self, content_type: str) -> "ResponseBuilder":
        return self.header("Content-Type", content_type)

    # =========================================================================
    # BODY
    # =========================================================================

    def body(self, body: Union[str, bytes]) -> "ResponseBuilder":
        """Replace the body."""
        self._body = bytearray()
        return self.write(body)

    def write(self, data: Union[str, bytes]) -> "ResponseBuilder":
        """Append to the body. Strings are encoded as UTF-8."""
        if isinstance(data, str):
            data = data.encode("utf-8")
        self._body.extend(data)
        return self

    def text(self, text: str, content_type: str = TEXT_PLAIN) -> "ResponseBuilder":
        self._headers["Content-Type"] = content_type
        return self.body(text)

    def html(self, html: str) -> "ResponseBuilder":
        self._headers["Content-Type"] = TEXT_HTML
        return self.body(html)

    def file(self, content: bytes, filename: str) -> "ResponseBuilder":
        """
        File contents as the body. The type comes from the extension, or
        from the content itself when the extension is unknown.
        """
        self._headers["Content-Type"] = get_content_type(filename) or detect_content_type(content)
        return self.body(content)

    # =========================================================================
    # REDIRECTS
    # =========================================================================

    def redirect(self, location: str, permanent: bool = False) -> "ResponseBuilder":
        """
        301 Moved Permanently or 302 Found, with a Location header.
        """
        self._status = HTTPStatus.MOVED_PERMANENTLY if permanent else HTTPStatus.FOUND
        self._headers["Location"] = location
        return self

    # =========================================================================
    # BUILD
    # =========================================================================

    def build(self) -> HTTPResponse:
        return HTTPResponse(
            status=self._status,
            headers=dict(self._headers),
            body=bytes(self._body),
        )


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================

def format_http_date(dt: datetime) -> str:
    """
    Format a datetime as an RFC 7231 HTTP-date, always in GMT.

        >>> format_http_date(datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc))
        'Thu, 01 Jan 2026 12:00:00 GMT'
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
# CONVENIENCE FUNCTIONS
# =============================================================================

def http_error(status: HTTPStatus, message: str) -> HTTPResponse:
    """
    Plain-text error reply.

    The body is exactly `message`. nosniff stops browsers from guessing
    that an error message which happens to look like HTML is HTML.

        >>> http_error(HTTPStatus.NOT_FOUND, "404 not found.").body
        b'404 not found.'
    """
    return (ResponseBuilder()
        .status(status)
        .text(message)
        .header("X-Content-Type-Options", "nosniff")
        .build())


def not_found() -> HTTPResponse:
    """The listener's generic 404."""
    return http_error(HTTPStatus.NOT_FOUND, "404 page not found")


def forbidden() -> HTTPResponse:
    return http_error(HTTPStatus.FORBIDDEN, "403 Forbidden")


def internal_error() -> HTTPResponse:
    """Generic 500. Never leaks exception details to the client."""
    return http_error(HTTPStatus.INTERNAL_SERVER_ERROR, "Internal Server Error")


def redirect(location: str, permanent: bool = True) -> HTTPResponse:
    """301 by default: every redirect this server issues is permanent."""
    return ResponseBuilder().redirect(location, permanent).build()
