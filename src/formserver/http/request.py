"""
=============================================================================
HTTP REQUEST PARSER
=============================================================================

Turns the raw bytes of one HTTP/1.x request into an HTTPRequest object.

=============================================================================
WHAT A FORM SUBMISSION LOOKS LIKE ON THE WIRE
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                     HTTP REQUEST STRUCTURE                          │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │  ┌─ REQUEST LINE ─────────────────────────────────────────────────┐ │
    │  │                                                                 │ │
    │  │    POST /form?src=landing HTTP/1.1\r\n                          │ │
    │  │    ─┬── ───────┬─────────  ───┬────                             │ │
    │  │   Method      URI           Version                             │ │
    │  │                │                                                │ │
    │  │        ┌───────┴────────┐                                       │ │
    │  │      Path         Query string                                  │ │
    │  │      /form        src=landing                                   │ │
    │  │                                                                 │ │
    │  └─────────────────────────────────────────────────────────────────┘ │
    │                                                                      │
    │  ┌─ HEADERS ──────────────────────────────────────────────────────┐ │
    │  │    Host: localhost:8080\r\n                                     │ │
    │  │    Content-Type: application/x-www-form-urlencoded\r\n          │ │
    │  │    Content-Length: 30\r\n                                       │ │
    │  └─────────────────────────────────────────────────────────────────┘ │
    │                                                                      │
    │  ┌─ EMPTY LINE ───────────────────────────────────────────────────┐ │
    │  │    \r\n                                                         │ │
    │  └─────────────────────────────────────────────────────────────────┘ │
    │                                                                      │
    │  ┌─ BODY ─────────────────────────────────────────────────────────┐ │
    │  │    name=Ada&address=London+W1                                   │ │
    │  └─────────────────────────────────────────────────────────────────┘ │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

The parser only splits the message apart. The body is decoded as a form
later, and only if a handler asks for it (HTTPRequest.parse_form), because
most requests to this server are plain GETs for static files.

=============================================================================
"""

from dataclasses import dataclass, field
from typing import Optional, Dict, List, Tuple
from urllib.parse import urlparse
import re

from .forms import FormValues, decode_body, decode_query, merge_values, unescape, FormParseError


class HTTPParseError(Exception):
    """
    Raised when a request cannot be parsed.

    Carries the status code the server should answer with:

        400 Bad Request                  - Malformed request line or headers
        405 Method Not Allowed           - Unknown method
        431 Request Header Fields Too Large
        501 Not Implemented              - Transfer-Encoding we do not speak
        505 HTTP Version Not Supported   - Anything but HTTP/1.0 and HTTP/1.1
    """

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.status_code = status_code


# Methods whose body is decoded as form data. GET and DELETE bodies are ignored.
FORM_BODY_METHODS = frozenset({"POST", "PUT", "PATCH"})


@dataclass
class HTTPRequest:
    """
    A parsed HTTP request.

    =========================================================================
    ATTRIBUTES
    =========================================================================

        method:         "GET", "POST", ...
        path:           Percent-decoded path without the query string
        version:        "HTTP/1.1" or "HTTP/1.0"
        headers:        Header name (lowercase) → value
        query_string:   Raw query string, still encoded ("a=1&b=%20")
        body:           Raw body bytes (exactly Content-Length of them)
        client_address: (ip, port) of the peer

    =========================================================================
    FORM STATE
    =========================================================================

        form:           Body values then query values, merged
        post_form:      Body values only

    Both stay None until parse_form() runs. After that they are dicts, even
    if parsing failed part way.
    =========================================================================
    """

    method: str
    path: str
    version: str = "HTTP/1.1"

    headers: Dict[str, str] = field(default_factory=dict)
    query_string: str = ""
    body: bytes = b""

    client_address: Tuple[str, int] = ("", 0)

    form: Optional[FormValues] = field(default=None, repr=False)
    post_form: Optional[FormValues] = field(default=None, repr=False)

    # =========================================================================
    # PROPERTIES
    # =========================================================================

    @property
    def content_type(self) -> str:
        """Raw Content-Type header, parameters included ("" if absent)."""
        return self.headers.get("content-type", "")

    @property
    def is_keep_alive(self) -> bool:
        """
        Whether the client wants the connection kept open.

            HTTP/1.1:  open unless "Connection: close"
            HTTP/1.0:  closed unless "Connection: keep-alive"
        """
        tokens = {t.strip() for t in self.headers.get("connection", "").lower().split(",")}

        if self.version == "HTTP/1.1":
            return "close" not in tokens
        return "keep-alive" in tokens

    # =========================================================================
    # FORMS
    # =========================================================================

    def parse_form(self) -> None:
        """
        Decode form values from the query string and, for POST, PUT and
        PATCH, from the body.

        =====================================================================
        WHERE VALUES COME FROM
        =====================================================================

            POST /form?name=query HTTP/1.1
            Content-Type: application/x-www-form-urlencoded

            name=body

                post_form  = {"name": ["body"]}
                form       = {"name": ["body", "query"]}   ← body first

        =====================================================================

        Safe to call more than once; only the first call does any work.

        Raises:
            FormParseError: The first problem found. Values that did decode
                            are still stored on the request.
        """
        if self.form is not None:
            return

        error: Optional[FormParseError] = None

        post_values: FormValues = {}
        if self.method in FORM_BODY_METHODS:
            post_values, error = decode_body(self.content_type, self.body)

        query_values, query_error = decode_query(self.query_string)
        if error is None:
            error = query_error

        self.post_form = post_values
        self.form = merge_values(post_values, query_values)

        if error is not None:
            raise error

    def form_value(self, name: str) -> str:
        """
        First value for a form field, or "" if it is absent.

        Parses the form if that has not happened yet. Parse errors are
        swallowed here; call parse_form() first if you need to see them.
        """
        if self.form is None:
            try:
                self.parse_form()
            except FormParseError:
                pass

        values = self.form.get(name) if self.form else None
        return values[0] if values else ""


class RequestParser:
    """
    Parses raw HTTP request bytes into HTTPRequest objects.

    ==========================================================================
    PARSER PIPELINE
    ==========================================================================

        Raw Request Bytes  (one complete request, framed by Connection)
              │
              ▼
        1. Split at \\r\\n\\r\\n        no separator → 400
        2. Request line              METHOD SP URI SP VERSION
                                     bad shape → 400, bad method → 405,
                                     bad version → 505
        3. Headers                   "Name: Value", lowercased names
        4. Body                      exactly Content-Length bytes
              │
              ▼
        HTTPRequest

    ==========================================================================
    PATHS ARE NOT CLEANED HERE
    ==========================================================================

    "/static/../etc/passwd" is parsed as-is. The router answers unclean
    paths with a redirect to the cleaned one, and the static handler checks
    that the resolved file stays under its root.

    ==========================================================================
    """

    VALID_METHODS = {
        "GET",
        "POST",
        "PUT",
        "DELETE",
        "PATCH",
        "HEAD",
        "OPTIONS",
        "TRACE",
        "CONNECT",
    }

    REQUEST_LINE_PATTERN = re.compile(r"^([A-Z]+) ([^ ]+) (HTTP/\d\.\d)$")
    HEADER_PATTERN = re.compile(r"^([^:]+):\s*(.*)$")

    # "%" must be followed by two hex digits anywhere in the path.
    BAD_ESCAPE_PATTERN = re.compile(r"%(?![0-9a-fA-F]{2})")

    def parse(
        self,
        data: bytes,
        client_address: Tuple[str, int] = ("", 0)
    ) -> HTTPRequest:
        """
        Parse one complete request.

        Raises:
            HTTPParseError: If the request is malformed.
        """
        header_end = data.find(b"\r\n\r\n")
        if header_end == -1:
            raise HTTPParseError("Incomplete request: no header terminator")

        header_section = data[:header_end].decode("utf-8", errors="replace")
        body = data[header_end + 4:]

        lines = header_section.split("\r\n")

        method, path, query_string, version = self._parse_request_line(lines[0])
        headers = self._parse_headers(lines[1:])

        try:
            content_length = int(headers.get("content-length", 0))
        except ValueError:
            raise HTTPParseError(f"Invalid Content-Length: {headers['content-length']!r}")
        if content_length < 0:
            raise HTTPParseError(f"Invalid Content-Length: {content_length}")
        if len(body) < content_length:
            raise HTTPParseError(
                f"Incomplete body: expected {content_length} bytes, got {len(body)}"
            )

        return HTTPRequest(
            method=method,
            path=path,
            version=version,
            headers=headers,
            query_string=query_string,
            body=body[:content_length],
            client_address=client_address,
        )

    def _parse_request_line(self, line: str) -> Tuple[str, str, str, str]:
        """
        Split "METHOD URI VERSION" and validate each part.

            "GET /form?name=Ada HTTP/1.1"
              → ("GET", "/form", "name=Ada", "HTTP/1.1")
        """
        match = self.REQUEST_LINE_PATTERN.match(line)
        if not match:
            raise HTTPParseError(f"Invalid request line: {line}")

        method, uri, version = match.groups()

        if method not in self.VALID_METHODS:
            raise HTTPParseError(f"Invalid method: {method}", status_code=405)

        if version not in ("HTTP/1.0", "HTTP/1.1"):
            raise HTTPParseError(f"Unsupported HTTP version: {version}", status_code=505)

        # Origin form ("/form?x=1") is split by hand: urlparse would read
        # "//a/b" as a host. Absolute form ("http://host/form?x=1") is not.
        if uri.startswith("/"):
            raw_path, _, query = uri.partition("?")
        else:
            parsed = urlparse(uri)
            if not parsed.scheme:
                raise HTTPParseError(f"Invalid request target: {uri}")
            raw_path, query = parsed.path or "/", parsed.query

        if self.BAD_ESCAPE_PATTERN.search(raw_path):
            raise HTTPParseError(f"Invalid escape in path: {raw_path}")

        # unescape() also turns "+" into a space, which is only right for
        # query strings, so protect literal pluses first.
        path = unescape(raw_path.replace("+", "%2B"))

        return method, path, query, version

    def _parse_headers(self, lines: List[str]) -> Dict[str, str]:
        """
        Parse "Name: Value" lines into a dict with lowercase names.

        Continuation lines (leading whitespace) extend the previous header.
        A repeated header is joined with ", ". Lines without a colon are
        skipped.
        """
        headers: Dict[str, str] = {}
        current_name = None

        for line in lines:
            if not line:
                continue

            if line[0] in (" ", "\t"):
                if current_name is not None:
                    headers[current_name] += " " + line.strip()
                continue

            match = self.HEADER_PATTERN.match(line)
            if not match:
                continue

            name, value = match.groups()
            name = name.strip().lower()
            value = value.strip()
            current_name = name

            if name in headers:
                headers[name] += ", " + value
            else:
                headers[name] = value

        return headers


def parse_request(
    data: bytes,
    client_address: Tuple[str, int] = ("", 0),
) -> HTTPRequest:
    """Parse one request with a default RequestParser."""
    return RequestParser().parse(data, client_address)
