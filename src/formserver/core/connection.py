"""
=============================================================================
CONNECTION MANAGEMENT
=============================================================================

One Connection per accepted TCP socket. It turns the byte stream into a
sequence of complete HTTP requests and writes responses back.

=============================================================================
TCP IS A BYTE STREAM
=============================================================================

A form POST sent by the browser as one write may arrive as several recv()
chunks, or glued to the start of the next request on a keep-alive
connection:

    recv() #1   "POST /form HTTP/1.1\\r\\nContent-Le"
    recv() #2   "ngth: 18\\r\\n\\r\\nname=Ada&addr"
    recv() #3   "ess=UK GET /hello HTTP/1.1\\r\\n..."
                        └── belongs to the NEXT request

So the connection buffers, looks for the blank line that ends the headers,
then reads exactly Content-Length body bytes (or decodes a chunked body).
Anything left over stays in the buffer for the next read_request() call.

=============================================================================
FRAMING RULES
=============================================================================

    ┌─────────────────────────────┬──────────────────────────────────────┐
    │  Situation                  │  Result                              │
    ├─────────────────────────────┼──────────────────────────────────────┤
    │  headers > max_header_size  │  HTTPParseError(431)                 │
    │  Content-Length not a       │  HTTPParseError(400)                 │
    │  non-negative integer       │                                      │
    │  Transfer-Encoding: chunked │  body decoded, re-framed with        │
    │                             │  Content-Length                      │
    │  malformed chunk framing    │  HTTPParseError(400)                 │
    │  other Transfer-Encoding    │  HTTPParseError(501)                 │
    │  bare LF line endings       │  accepted, rewritten as CRLF         │
    │  Expect: 100-continue       │  "HTTP/1.1 100 Continue" is sent     │
    │                             │  before the body is read             │
    │  client closes between      │  read_request() returns None         │
    │  requests                   │                                      │
    │  first request too slow     │  TimeoutError (server answers 408)   │
    │  idle keep-alive too long   │  read_request() returns None         │
    └─────────────────────────────┴──────────────────────────────────────┘

=============================================================================
"""

import re
import socket
import time
import logging
import uuid
from enum import Enum
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from ..http.request import HTTPParseError


logger = logging.getLogger(__name__)

# The blank line after the headers; bare LF is accepted in place of CRLF.
HEADER_END = re.compile(rb"\r?\n\r?\n")
LINE_END = re.compile(r"\r?\n")

CHUNK_SIZE = re.compile(rb"[0-9a-fA-F]+")

CONTINUE_RESPONSE = b"HTTP/1.1 100 Continue\r\n\r\n"


class ConnectionState(Enum):
    NEW = "new"
    READING = "reading"
    PROCESSING = "processing"
    WRITING = "writing"
    KEEP_ALIVE = "keep_alive"
    CLOSING = "closing"
    CLOSED = "closed"


@dataclass
class Connection:
    """
    A client connection: buffered reads, whole-response writes, and a
    close that releases the socket exactly once.

    Use as a context manager so the socket is closed on every path:

        with conn:
            while (raw := conn.read_request()) is not None:
                conn.send_response(handle(raw))
    """

    socket: socket.socket
    address: Tuple[str, int]
    id: str = field(default_factory=lambda: uuid.uuid4().hex[:8])
    state: ConnectionState = ConnectionState.NEW
    created_at: float = field(default_factory=time.time)
    requests_handled: int = 0

    buffer_size: int = 8192
    timeout: Optional[float] = 30.0
    keep_alive_timeout: float = 5.0
    max_header_size: int = 1 << 20

    _buffer: bytes = field(default=b"", repr=False)

    def __post_init__(self):
        self.socket.setblocking(True)
        self.socket.settimeout(self.timeout)

    @property
    def age(self) -> float:
        return time.time() - self.created_at

    # =========================================================================
    # READING
    # =========================================================================

    def read_request(self) -> Optional[bytes]:
        """
        Read one complete request: header section plus its body.

        The header section comes back with CRLF line endings even when the
        client used bare LF. A chunked body comes back decoded, with a
        Content-Length header in place of Transfer-Encoding.

        Returns:
            The request bytes, or None when the client is gone (closed the
            connection, or let a keep-alive connection go idle).

        Raises:
            HTTPParseError: If the request cannot be framed.
            TimeoutError: If the first request does not arrive in time.
        """
        self.state = ConnectionState.READING

        if self.requests_handled > 0:
            self.socket.settimeout(self.keep_alive_timeout)

        try:
            # ─────────────────────────────────────────────────────────────
            # HEADER SECTION
            # ─────────────────────────────────────────────────────────────
            while (match := HEADER_END.search(self._buffer)) is None:
                if len(self._buffer) > self.max_header_size:
                    raise HTTPParseError("Request header section too large", status_code=431)

                chunk = self._recv()
                if not chunk:
                    return None
                self._buffer += chunk

            if match.start() > self.max_header_size:
                raise HTTPParseError("Request header section too large", status_code=431)

            lines = LINE_END.split(self._buffer[:match.start()].decode("latin-1"))
            headers = self._scan_headers(lines[1:])
            body_start = match.end()

            # ─────────────────────────────────────────────────────────────
            # BODY LENGTH
            # ─────────────────────────────────────────────────────────────
            encoding = headers.get("transfer-encoding", "identity").lower()
            if encoding not in ("identity", "chunked"):
                raise HTTPParseError(f"Unsupported transfer encoding: {encoding}", status_code=501)
            chunked = encoding == "chunked"

            content_length = 0 if chunked else self._parse_content_length(headers)

            # ─────────────────────────────────────────────────────────────
            # 100-CONTINUE
            # ─────────────────────────────────────────────────────────────
            # curl sends "Expect: 100-continue" for bodies over 1 KB and
            # waits (up to a second) for permission before sending them.
            expects_continue = headers.get("expect", "").lower() == "100-continue"
            received = len(self._buffer) - body_start
            body_pending = received == 0 if chunked else received < content_length
            if (expects_continue
                    and body_pending
                    and lines[0].endswith("HTTP/1.1")):
                self.socket.sendall(CONTINUE_RESPONSE)

            # ─────────────────────────────────────────────────────────────
            # BODY
            # ─────────────────────────────────────────────────────────────
            if chunked:
                body, request_end = self._read_chunked(body_start)
                lines = [
                    line for line in lines
                    if line.partition(":")[0].strip().lower()
                    not in ("transfer-encoding", "content-length")
                ]
                lines.append(f"Content-Length: {len(body)}")
            else:
                request_end = body_start + content_length
                self._fill(request_end)  # Short on EOF; the parser will reject it
                body = self._buffer[body_start:request_end]

            self._buffer = self._buffer[request_end:]

            self.requests_handled += 1
            return "\r\n".join(lines).encode("latin-1") + b"\r\n\r\n" + body

        except socket.timeout:
            if self.requests_handled > 0 and not self._buffer:
                logger.debug(f"[{self.id}] Keep-alive timeout")
                return None
            raise TimeoutError("Request read timeout")

        finally:
            self.socket.settimeout(self.timeout)

    def _recv(self) -> bytes:
        try:
            return self.socket.recv(self.buffer_size)
        except (ConnectionResetError, BrokenPipeError):
            return b""

    def _fill(self, size: int) -> bool:
        """Receive until the buffer holds size bytes. False if the client closed first."""
        while len(self._buffer) < size:
            chunk = self._recv()
            if not chunk:
                return False
            self._buffer += chunk
        return True

    def _read_line(self, start: int) -> Tuple[bytes, int]:
        """One body line from offset start, without its line ending."""
        while True:
            end = self._buffer.find(b"\n", start)
            if end != -1:
                return self._buffer[start:end].rstrip(b"\r"), end + 1
            if len(self._buffer) - start > self.max_header_size:
                raise HTTPParseError("Chunk line too long")
            chunk = self._recv()
            if not chunk:
                raise HTTPParseError("Truncated chunked body")
            self._buffer += chunk

    def _read_chunked(self, start: int) -> Tuple[bytes, int]:
        """
        Decode a chunked body that begins at buffer offset start.

            1a;name=value\\r\\n   size in hex; extensions are ignored
            <0x1a bytes>\\r\\n
            0\\r\\n              last chunk
            Trailer: x\\r\\n     trailers are discarded
            \\r\\n

        Returns:
            The decoded body and the offset just past the message.
        """
        body = bytearray()
        position = start

        while True:
            line, position = self._read_line(position)
            size_text = line.split(b";", 1)[0].strip()
            if not CHUNK_SIZE.fullmatch(size_text):
                raise HTTPParseError(f"Invalid chunk size: {size_text!r}")

            size = int(size_text, 16)
            if size == 0:
                break

            if not self._fill(position + size):
                raise HTTPParseError("Truncated chunked body")
            body += self._buffer[position:position + size]

            line, position = self._read_line(position + size)
            if line:
                raise HTTPParseError("Missing CRLF after chunk data")

        while True:
            line, position = self._read_line(position)
            if not line:
                return bytes(body), position

    @staticmethod
    def _scan_headers(lines: List[str]) -> Dict[str, str]:
        """
        Just enough header parsing to frame the body.

        Full parsing happens later in RequestParser; this only needs
        Content-Length, Transfer-Encoding and Expect.
        """
        headers: Dict[str, str] = {}
        for line in lines:
            name, sep, value = line.partition(":")
            if sep:
                headers[name.strip().lower()] = value.strip()
        return headers

    @staticmethod
    def _parse_content_length(headers: Dict[str, str]) -> int:
        raw = headers.get("content-length")
        if raw is None:
            return 0
        # str.isdigit() alone accepts digits such as "²" that int() rejects
        if not (raw.isascii() and raw.isdigit()):
            raise HTTPParseError(f"Invalid Content-Length: {raw!r}")
        return int(raw)

    # =========================================================================
    # WRITING
    # =========================================================================

    def send_response(self, data: bytes) -> bool:
        """
        Send a whole response.

        Returns:
            False if the client has gone away.
        """
        self.state = ConnectionState.WRITING
        try:
            self.socket.sendall(data)
            return True
        except OSError as e:
            logger.warning(f"[{self.id}] Send failed: {e}")
            return False

    def set_keep_alive(self):
        self.state = ConnectionState.KEEP_ALIVE

    # =========================================================================
    # CLOSING
    # =========================================================================

    def close(self):
        """
        Close the socket. Safe to call more than once.

            shutdown(SHUT_WR)   FIN to the client: no more data from us
            drain               read what the client already sent, so the
                                kernel does not answer it with a RST that
                                could destroy our last response in flight
            close()             release the file descriptor
        """
        if self.state == ConnectionState.CLOSED:
            return

        self.state = ConnectionState.CLOSING

        try:
            self.socket.shutdown(socket.SHUT_WR)
            self.socket.settimeout(0.5)
            while self.socket.recv(1024):
                pass
        except OSError:
            # socket.timeout is an OSError too; either way the peer is done.
            pass
        finally:
            self.socket.close()

        self.state = ConnectionState.CLOSED
        logger.debug(f"[{self.id}] Connection closed after {self.requests_handled} requests ({self.age:.1f}s)")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
