"""
=============================================================================
CONTENT TYPE DETECTION
=============================================================================

Every response needs a Content-Type so the browser knows what the bytes are.
This module answers that question two ways:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                     CONTENT TYPE RESOLUTION                         │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   static/style.css                                                   │
    │        │                                                             │
    │        ▼                                                             │
    │   1. EXTENSION LOOKUP   .css → text/css; charset=utf-8              │
    │        │                                                             │
    │        │ unknown extension (README, data.bin, ...)                  │
    │        ▼                                                             │
    │   2. CONTENT SNIFFING   look at the first 512 bytes                 │
    │        │                                                             │
    │        ├── "<!DOCTYPE html" ... → text/html; charset=utf-8          │
    │        ├── \\x89PNG ...          → image/png                         │
    │        ├── only printable bytes → text/plain; charset=utf-8         │
    │        └── anything else        → application/octet-stream          │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Handlers that write a body without setting Content-Type (the form echo and
the greeting) also go through step 2 when the response is serialized, so
"Hello!" goes out as text/plain.

=============================================================================
"""

import mimetypes
from pathlib import Path
from typing import Optional, Union


# =============================================================================
# EXTENSION TABLE
# =============================================================================
#
# Checked before the platform's mimetypes database, which differs between
# machines (/etc/mime.types, the Windows registry). The types a static site
# actually ships should not depend on the host.
#
# =============================================================================

MIME_TYPES = {
    # Text
    ".html": "text/html",
    ".htm": "text/html",
    ".css": "text/css",
    ".js": "text/javascript",
    ".mjs": "text/javascript",
    ".json": "application/json",
    ".xml": "text/xml",
    ".txt": "text/plain",
    ".md": "text/markdown",
    ".csv": "text/csv",

    # Images
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".gif": "image/gif",
    ".svg": "image/svg+xml",
    ".ico": "image/x-icon",
    ".webp": "image/webp",
    ".avif": "image/avif",

    # Fonts
    ".woff": "font/woff",
    ".woff2": "font/woff2",
    ".ttf": "font/ttf",
    ".otf": "font/otf",

    # Media
    ".mp3": "audio/mpeg",
    ".wav": "audio/wav",
    ".mp4": "video/mp4",
    ".webm": "video/webm",

    # Documents and archives
    ".pdf": "application/pdf",
    ".zip": "application/zip",
    ".gz": "application/gzip",
    ".wasm": "application/wasm",
}

DEFAULT_MIME_TYPE = "application/octet-stream"

TEXT_PLAIN = "text/plain; charset=utf-8"

TEXT_HTML = "text/html; charset=utf-8"

# Only this many leading bytes are inspected when sniffing.
SNIFF_LENGTH = 512


# =============================================================================
# SNIFFING SIGNATURES
# =============================================================================
#
# HTML signatures are matched case-insensitively after leading whitespace,
# and must be followed by a space or ">" so that "<bold" is not "<b".
#
# =============================================================================

_HTML_SIGNATURES = (
    b"<!DOCTYPE HTML", b"<HTML", b"<HEAD", b"<SCRIPT", b"<IFRAME", b"<H1",
    b"<DIV", b"<FONT", b"<TABLE", b"<A", b"<STYLE", b"<TITLE", b"<B",
    b"<BODY", b"<BR", b"<P", b"<!--",
)

_MAGIC_NUMBERS = (
    (b"%PDF-", "application/pdf"),
    (b"\x89PNG\r\n\x1a\n", "image/png"),
    (b"GIF87a", "image/gif"),
    (b"GIF89a", "image/gif"),
    (b"\xff\xd8\xff", "image/jpeg"),
    (b"PK\x03\x04", "application/zip"),
    (b"\x1f\x8b\x08", "application/x-gzip"),
    (b"\xfe\xff", "text/plain; charset=utf-16be"),
    (b"\xff\xfe", "text/plain; charset=utf-16le"),
    (b"\xef\xbb\xbf", TEXT_PLAIN),
)

# Control bytes that never appear in text. Tab, LF, FF, CR and ESC are allowed.
_BINARY_BYTES = frozenset(
    list(range(0x00, 0x09)) + [0x0B] + list(range(0x0E, 0x1B)) + list(range(0x1C, 0x20))
)

_WHITESPACE = b"\t\n\x0c\r "


def get_mime_type(path: Union[str, Path]) -> Optional[str]:
    """
    Look up the MIME type for a file name by its extension.

    Returns None when the extension is unknown so callers can fall back
    to sniffing the content.

        >>> get_mime_type("style.css")
        'text/css'
        >>> get_mime_type("LICENSE") is None
        True
    """
    if isinstance(path, str):
        path = Path(path)

    extension = path.suffix.lower()  # .PNG → .png
    if not extension:
        return None

    if extension in MIME_TYPES:
        return MIME_TYPES[extension]

    guessed, _ = mimetypes.guess_type(path.name)
    return guessed


def is_text_type(mime_type: str) -> bool:
    """Text types get a charset parameter appended."""
    if mime_type.startswith("text/"):
        return True
    return mime_type in {"application/json", "application/xml", "image/svg+xml"}


def get_content_type(path: Union[str, Path], charset: str = "utf-8") -> Optional[str]:
    """
    Full Content-Type header value for a file name, or None if unknown.

        >>> get_content_type("index.html")
        'text/html; charset=utf-8'
        >>> get_content_type("logo.png")
        'image/png'
    """
    mime_type = get_mime_type(path)
    if mime_type is None:
        return None

    if is_text_type(mime_type):
        return f"{mime_type}; charset={charset}"
    return mime_type


def detect_content_type(data: bytes) -> str:
    """
    Sniff a Content-Type from the leading bytes of a body.

    Always returns a valid type; application/octet-stream is the answer
    when nothing else fits.

        >>> detect_content_type(b"Hello!")
        'text/plain; charset=utf-8'
        >>> detect_content_type(b"<!DOCTYPE html><html></html>")
        'text/html; charset=utf-8'
    """
    head = data[:SNIFF_LENGTH]

    # ─────────────────────────────────────────────────────────────────────
    # HTML (after optional leading whitespace)
    # ─────────────────────────────────────────────────────────────────────
    stripped = head.lstrip(_WHITESPACE)
    upper = stripped.upper()
    for signature in _HTML_SIGNATURES:
        if upper.startswith(signature):
            rest = stripped[len(signature):len(signature) + 1]
            if rest in (b" ", b">"):
                return TEXT_HTML

    if stripped.startswith(b"<?xml"):
        return "text/xml; charset=utf-8"

    # ─────────────────────────────────────────────────────────────────────
    # MAGIC NUMBERS
    # ─────────────────────────────────────────────────────────────────────
    for magic, mime_type in _MAGIC_NUMBERS:
        if head.startswith(magic):
            return mime_type

    # ─────────────────────────────────────────────────────────────────────
    # TEXT OR BINARY
    # ─────────────────────────────────────────────────────────────────────
    if any(byte in _BINARY_BYTES for byte in head):
        return DEFAULT_MIME_TYPE
    return TEXT_PLAIN
