"""
=============================================================================
FORM DECODING
=============================================================================

Browsers submit HTML forms in one of two encodings. This module decodes both
into the same shape: a dict of field name → list of values.

=============================================================================
THE TWO ENCODINGS
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │  application/x-www-form-urlencoded  (the default for <form>)        │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │     name=Ada+Lovelace&address=12%20St%20James%27s%20Sq               │
    │     ──┬─ ─────┬─────  ───┬─── ──────────────┬──────────              │
    │      key    value       key               value                      │
    │                                                                      │
    │     "+"   → space                                                    │
    │     "%XX" → the byte 0xXX  (two hex digits, no exceptions)           │
    │     "&"   → pair separator                                           │
    │                                                                      │
    │  The query string of a URL uses exactly the same rules.             │
    └─────────────────────────────────────────────────────────────────────┘

    ┌─────────────────────────────────────────────────────────────────────┐
    │  multipart/form-data; boundary=XyZ  (<form enctype=...>, uploads)   │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │     --XyZ\\r\\n                                                        │
    │     Content-Disposition: form-data; name="name"\\r\\n                 │
    │     \\r\\n                                                             │
    │     Ada Lovelace\\r\\n                                                 │
    │     --XyZ\\r\\n                                                        │
    │     Content-Disposition: form-data; name="address"\\r\\n              │
    │     \\r\\n                                                             │
    │     12 St James's Sq\\r\\n                                             │
    │     --XyZ--\\r\\n                    ← closing boundary                │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
STRICTNESS
=============================================================================

urllib.parse.parse_qs happily keeps "%zz" as literal text. We do NOT: a
malformed escape is reported as a FormParseError so the form endpoint can
tell the client exactly what was wrong:

    invalid URL escape "%zz"

Decoding does not stop at the first bad pair. Every good pair is kept and
the first error is returned alongside the values.

=============================================================================
"""

import re
from typing import Dict, List, Optional, Tuple


# Field name → values, in submission order. Same shape as parse_qs output.
FormValues = Dict[str, List[str]]

# Largest urlencoded body we will decode (10 MB is a lot of text).
MAX_FORM_SIZE = 10 << 20

# Characters that end a token in a Content-Type or Content-Disposition header.
_TSPECIALS = set('()<>@,;:\\"/[]?= ')

_HEX_DIGITS = set("0123456789abcdefABCDEF")

_MULTIPART_HEADER_PATTERN = re.compile(r"^([^:]+):\s*(.*)$")


class FormParseError(ValueError):
    """
    Raised when a query string or request body cannot be decoded as a form.

    The message is meant to be shown to the client as-is.
    """


# =============================================================================
# URL-ENCODED
# =============================================================================

def unescape(value: str) -> str:
    """
    Decode one urlencoded key or value.

        >>> unescape("Ada+Lovelace")
        'Ada Lovelace'
        >>> unescape("caf%C3%A9")
        'café'

    Raises:
        FormParseError: On "%" not followed by two hex digits.
    """
    if "%" not in value and "+" not in value:
        return value

    out = bytearray()
    i = 0
    while i < len(value):
        char = value[i]
        if char == "%":
            escape = value[i:i + 3]
            if len(escape) < 3 or escape[1] not in _HEX_DIGITS or escape[2] not in _HEX_DIGITS:
                raise FormParseError(f'invalid URL escape "{escape}"')
            out.append(int(escape[1:], 16))
            i += 3
            continue
        if char == "+":
            out.append(0x20)
        else:
            out.extend(char.encode("utf-8"))
        i += 1

    return out.decode("utf-8", errors="replace")


def decode_query(query: str) -> Tuple[FormValues, Optional[FormParseError]]:
    """
    Decode an urlencoded string into form values.

    Returns:
        (values, first_error). Bad pairs are skipped, good ones kept.
    """
    values: FormValues = {}
    first_error: Optional[FormParseError] = None

    for pair in query.split("&"):
        if not pair:
            continue

        # "a=1;b=2" was once a legal separator. Accepting it lets a proxy and
        # this server disagree on what the fields are, so it is rejected.
        if ";" in pair:
            first_error = first_error or FormParseError("invalid semicolon separator in query")
            continue

        key, _, value = pair.partition("=")

        try:
            key = unescape(key)
            value = unescape(value)
        except FormParseError as e:
            first_error = first_error or e
            continue

        values.setdefault(key, []).append(value)

    return values, first_error


def parse_query(query: str) -> FormValues:
    """
    Decode an urlencoded string, raising on the first malformed pair.

        >>> parse_query("name=Ada&address=London")
        {'name': ['Ada'], 'address': ['London']}
    """
    values, error = decode_query(query)
    if error is not None:
        raise error
    return values


# =============================================================================
# MEDIA TYPE HEADERS
# =============================================================================

def _consume_token(text: str) -> Tuple[str, str]:
    """Split a leading RFC 2045 token off text."""
    end = 0
    while end < len(text) and 0x20 < ord(text[end]) < 0x7F and text[end] not in _TSPECIALS:
        end += 1
    return text[:end], text[end:]


def parse_media_type(value: str) -> Tuple[str, Dict[str, str]]:
    """
    Parse a Content-Type or Content-Disposition header value.

        >>> parse_media_type('multipart/form-data; boundary="XyZ"')
        ('multipart/form-data', {'boundary': 'XyZ'})
        >>> parse_media_type('form-data; name="address"')
        ('form-data', {'name': 'address'})

    Returns:
        (lowercased media type, parameters with lowercased names)

    Raises:
        FormParseError: If the value is not a media type.
    """
    base, _, param_text = value.partition(";")
    base = base.strip().lower()

    # ─────────────────────────────────────────────────────────────────────
    # TYPE "/" SUBTYPE  (Content-Disposition has no subtype)
    # ─────────────────────────────────────────────────────────────────────
    main_type, rest = _consume_token(base)
    if not main_type:
        raise FormParseError("mime: no media type")
    if rest:
        if not rest.startswith("/"):
            raise FormParseError("mime: expected slash after first token")
        subtype, rest = _consume_token(rest[1:])
        if not subtype:
            raise FormParseError("mime: expected token after slash")
        if rest:
            raise FormParseError("mime: unexpected content after media subtype")

    # ─────────────────────────────────────────────────────────────────────
    # PARAMETERS  ; key=value ; key="quoted value"
    # ─────────────────────────────────────────────────────────────────────
    params: Dict[str, str] = {}
    for raw_param in _split_params(param_text):
        raw_param = raw_param.strip()
        if not raw_param:
            continue

        name, sep, param_value = raw_param.partition("=")
        name = name.strip().lower()
        param_value = param_value.strip()
        if not sep or not name or _consume_token(name)[1]:
            raise FormParseError("mime: invalid media parameter")

        if len(param_value) >= 2 and param_value[0] == param_value[-1] == '"':
            param_value = re.sub(r"\\(.)", r"\1", param_value[1:-1])

        if name in params:
            raise FormParseError("mime: duplicate parameter name")
        params[name] = param_value

    return base, params


def _split_params(text: str) -> List[str]:
    """Split on ";" outside of quoted strings."""
    parts: List[str] = []
    current: List[str] = []
    quoted = False
    escaped = False

    for char in text:
        if escaped:
            escaped = False
        elif char == "\\" and quoted:
            escaped = True
        elif char == '"':
            quoted = not quoted
        elif char == ";" and not quoted:
            parts.append("".join(current))
            current = []
            continue
        current.append(char)

    parts.append("".join(current))
    return parts


# =============================================================================
# MULTIPART
# =============================================================================

def parse_multipart(body: bytes, boundary: str) -> FormValues:
    """
    Decode a multipart/form-data body into form values.

    Parts that carry a filename are file uploads and are skipped. So are
    parts without a field name.

    Raises:
        FormParseError: If the body does not follow the boundary structure.
    """
    values: FormValues = {}

    delimiter = b"--" + boundary.encode("utf-8")
    part_end = b"\r\n" + delimiter

    # Anything before the first delimiter is preamble and ignored.
    position = body.find(delimiter)
    if position == -1:
        raise FormParseError("multipart: NextPart: EOF")

    while True:
        position += len(delimiter)

        # "--boundary--" closes the body.
        if body[position:position + 2] == b"--":
            return values

        # Transport padding, then the line break before the part headers.
        while body[position:position + 1] in (b" ", b"\t"):
            position += 1
        if body[position:position + 2] == b"\r\n":
            position += 2
        elif body[position:position + 1] == b"\n":
            position += 1
        else:
            raise FormParseError("multipart: NextPart: boundary is not followed by a newline")

        # ─────────────────────────────────────────────────────────────────
        # PART HEADERS
        # ─────────────────────────────────────────────────────────────────
        headers_end = body.find(b"\r\n\r\n", position)
        if headers_end == -1:
            raise FormParseError("multipart: NextPart: EOF")
        headers = _parse_part_headers(body[position:headers_end])
        content_start = headers_end + 4

        # ─────────────────────────────────────────────────────────────────
        # PART BODY
        # ─────────────────────────────────────────────────────────────────
        content_end = body.find(part_end, content_start)
        if content_end == -1:
            raise FormParseError("unexpected EOF")
        content = body[content_start:content_end]

        disposition = headers.get("content-disposition")
        if disposition is not None:
            kind, params = parse_media_type(disposition)
            name = params.get("name", "")
            if kind == "form-data" and name and "filename" not in params:
                values.setdefault(name, []).append(content.decode("utf-8", errors="replace"))

        # Step past the CRLF so position points at the next delimiter.
        position = content_end + 2


def _parse_part_headers(raw: bytes) -> Dict[str, str]:
    """Parse part headers into a dict with lowercase names."""
    headers: Dict[str, str] = {}
    for line in raw.decode("utf-8", errors="replace").split("\r\n"):
        match = _MULTIPART_HEADER_PATTERN.match(line)
        if not match:
            raise FormParseError(f"multipart: malformed part header {line!r}")
        headers[match.group(1).strip().lower()] = match.group(2).strip()
    return headers


# =============================================================================
# REQUEST BODIES
# =============================================================================

def decode_body(
    content_type: str,
    body: bytes,
) -> Tuple[FormValues, Optional[FormParseError]]:
    """
    Decode a request body according to its Content-Type.

    =========================================================================
    DISPATCH ON CONTENT TYPE
    =========================================================================

        (missing)                          → application/octet-stream, no values
        application/x-www-form-urlencoded  → decode_query(body)
        multipart/form-data                → parse_multipart(body, boundary)
        anything else                      → no values, no error

    =========================================================================

    Returns:
        (values, first_error)
    """
    # RFC 7231 section 3.1.1.5: an absent type MAY be treated as octet-stream
    if not content_type:
        content_type = "application/octet-stream"

    try:
        media_type, params = parse_media_type(content_type)
    except FormParseError as e:
        return {}, e

    if media_type == "application/x-www-form-urlencoded":
        if len(body) > MAX_FORM_SIZE:
            return {}, FormParseError("http: POST too large")
        return decode_query(body.decode("utf-8", errors="replace"))

    if media_type == "multipart/form-data":
        boundary = params.get("boundary")
        if not boundary:
            return {}, FormParseError("no multipart boundary param in Content-Type")
        try:
            return parse_multipart(body, boundary), None
        except FormParseError as e:
            return {}, e

    return {}, None


def merge_values(*sources: FormValues) -> FormValues:
    """
    Concatenate several value maps, earlier sources first.

        >>> merge_values({"a": ["body"]}, {"a": ["query"], "b": ["x"]})
        {'a': ['body', 'query'], 'b': ['x']}
    """
    merged: FormValues = {}
    for source in sources:
        for key, values in source.items():
            merged.setdefault(key, []).extend(values)
    return merged
