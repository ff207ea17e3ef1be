"""
Unit tests for form decoding.
"""

import pytest

from formserver.http.forms import (
    FormParseError,
    MAX_FORM_SIZE,
    decode_body,
    decode_query,
    merge_values,
    parse_media_type,
    parse_multipart,
    parse_query,
    unescape,
)


URLENCODED = "application/x-www-form-urlencoded"


def multipart_body(boundary: str, *parts: str) -> bytes:
    """Assemble a multipart body from pre-rendered parts (headers + blank line + content)."""
    body = ""
    for part in parts:
        body += f"--{boundary}\r\n{part}\r\n"
    body += f"--{boundary}--\r\n"
    return body.encode()


class TestUnescape:
    """Tests for strict percent-decoding."""

    def test_plain_value_unchanged(self):
        assert unescape("Ada") == "Ada"

    def test_plus_is_space(self):
        assert unescape("Ada+Lovelace") == "Ada Lovelace"

    def test_percent_escapes(self):
        assert unescape("12%20St%20James%27s") == "12 St James's"

    def test_utf8_sequence(self):
        assert unescape("caf%C3%A9") == "café"

    def test_escaped_plus_stays_plus(self):
        assert unescape("a%2Bb") == "a+b"

    @pytest.mark.parametrize("value, bad", [
        ("%zz", "%zz"),
        ("abc%4", "%4"),
        ("100%", "%"),
        ("%g1", "%g1"),
    ])
    def test_invalid_escape(self, value, bad):
        with pytest.raises(FormParseError) as exc_info:
            unescape(value)

        assert str(exc_info.value) == f'invalid URL escape "{bad}"'

    def test_form_parse_error_is_value_error(self):
        with pytest.raises(ValueError):
            unescape("%zz")


class TestDecodeQuery:
    """Tests for urlencoded decoding."""

    def test_simple_pairs(self):
        values, error = decode_query("name=Ada&address=London")

        assert error is None
        assert values == {"name": ["Ada"], "address": ["London"]}

    def test_repeated_keys_keep_order(self):
        values, _ = decode_query("a=1&a=2&a=3")
        assert values == {"a": ["1", "2", "3"]}

    def test_empty_pairs_skipped(self):
        values, error = decode_query("&&name=Ada&&")

        assert error is None
        assert values == {"name": ["Ada"]}

    def test_key_without_value(self):
        values, _ = decode_query("flag&name=")
        assert values == {"flag": [""], "name": [""]}

    def test_empty_string(self):
        assert decode_query("") == ({}, None)

    def test_semicolon_rejected(self):
        values, error = decode_query("a=1;b=2&name=Ada")

        assert str(error) == "invalid semicolon separator in query"
        assert values == {"name": ["Ada"]}

    def test_bad_escape_keeps_other_pairs(self):
        values, error = decode_query("name=%zz&address=London")

        assert str(error) == 'invalid URL escape "%zz"'
        assert values == {"address": ["London"]}

    def test_first_error_wins(self):
        _, error = decode_query("a=%zz&b=%yy")
        assert str(error) == 'invalid URL escape "%zz"'

    def test_parse_query_raises(self):
        with pytest.raises(FormParseError):
            parse_query("name=%zz")

    def test_parse_query_returns_values(self):
        assert parse_query("x=1") == {"x": ["1"]}


class TestParseMediaType:
    """Tests for Content-Type / Content-Disposition parsing."""

    def test_plain_type(self):
        assert parse_media_type("text/plain") == ("text/plain", {})

    def test_lowercases_type_and_params(self):
        media_type, params = parse_media_type("Text/HTML; Charset=UTF-8")

        assert media_type == "text/html"
        assert params == {"charset": "UTF-8"}

    def test_quoted_boundary(self):
        media_type, params = parse_media_type('multipart/form-data; boundary="a;b c"')

        assert media_type == "multipart/form-data"
        assert params == {"boundary": "a;b c"}

    def test_disposition_without_subtype(self):
        kind, params = parse_media_type('form-data; name="address"; filename="a.txt"')

        assert kind == "form-data"
        assert params == {"name": "address", "filename": "a.txt"}

    @pytest.mark.parametrize("value, message", [
        ("", "mime: no media type"),
        ("; charset=utf-8", "mime: no media type"),
        ("text plain", "mime: expected slash after first token"),
        ("text/", "mime: expected token after slash"),
        ("text/plain extra", "mime: unexpected content after media subtype"),
        ("text/plain; charset", "mime: invalid media parameter"),
        ("text/plain; a=1; a=2", "mime: duplicate parameter name"),
    ])
    def test_errors(self, value, message):
        with pytest.raises(FormParseError) as exc_info:
            parse_media_type(value)

        assert str(exc_info.value) == message


class TestParseMultipart:
    """Tests for multipart/form-data bodies."""

    def test_two_fields(self):
        body = multipart_body(
            "XyZ",
            'Content-Disposition: form-data; name="name"\r\n\r\nAda',
            'Content-Disposition: form-data; name="address"\r\n\r\nLondon',
        )

        assert parse_multipart(body, "XyZ") == {"name": ["Ada"], "address": ["London"]}

    def test_preamble_ignored(self):
        body = b"this is preamble\r\n" + multipart_body(
            "XyZ", 'Content-Disposition: form-data; name="name"\r\n\r\nAda'
        )

        assert parse_multipart(body, "XyZ") == {"name": ["Ada"]}

    def test_multiline_value(self):
        body = multipart_body(
            "XyZ", 'Content-Disposition: form-data; name="address"\r\n\r\nline 1\r\nline 2'
        )

        assert parse_multipart(body, "XyZ") == {"address": ["line 1\r\nline 2"]}

    def test_file_parts_skipped(self):
        body = multipart_body(
            "XyZ",
            'Content-Disposition: form-data; name="upload"; filename="a.txt"\r\n'
            "Content-Type: text/plain\r\n\r\nfile contents",
            'Content-Disposition: form-data; name="name"\r\n\r\nAda',
        )

        assert parse_multipart(body, "XyZ") == {"name": ["Ada"]}

    def test_nameless_part_skipped(self):
        body = multipart_body("XyZ", "Content-Disposition: form-data\r\n\r\nignored")
        assert parse_multipart(body, "XyZ") == {}

    def test_no_delimiter(self):
        with pytest.raises(FormParseError) as exc_info:
            parse_multipart(b"name=Ada", "XyZ")

        assert str(exc_info.value) == "multipart: NextPart: EOF"

    def test_missing_closing_boundary(self):
        body = b'--XyZ\r\nContent-Disposition: form-data; name="name"\r\n\r\nAda'

        with pytest.raises(FormParseError) as exc_info:
            parse_multipart(body, "XyZ")

        assert str(exc_info.value) == "unexpected EOF"


class TestDecodeBody:
    """Tests for body decoding by content type."""

    def test_urlencoded(self):
        values, error = decode_body(URLENCODED, b"name=Ada&address=London")

        assert error is None
        assert values == {"name": ["Ada"], "address": ["London"]}

    def test_urlencoded_with_charset(self):
        values, error = decode_body(URLENCODED + "; charset=utf-8", b"name=Ada")

        assert error is None
        assert values == {"name": ["Ada"]}

    def test_missing_content_type_is_octet_stream(self):
        assert decode_body("", b"name=Ada") == ({}, None)

    def test_other_content_type_ignored(self):
        assert decode_body("application/json", b'{"name": "Ada"}') == ({}, None)

    def test_malformed_content_type(self):
        values, error = decode_body("text plain", b"name=Ada")

        assert values == {}
        assert str(error) == "mime: expected slash after first token"

    def test_too_large(self):
        values, error = decode_body(URLENCODED, b"a" * (MAX_FORM_SIZE + 1))

        assert values == {}
        assert str(error) == "http: POST too large"

    def test_multipart(self):
        body = multipart_body("XyZ", 'Content-Disposition: form-data; name="name"\r\n\r\nAda')
        values, error = decode_body("multipart/form-data; boundary=XyZ", body)

        assert error is None
        assert values == {"name": ["Ada"]}

    def test_multipart_without_boundary(self):
        values, error = decode_body("multipart/form-data", b"")

        assert values == {}
        assert str(error) == "no multipart boundary param in Content-Type"

    def test_multipart_error_reported(self):
        values, error = decode_body("multipart/form-data; boundary=XyZ", b"garbage")

        assert values == {}
        assert str(error) == "multipart: NextPart: EOF"


class TestMergeValues:

    def test_earlier_sources_first(self):
        merged = merge_values({"a": ["body"]}, {"a": ["query"], "b": ["x"]})
        assert merged == {"a": ["body", "query"], "b": ["x"]}

    def test_sources_not_mutated(self):
        body = {"a": ["1"]}
        merge_values(body, {"a": ["2"]})
        assert body == {"a": ["1"]}
