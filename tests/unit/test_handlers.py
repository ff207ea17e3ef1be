"""
Unit tests for the static, form and greeting handlers.
"""

import logging
from pathlib import Path

import pytest

from formserver.handlers import StaticFileHandler, form_handler, hello_handler
from formserver.http.request import HTTPRequest, parse_request
from formserver.http.status_codes import HTTPStatus


def get(path: str, query_string: str = "", method: str = "GET") -> HTTPRequest:
    return HTTPRequest(method=method, path=path, query_string=query_string)


def post_form(body: bytes, target: str = "/form",
              content_type: str = "application/x-www-form-urlencoded") -> HTTPRequest:
    raw = (
        f"POST {target} HTTP/1.1\r\n"
        f"Content-Type: {content_type}\r\n"
        f"Content-Length: {len(body)}\r\n"
        f"\r\n"
    ).encode() + body
    return parse_request(raw)


class TestStaticFileHandler:
    """Tests for StaticFileHandler."""

    @pytest.fixture
    def handler(self, static_root: Path) -> StaticFileHandler:
        return StaticFileHandler(static_root)

    def test_serves_file(self, handler: StaticFileHandler, static_root: Path):
        """Existing files come back byte for byte."""
        response = handler(get("/hello.txt"))

        assert response.status == HTTPStatus.OK
        assert response.body == (static_root / "hello.txt").read_bytes()
        assert response.headers["Content-Type"] == "text/plain; charset=utf-8"

    def test_content_type_from_extension(self, handler: StaticFileHandler):
        response = handler(get("/page.html"))
        assert response.headers["Content-Type"] == "text/html; charset=utf-8"

    def test_binary_file(self, handler: StaticFileHandler):
        response = handler(get("/blob.bin"))

        assert response.body == bytes(range(256))
        assert response.headers["Content-Type"] == "application/octet-stream"

    def test_sniffs_unknown_extension(self, handler: StaticFileHandler, static_root: Path):
        (static_root / "README").write_text("plain words\n")

        response = handler(get("/README"))
        assert response.headers["Content-Type"] == "text/plain; charset=utf-8"

    def test_missing_file(self, handler: StaticFileHandler):
        response = handler(get("/anything-not-registered"))

        assert response.status == HTTPStatus.NOT_FOUND
        assert response.body == b"404 page not found"

    def test_directory_serves_index(self, handler: StaticFileHandler, static_root: Path):
        response = handler(get("/docs/"))

        assert response.status == HTTPStatus.OK
        assert response.body == (static_root / "docs" / "index.html").read_bytes()

    def test_directory_without_slash_redirects(self, handler: StaticFileHandler):
        response = handler(get("/docs", "x=1"))

        assert response.status == HTTPStatus.MOVED_PERMANENTLY
        assert response.headers["Location"] == "docs/?x=1"

    def test_file_with_slash_redirects(self, handler: StaticFileHandler):
        response = handler(get("/hello.txt/"))

        assert response.status == HTTPStatus.MOVED_PERMANENTLY
        assert response.headers["Location"] == "../hello.txt"

    def test_index_html_redirects_to_directory(self, handler: StaticFileHandler):
        response = handler(get("/docs/index.html"))

        assert response.status == HTTPStatus.MOVED_PERMANENTLY
        assert response.headers["Location"] == "./"

    def test_directory_listing(self, handler: StaticFileHandler):
        response = handler(get("/"))

        assert response.status == HTTPStatus.OK
        assert response.headers["Content-Type"] == "text/html; charset=utf-8"

        body = response.body.decode()
        assert "<pre>" in body
        assert '<a href="docs/">docs/</a>' in body
        assert '<a href="hello.txt">hello.txt</a>' in body
        assert body.index("blob.bin") < body.index("docs/") < body.index("hello.txt")

    def test_listing_escapes_names(self, handler: StaticFileHandler, static_root: Path):
        (static_root / "empty" / "a b&c.txt").write_text("x")

        body = handler(get("/empty/")).body.decode()
        assert '<a href="a%20b%26c.txt">a b&amp;c.txt</a>' in body

    def test_empty_directory_listing(self, handler: StaticFileHandler):
        body = handler(get("/empty/")).body.decode()
        assert "<pre>\n</pre>\n" in body

    def test_dot_segments_stay_inside_root(self, handler: StaticFileHandler):
        response = handler(get("/../../hello.txt"))
        assert response.status == HTTPStatus.OK

    def test_symlink_out_of_root_forbidden(self, handler: StaticFileHandler,
                                           static_root: Path, tmp_path: Path):
        secret = tmp_path / "secret.txt"
        secret.write_text("secret")
        (static_root / "link.txt").symlink_to(secret)

        response = handler(get("/link.txt"))

        assert response.status == HTTPStatus.FORBIDDEN
        assert response.body == b"403 Forbidden"

    def test_missing_root(self, tmp_path: Path, caplog):
        with caplog.at_level(logging.WARNING, logger="formserver.handlers.static"):
            handler = StaticFileHandler(tmp_path / "nope")

        assert "not a directory" in caplog.text
        assert handler(get("/")).status == HTTPStatus.NOT_FOUND

    def test_repeatable(self, handler: StaticFileHandler):
        first = handler(get("/hello.txt"))
        second = handler(get("/hello.txt"))

        assert first == second


class TestFormHandler:
    """Tests for form_handler."""

    def test_echoes_fields(self):
        response = form_handler(post_form(b"name=Ada&address=London"))

        assert response.status == HTTPStatus.OK
        assert response.body == b"POST request successful\nName = Ada\nAddress = London\n"

    def test_decodes_values(self, sample_post_request: bytes):
        response = form_handler(parse_request(sample_post_request))

        assert response.body.decode().splitlines() == [
            "POST request successful",
            "Name = Ada Lovelace",
            "Address = 12 St James's Sq",
        ]

    def test_missing_fields_are_empty(self):
        response = form_handler(post_form(b"other=1"))
        assert response.body == b"POST request successful\nName = \nAddress = \n"

    def test_get_query_is_echoed(self):
        response = form_handler(get("/form", "name=Ada&address=London"))
        assert b"Name = Ada\nAddress = London\n" in response.body

    def test_body_preferred_over_query(self):
        response = form_handler(post_form(b"name=body", target="/form?name=query&address=q"))
        assert response.body == b"POST request successful\nName = body\nAddress = q\n"

    def test_malformed_body(self):
        """Decode failures are reported in the body with status 200."""
        response = form_handler(post_form(b"name=%zz"))

        assert response.status == HTTPStatus.OK
        assert response.body == b'ParseForm() err: invalid URL escape "%zz"'

    def test_malformed_query(self):
        response = form_handler(get("/form", "name=%zz"))
        assert response.body.startswith(b"ParseForm() err: ")

    def test_multipart(self):
        body = (
            b"--XyZ\r\n"
            b'Content-Disposition: form-data; name="name"\r\n\r\n'
            b"Ada\r\n"
            b"--XyZ\r\n"
            b'Content-Disposition: form-data; name="address"\r\n\r\n'
            b"London\r\n"
            b"--XyZ--\r\n"
        )
        response = form_handler(post_form(body, content_type="multipart/form-data; boundary=XyZ"))

        assert response.body == b"POST request successful\nName = Ada\nAddress = London\n"


class TestHelloHandler:
    """Tests for hello_handler."""

    def test_get(self):
        response = hello_handler(get("/hello"))

        assert response.status == HTTPStatus.OK
        assert response.body == b"Hello!"

    @pytest.mark.parametrize("method", ["POST", "PUT", "DELETE", "HEAD"])
    def test_other_methods(self, method: str):
        response = hello_handler(get("/hello", method=method))

        assert response.status == HTTPStatus.NOT_FOUND
        assert response.body == b"Method is not supported."
        assert response.headers["X-Content-Type-Options"] == "nosniff"

    def test_wrong_path(self):
        """The path check comes before the method check."""
        response = hello_handler(get("/hello/again", method="POST"))

        assert response.status == HTTPStatus.NOT_FOUND
        assert response.body == b"404 not found."
