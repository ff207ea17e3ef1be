"""
=============================================================================
STATIC FILE HANDLER
=============================================================================

Serves the files under the static root for every path that no other route
claims. Registered on "/", so it is the router's catch-all.

=============================================================================
URL → FILE
=============================================================================

    static root:  ./static

    GET /               →  ./static/index.html   (or a listing of ./static)
    GET /form.html      →  ./static/form.html
    GET /css/site.css   →  ./static/css/site.css
    GET /missing.txt    →  404 "404 page not found"

=============================================================================
CANONICAL URLS
=============================================================================

Directories and files each have one URL. The others redirect to it, with a
relative Location so the server never needs to know its own host name:

    ┌──────────────────────┬──────────────┬──────────────────────────────┐
    │  Request             │  Is          │  Answer                      │
    ├──────────────────────┼──────────────┼──────────────────────────────┤
    │  /docs               │  directory   │  301  Location: docs/        │
    │  /form.html/         │  file        │  301  Location: ../form.html │
    │  /docs/index.html    │  file        │  301  Location: ./           │
    └──────────────────────┴──────────────┴──────────────────────────────┘

=============================================================================
SECURITY
=============================================================================

The router has already cleaned the path, so it contains no "..". A symlink
inside the root can still point outside it; the resolved path is checked
against the root and anything outside gets 403.

=============================================================================
"""

import html
import logging
import posixpath
from pathlib import Path
from typing import Union
from urllib.parse import quote

from ..http.request import HTTPRequest
from ..http.response import HTTPResponse, ResponseBuilder, http_error, not_found, forbidden, redirect
from ..http.status_codes import HTTPStatus


logger = logging.getLogger(__name__)

INDEX_FILE = "index.html"


class StaticFileHandler:
    """
    Serves a directory tree over HTTP.

        static = StaticFileHandler("static")
        router.add_route("/", static.handle)

    No caching headers and no conditional requests: every GET reads the
    file from disk and sends all of it.
    """

    def __init__(self, root_dir: Union[str, Path]):
        self.root_dir = Path(root_dir).resolve()

        if not self.root_dir.is_dir():
            # Not fatal: every request will simply be a 404.
            logger.warning(f"Static root {self.root_dir} is not a directory")

    def __call__(self, request: HTTPRequest) -> HTTPResponse:
        return self.handle(request)

    def handle(self, request: HTTPRequest) -> HTTPResponse:
        url_path = request.path
        if not url_path.startswith("/"):
            url_path = "/" + url_path

        # ─────────────────────────────────────────────────────────────────
        # /dir/index.html → ./
        # ─────────────────────────────────────────────────────────────────
        if url_path.endswith("/" + INDEX_FILE):
            return self._local_redirect(request, "./")

        relative = posixpath.normpath(url_path).lstrip("/")
        full_path = self.root_dir / relative

        # ─────────────────────────────────────────────────────────────────
        # SECURITY: stay inside the root
        # ─────────────────────────────────────────────────────────────────
        try:
            full_path.resolve().relative_to(self.root_dir)
        except ValueError:
            logger.warning(f"Refusing path outside static root: {url_path}")
            return forbidden()

        try:
            is_dir = full_path.is_dir()
            exists = is_dir or full_path.is_file()
        except PermissionError:
            return forbidden()

        if not exists:
            return not_found()

        # ─────────────────────────────────────────────────────────────────
        # CANONICAL URL REDIRECTS
        # ─────────────────────────────────────────────────────────────────
        if is_dir and not url_path.endswith("/"):
            return self._local_redirect(request, posixpath.basename(url_path) + "/")

        if not is_dir and url_path.endswith("/"):
            return self._local_redirect(request, "../" + full_path.name)

        if is_dir:
            index_path = full_path / INDEX_FILE
            if index_path.is_file():
                return self._serve_file(index_path)
            return self._directory_listing(full_path)

        return self._serve_file(full_path)

    def _serve_file(self, path: Path) -> HTTPResponse:
        """
        Read a whole file into the response body.

        The content type comes from the extension, or from sniffing the
        first 512 bytes when the extension is unknown.
        """
        try:
            with path.open("rb") as f:
                content = f.read()
        except PermissionError:
            return forbidden()
        except OSError as e:
            logger.error(f"Error serving file {path}: {e}")
            return http_error(HTTPStatus.INTERNAL_SERVER_ERROR, "500 Internal Server Error")

        return ResponseBuilder().file(content, path.name).build()

    def _directory_listing(self, path: Path) -> HTTPResponse:
        """
        Minimal HTML listing, one link per entry, sorted by name.

            <pre>
            <a href="css/">css/</a>
            <a href="form.html">form.html</a>
            </pre>
        """
        try:
            entries = sorted(path.iterdir(), key=lambda p: p.name)
        except PermissionError:
            return forbidden()
        except OSError as e:
            logger.error(f"Error reading directory {path}: {e}")
            return http_error(HTTPStatus.INTERNAL_SERVER_ERROR, "Error reading directory")

        lines = [
            "<!doctype html>",
            '<meta name="viewport" content="width=device-width">',
            "<pre>",
        ]
        for entry in entries:
            name = entry.name + ("/" if entry.is_dir() else "")
            lines.append(f'<a href="{quote(name)}">{html.escape(name)}</a>')
        lines.append("</pre>")

        return ResponseBuilder().html("\n".join(lines) + "\n").build()

    @staticmethod
    def _local_redirect(request: HTTPRequest, location: str) -> HTTPResponse:
        if request.query_string:
            location += "?" + request.query_string
        return redirect(location)
