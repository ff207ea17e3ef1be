"""
=============================================================================
URL ROUTER
=============================================================================

Maps a request path to the handler registered for it.

=============================================================================
TWO KINDS OF PATTERN
=============================================================================

    ┌──────────────┬──────────────────────────────────────────────────────┐
    │  Pattern     │  Matches                                             │
    ├──────────────┼──────────────────────────────────────────────────────┤
    │  /hello      │  exactly /hello                                      │
    │              │  (not /hello/, not /hello/world)                     │
    ├──────────────┼──────────────────────────────────────────────────────┤
    │  /docs/      │  /docs/ and everything below it: /docs/a/b.html     │
    │  (subtree)   │  A pattern ending in "/" is a subtree pattern.      │
    ├──────────────┼──────────────────────────────────────────────────────┤
    │  /           │  everything no other pattern claims                  │
    └──────────────┴──────────────────────────────────────────────────────┘

An exact pattern always wins over a subtree pattern. Among subtree patterns
the LONGEST one wins, so registration order never matters:

    routes:  /   /docs/   /docs/api/

    /docs/api/v1.html  →  /docs/api/
    /docs/intro.html   →  /docs/
    /favicon.ico       →  /

=============================================================================
REDIRECTS
=============================================================================

    1. UNCLEAN PATHS
       /a//b, /a/./b, /a/../b  →  301 to /a/b, /a/b, /b
       The query string is kept.

    2. SUBTREE WITHOUT ITS SLASH
       With "/docs/" registered and no "/docs":
       /docs  →  301 to /docs/

=============================================================================
"""

from dataclasses import dataclass
from typing import Callable, Optional, Dict
from urllib.parse import quote
import logging
import posixpath
import re

from .request import HTTPRequest
from .response import HTTPResponse, not_found, redirect


logger = logging.getLogger(__name__)

# A handler takes a request and returns a response
Handler = Callable[[HTTPRequest], HTTPResponse]

_REPEATED_SLASHES = re.compile(r"/{2,}")

# Characters left unescaped when a cleaned path goes into a Location header
_PATH_SAFE = "/:@!$&'()*+,;=-._~"


@dataclass
class Route:
    """A pattern bound to a handler."""

    pattern: str
    handler: Handler

    @property
    def is_subtree(self) -> bool:
        return self.pattern.endswith("/")


def clean_path(path: str) -> str:
    """
    Canonical form of a URL path.

        >>> clean_path("/a//b/./c/..")
        '/a/b'
        >>> clean_path("/docs/")
        '/docs/'
        >>> clean_path("/../../etc/passwd")
        '/etc/passwd'

    A trailing slash survives cleaning, since it is what distinguishes a
    subtree from a file.
    """
    if not path:
        return "/"
    if not path.startswith("/"):
        path = "/" + path

    cleaned = posixpath.normpath(_REPEATED_SLASHES.sub("/", path))

    if path.endswith("/") and cleaned != "/":
        cleaned += "/"
    return cleaned


class Router:
    """
    Exact and subtree pattern router.

    ==========================================================================
    USAGE
    ==========================================================================

        router = Router()

        @router.route("/hello")
        def hello(request):
            return ResponseBuilder().text("Hello!").build()

        router.add_route("/", static_handler)

        response = router.handle(request)

    A Router is a plain object. Nothing is registered globally, so tests can
    build as many as they like.
    ==========================================================================
    """

    def __init__(self):
        self._exact: Dict[str, Route] = {}
        self._subtrees: Dict[str, Route] = {}

    # =========================================================================
    # ROUTE REGISTRATION
    # =========================================================================

    def add_route(self, pattern: str, handler: Handler) -> Route:
        """
        Register a handler for a pattern.

        Raises:
            ValueError: If the pattern is empty, does not start with "/",
                        or is already registered.
        """
        if not pattern or not pattern.startswith("/"):
            raise ValueError(f"Invalid pattern: {pattern!r}")
        if handler is None:
            raise ValueError(f"Nil handler for pattern {pattern!r}")
        if pattern in self._exact or pattern in self._subtrees:
            raise ValueError(f"Multiple registrations for {pattern}")

        route = Route(pattern=pattern, handler=handler)
        if route.is_subtree:
            self._subtrees[pattern] = route
        else:
            self._exact[pattern] = route

        logger.debug(f"Registered route {pattern} -> {getattr(handler, '__name__', handler)}")
        return route

    def route(self, pattern: str) -> Callable[[Handler], Handler]:
        """
        Decorator form of add_route().

            @router.route("/form")
            def form(request): ...
        """
        def decorator(handler: Handler) -> Handler:
            self.add_route(pattern, handler)
            return handler
        return decorator

    # =========================================================================
    # ROUTE MATCHING
    # =========================================================================

    def match(self, path: str) -> Optional[Route]:
        """
        Find the route for a path: exact first, then the longest subtree.
        """
        route = self._exact.get(path)
        if route is not None:
            return route

        best: Optional[Route] = None
        for pattern, candidate in self._subtrees.items():
            if path.startswith(pattern):
                if best is None or len(pattern) > len(best.pattern):
                    best = candidate
        return best

    def _subtree_redirect(self, path: str) -> Optional[str]:
        """
        "/docs" when only "/docs/" is registered → "/docs/".
        """
        if path in self._exact:
            return None
        candidate = path + "/"
        if candidate in self._subtrees:
            return candidate
        return None

    def handle(self, request: HTTPRequest) -> HTTPResponse:
        """
        Route a request and return the handler's response.

            1. path not clean        → 301 to the cleaned path
            2. subtree without "/"   → 301 to the subtree
            3. matching route        → its handler
            4. nothing               → 404 "404 page not found"
        """
        path = request.path

        cleaned = clean_path(path)
        if cleaned != path:
            return redirect(self._location(cleaned, request.query_string))

        subtree = self._subtree_redirect(path)
        if subtree is not None:
            return redirect(self._location(subtree, request.query_string))

        route = self.match(path)
        if route is None:
            return not_found()

        return route.handler(request)

    @staticmethod
    def _location(path: str, query_string: str) -> str:
        location = quote(path, safe=_PATH_SAFE)
        if query_string:
            location += "?" + query_string
        return location

    # =========================================================================
    # UTILITY METHODS
    # =========================================================================

    def __len__(self) -> int:
        return len(self._exact) + len(self._subtrees)

    def __contains__(self, pattern: str) -> bool:
        return pattern in self._exact or pattern in self._subtrees
