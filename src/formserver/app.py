"""
=============================================================================
APPLICATION ASSEMBLY
=============================================================================

Builds the routing table and the server around it.

    build_router("static")
        │
        ├── "/"       → StaticFileHandler("static")   (catch-all)
        ├── "/form"   → form_handler
        └── "/hello"  → hello_handler

    create_app(config)
        └── WebServer(build_router(config.static_dir), config)
              + LoggingMiddleware

=============================================================================
"""

from pathlib import Path
from typing import Optional, Union

from .config import ServerConfig
from .handlers import StaticFileHandler, form_handler, hello_handler
from .http.router import Router
from .middleware import LoggingMiddleware
from .server import WebServer


def build_router(static_dir: Union[str, Path] = "static") -> Router:
    """
    A fresh Router with the three endpoints.

    Each call returns a new, independent router.
    """
    router = Router()
    router.add_route("/", StaticFileHandler(static_dir))
    router.add_route("/form", form_handler)
    router.add_route("/hello", hello_handler)
    return router


def create_app(config: Optional[ServerConfig] = None) -> WebServer:
    """
    The fully assembled server, not yet bound.

        server = create_app(ServerConfig(port=9000, static_dir="public"))
        server.run()
    """
    config = config or ServerConfig()
    server = WebServer(build_router(config.static_dir), config)
    server.use(LoggingMiddleware())
    return server
