"""
=============================================================================
FORMSERVER
=============================================================================

A small HTTP/1.1 server on raw sockets, standard library only.

    GET  /anything     file from ./static (404 if there is none)
    ANY  /form         echoes the form fields "name" and "address"
    GET  /hello        "Hello!"

=============================================================================
PACKAGE LAYOUT
=============================================================================

    formserver/
    ├── __main__.py        python -m formserver
    ├── app.py             routing table + server assembly
    ├── server.py          WebServer: keep-alive loop, error replies
    ├── config.py          ServerConfig
    ├── core/              sockets, connections, worker threads
    ├── http/              parsing, forms, responses, routing
    ├── middleware/        access log
    └── handlers/          static files, form echo, greeting

=============================================================================
"""

__version__ = "1.0.0"

from .config import ServerConfig
from .server import WebServer
from .app import build_router, create_app

__all__ = ["ServerConfig", "WebServer", "build_router", "create_app", "__version__"]
