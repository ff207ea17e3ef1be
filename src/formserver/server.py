"""
=============================================================================
WEB SERVER
=============================================================================

Ties the pieces together: listening socket, worker pool, request parser,
middleware and the router it was given.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   SocketServer.accept()                     (main thread)           │
    │        │                                                             │
    │        ▼                                                             │
    │   ThreadPool.submit(_process_connection)    (worker thread)         │
    │        │                                                             │
    │        ▼                                                             │
    │   ┌── keep-alive loop ───────────────────────────────────────────┐   │
    │   │  Connection.read_request()  → bytes                          │   │
    │   │  RequestParser.parse()      → HTTPRequest                    │   │
    │   │  middleware → Router.handle → handler → HTTPResponse         │   │
    │   │  Connection.send_response(response.to_bytes())               │   │
    │   └──────────────────────────────────────────────────────────────┘   │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
WHAT THE LISTENER GUARANTEES EVERY HANDLER
=============================================================================

    - HEAD gets the GET headers (Content-Length included) and no body
    - A handler that raises becomes a 500 "Internal Server Error"; the
      traceback goes to the log, never to the client
    - Malformed requests are answered ("400 Bad Request", ...) and the
      connection is closed without reaching the router

=============================================================================
"""

import logging
from typing import Optional, Callable

from .config import ServerConfig
from .core import SocketServer, Connection, ConnectionState, ThreadPool
from .http import (
    HTTPRequest, RequestParser, HTTPParseError,
    HTTPResponse, HTTPStatus, Router,
    http_error, internal_error,
)
from .middleware import MiddlewarePipeline, Middleware


logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


class WebServer:
    """
    Threaded HTTP/1.1 server around an explicit Router.

        router = Router()
        router.add_route("/hello", hello_handler)

        server = WebServer(router, ServerConfig(port=8080))
        server.use(LoggingMiddleware())
        server.run()   # blocks

    The router is passed in rather than looked up globally, so two servers
    in one process (or one per test) never see each other's routes.
    """

    def __init__(self, router: Router, config: Optional[ServerConfig] = None):
        self.config = config or ServerConfig()
        self.config.validate()

        self._router = router
        self._socket_server = SocketServer(self.config)
        self._thread_pool = ThreadPool(
            min_workers=self.config.min_workers,
            max_workers=self.config.max_workers,
        )
        self._parser = RequestParser()
        self._middleware = MiddlewarePipeline()
        self._handler: Optional[Callable[[HTTPRequest], HTTPResponse]] = None
        self._running = False

    def use(self, middleware: Middleware) -> "WebServer":
        """Add middleware; the first added runs outermost."""
        self._middleware.add(middleware)
        return self

    @property
    def router(self) -> Router:
        return self._router

    @property
    def socket_server(self) -> SocketServer:
        return self._socket_server

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def bind(self):
        """
        Bind the listening socket without serving yet.

        Raises:
            ServerBindError: If the port is taken or not permitted.
        """
        self._socket_server.bind()

    def run(self):
        """
        Serve until shutdown() is called or the process ends.

        Raises:
            ServerBindError: If the port is taken or not permitted.
        """
        self._setup_logging()

        if self._socket_server.is_running:
            raise RuntimeError("Server is already running")

        self._handler = self._middleware.wrap(self._router.handle)
        self._running = True
        self._thread_pool.start()

        logger.info(
            f"Serving {len(self._router)} routes on "
            f"{self.config.host or '*'}:{self.config.port} "
            f"(workers {self.config.min_workers}-{self.config.max_workers})"
        )

        try:
            self._socket_server.start(self._handle_connection)
        finally:
            self._running = False
            self._thread_pool.shutdown()

    def shutdown(self):
        """
        Stop accepting connections. run() returns within a second.

        In-flight requests are not drained.
        """
        self._socket_server.shutdown()

    def _setup_logging(self):
        level = getattr(logging, self.config.log_level.upper(), logging.INFO)
        logging.basicConfig(level=level, format=LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")
        logging.getLogger("formserver").setLevel(level)

    # =========================================================================
    # CONNECTIONS
    # =========================================================================

    def _handle_connection(self, conn: Connection):
        """Hand a new connection to the worker pool (accept thread)."""
        if not self._thread_pool.submit(self._process_connection, args=(conn,)):
            logger.warning(f"[{conn.id}] Thread pool full, rejecting connection")
            with conn:
                self._send_error(conn, HTTPStatus.SERVICE_UNAVAILABLE)

    def _process_connection(self, conn: Connection):
        """
        Serve requests on one connection until either side is done
        (worker thread).
        """
        with conn:
            while self._running:
                try:
                    raw_request = conn.read_request()
                except HTTPParseError as e:
                    logger.debug(f"[{conn.id}] Unframeable request: {e}")
                    self._send_error(conn, e.status_code)
                    break
                except TimeoutError:
                    self._send_error(conn, HTTPStatus.REQUEST_TIMEOUT)
                    break

                if raw_request is None:
                    break

                try:
                    request = self._parser.parse(raw_request, conn.address)
                except HTTPParseError as e:
                    logger.debug(f"[{conn.id}] Bad request: {e}")
                    self._send_error(conn, e.status_code)
                    break

                conn.state = ConnectionState.PROCESSING
                response = self.dispatch(request)

                keep_alive = request.is_keep_alive and self.config.keep_alive
                if keep_alive:
                    if request.version == "HTTP/1.0":
                        response.headers.setdefault("Connection", "keep-alive")
                    response.headers.setdefault(
                        "Keep-Alive", f"timeout={int(self.config.keep_alive_timeout)}"
                    )
                else:
                    response.headers["Connection"] = "close"

                data = response.to_bytes(
                    self.config.server_name,
                    include_body=request.method != "HEAD",
                )
                if not conn.send_response(data):
                    break

                if not keep_alive or response.headers.get("Connection") == "close":
                    break

                conn.set_keep_alive()

    def dispatch(self, request: HTTPRequest) -> HTTPResponse:
        """
        Run a request through middleware and router.

        Never raises: handler failures become 500 responses.
        """
        handler = self._handler or self._middleware.wrap(self._router.handle)
        try:
            return handler(request)
        except Exception as e:
            logger.exception(f"Handler error for {request.method} {request.path}: {e}")
            return internal_error()

    def _send_error(self, conn: Connection, status: int):
        """
        Reply to a request that never reached the router.

        Body is the status line text, e.g. "400 Bad Request".
        """
        status = HTTPStatus(status)
        response = http_error(status, f"{int(status)} {status.phrase}")
        response.headers["Connection"] = "close"
        conn.send_response(response.to_bytes(self.config.server_name))
