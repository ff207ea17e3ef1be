"""
=============================================================================
TCP SOCKET SERVER
=============================================================================

Owns the listening socket and runs the accept loop.

=============================================================================
SOCKET LIFECYCLE
=============================================================================

    socket()  ──►  setsockopt()  ──►  bind()  ──►  listen()  ──►  accept() ⟲
                   SO_REUSEADDR        │
                   TCP_NODELAY         └── port taken? → ServerBindError

    SO_REUSEADDR lets a restarted server bind while old connections from
    the previous run sit in TIME_WAIT. It does NOT let two live servers
    share a port, so "address already in use" still surfaces as an error.

=============================================================================
STOPPING
=============================================================================

There are no signal handlers: Ctrl+C raises KeyboardInterrupt in the main
thread and the process ends. shutdown() exists so that tests running the
server on a background thread can stop it. accept() wakes up once a second
to notice.

=============================================================================
"""

import socket
import logging
import threading
from typing import Optional, Callable, Tuple

from ..config import ServerConfig
from .connection import Connection


logger = logging.getLogger(__name__)


class ServerBindError(OSError):
    """The listening socket could not be bound (port in use, no permission)."""


class SocketServer:
    """
    Accepts TCP connections and hands each one to a callback.

        server = SocketServer(config)
        server.start(handle_connection)   # blocks until shutdown()
    """

    ACCEPT_POLL_INTERVAL = 1.0

    def __init__(self, config: ServerConfig):
        self.config = config
        self._socket: Optional[socket.socket] = None
        self._running = False
        self._ready = threading.Event()
        self._stopped = threading.Event()

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def address(self) -> Tuple[str, int]:
        return (self.config.host, self.config.port)

    def _create_socket(self) -> socket.socket:
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)

        # Responses go out in one sendall(); no point waiting to coalesce.
        sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)

        sock.settimeout(self.ACCEPT_POLL_INTERVAL)
        return sock

    def bind(self):
        """
        Create, bind and listen.

        Raises:
            ServerBindError: If the address cannot be bound.
        """
        self._socket = self._create_socket()
        try:
            self._socket.bind((self.config.host, self.config.port))
        except OSError as e:
            self._socket.close()
            self._socket = None
            raise ServerBindError(
                e.errno,
                f"listen tcp {self.config.host}:{self.config.port}: {e.strerror or e}",
            ) from e

        self._socket.listen(self.config.backlog)
        logger.info(f"Server listening on {self.config.host or '*'}:{self.config.port}")

    def start(self, connection_handler: Callable[[Connection], None]):
        """
        Bind (if not already bound) and accept connections until shutdown().

        Raises:
            ServerBindError: If the address cannot be bound.
        """
        if self._socket is None:
            self.bind()

        self._running = True
        self._stopped.clear()
        self._ready.set()

        try:
            self._accept_loop(connection_handler)
        finally:
            self._cleanup()

    def _accept_loop(self, connection_handler: Callable[[Connection], None]):
        while self._running:
            try:
                client_socket, client_address = self._socket.accept()
            except socket.timeout:
                continue
            except OSError as e:
                if self._running:
                    logger.error(f"Accept error: {e}")
                break

            logger.debug(f"Accepted connection from {client_address[0]}:{client_address[1]}")

            conn = Connection(
                socket=client_socket,
                address=client_address,
                buffer_size=self.config.buffer_size,
                timeout=self.config.timeout,
                keep_alive_timeout=self.config.keep_alive_timeout,
                max_header_size=self.config.max_header_size,
            )
            connection_handler(conn)

    def shutdown(self):
        """Stop the accept loop within one poll interval. Idempotent."""
        self._running = False

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        """Block until the accept loop is running."""
        return self._ready.wait(timeout)

    def wait_for_shutdown(self, timeout: Optional[float] = None) -> bool:
        """Block until the listening socket has been closed."""
        return self._stopped.wait(timeout)

    def _cleanup(self):
        self._running = False
        self._ready.clear()
        if self._socket is not None:
            self._socket.close()
            self._socket = None
        self._stopped.set()
        logger.info("Socket server stopped")
