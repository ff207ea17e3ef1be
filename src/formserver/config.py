"""
=============================================================================
SERVER CONFIGURATION
=============================================================================

All tunables of the server in one dataclass.

=============================================================================
WHERE DO VALUES COME FROM?
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   The defaults below. That is the whole list.                       │
    │                                                                      │
    │   There are no environment variables, no config file and no         │
    │   --port flag: the server always listens on port 8080 on every      │
    │   interface and serves ./static.                                    │
    │                                                                      │
    │   Tests construct ServerConfig(...) directly to get a free port     │
    │   and a temporary static directory.                                 │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
"""

from dataclasses import dataclass
from typing import Optional


@dataclass
class ServerConfig:
    """
    Configuration for the form server.

    =========================================================================
    GROUPS
    =========================================================================

        NETWORK     host, port, backlog, buffer_size, timeout
        HTTP        keep_alive, keep_alive_timeout, max_header_size
        THREADING   min_workers, max_workers
        CONTENT     static_dir
        LOGGING     log_level
        IDENTITY    server_name

    =========================================================================
    """

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    host: str = ""
    """
    Address to bind. "" means every interface (IPv4).
    """

    port: int = 8080

    backlog: int = 128
    """
    Connections the kernel queues before accept() picks them up.
    """

    buffer_size: int = 8192
    """
    Bytes per recv() call.
    """

    timeout: Optional[float] = 30.0
    """
    Seconds to wait for the first request on a new connection.
    """

    # ─────────────────────────────────────────────────────────────────────
    # HTTP SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    keep_alive: bool = True

    keep_alive_timeout: float = 5.0
    """
    Seconds an idle keep-alive connection waits for its next request.
    """

    max_header_size: int = 1 << 20
    """
    Largest request line plus headers, in bytes (1 MB). Larger → 431.
    """

    # ─────────────────────────────────────────────────────────────────────
    # THREAD POOL SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    min_workers: int = 4

    max_workers: int = 16

    # ─────────────────────────────────────────────────────────────────────
    # CONTENT
    # ─────────────────────────────────────────────────────────────────────

    static_dir: str = "static"
    """
    Directory served for every path no other route claims.
    Relative paths resolve against the working directory.
    """

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING
    # ─────────────────────────────────────────────────────────────────────

    log_level: str = "INFO"
    """
    DEBUG also shows the access log (one line per request).
    """

    # ─────────────────────────────────────────────────────────────────────
    # SERVER IDENTITY
    # ─────────────────────────────────────────────────────────────────────

    server_name: str = "formserver/1.0"

    def validate(self) -> None:
        """
        Reject impossible settings before anything is bound.

        Raises:
            ValueError: Naming the first bad setting.
        """
        if not 0 < self.port < 65536:
            raise ValueError(f"Invalid port: {self.port}. Must be 1-65535.")
        if self.backlog < 1:
            raise ValueError("backlog must be >= 1")
        if self.min_workers < 1:
            raise ValueError("min_workers must be >= 1")
        if self.max_workers < self.min_workers:
            raise ValueError("max_workers must be >= min_workers")
        if self.buffer_size < 1024:
            raise ValueError("buffer_size must be >= 1024")
        if self.timeout is not None and self.timeout <= 0:
            raise ValueError("timeout must be > 0")
        if self.keep_alive_timeout <= 0:
            raise ValueError("keep_alive_timeout must be > 0")
        if self.max_header_size < 1024:
            raise ValueError("max_header_size must be >= 1024")
        if not self.static_dir:
            raise ValueError("static_dir must not be empty")
