"""
=============================================================================
COMMAND-LINE ENTRY POINT
=============================================================================

    python -m formserver            # serve ./static on port 8080
    python -m formserver --version
    formserver                      # same, via the console script

Host, port and static directory are fixed; there are no flags for them.

    ┌─────────────────────────────────────────────────────────────────────┐
    │  Exit status                                                         │
    ├─────────────────────────────────────────────────────────────────────┤
    │  1   the port could not be bound (already in use, no permission)    │
    │  -   otherwise the server runs until the process is killed          │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
"""

import argparse
import logging
import sys
from typing import List, Optional

from . import __version__
from .app import create_app
from .config import ServerConfig
from .core import ServerBindError


logger = logging.getLogger("formserver")


def main(argv: Optional[List[str]] = None):
    parser = argparse.ArgumentParser(
        prog="formserver",
        description="Serve ./static, echo form submissions on /form and greet on /hello.",
    )
    parser.add_argument(
        "--version", "-v",
        action="version",
        version=f"formserver {__version__}",
    )
    parser.parse_args(argv)

    config = ServerConfig()
    server = create_app(config)

    print(f"Starting server at port {config.port}")

    try:
        server.run()
    except ServerBindError as e:
        logger.critical(f"{e}")
        sys.exit(1)
    except KeyboardInterrupt:
        logger.info("Interrupted")


if __name__ == "__main__":
    main()
