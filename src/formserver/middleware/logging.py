"""
=============================================================================
ACCESS LOG
=============================================================================

One text line per request, in the spirit of the Apache common log format:

    127.0.0.1 - - [19/Oct/2026:10:00:00 +0000] "POST /form HTTP/1.1" 200 52 0.41ms

The lines go to the "formserver.access" logger at DEBUG, so a default
(INFO) run stays quiet and `log_level="DEBUG"` turns them on. Route the
logger elsewhere with the standard logging API:

    logging.getLogger("formserver.access").addHandler(file_handler)

=============================================================================
"""

import time
import logging

from .base import Middleware, NextHandler
from ..http.request import HTTPRequest
from ..http.response import HTTPResponse


logger = logging.getLogger("formserver.access")


class LoggingMiddleware(Middleware):
    """
    Times each request and writes an access log line.

    Requests whose handler raises are logged at ERROR and the exception is
    re-raised for the server to turn into a 500.
    """

    def __init__(self, log_level: int = logging.DEBUG):
        self.log_level = log_level

    def __call__(self, request: HTTPRequest, next: NextHandler) -> HTTPResponse:
        start_time = time.perf_counter()

        try:
            response = next(request)
        except Exception as e:
            duration_ms = (time.perf_counter() - start_time) * 1000
            logger.error(
                f"Request failed: {request.method} {request.path} "
                f"- {type(e).__name__}: {e} ({duration_ms:.2f}ms)"
            )
            raise

        duration_ms = (time.perf_counter() - start_time) * 1000

        logger.log(self.log_level, self.format_line(request, response, duration_ms))

        return response

    @staticmethod
    def format_line(request: HTTPRequest, response: HTTPResponse, duration_ms: float) -> str:
        target = request.path
        if request.query_string:
            target += "?" + request.query_string

        return (
            f'{request.client_address[0] or "-"} - - '
            f'[{time.strftime("%d/%b/%Y:%H:%M:%S %z")}] '
            f'"{request.method} {target} {request.version}" '
            f'{int(response.status)} {len(response.body)} {duration_ms:.2f}ms'
        )
