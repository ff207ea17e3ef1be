"""
=============================================================================
MIDDLEWARE
=============================================================================

    Middleware           base class: __call__(request, next) -> response
    MiddlewarePipeline   chains middleware around the router
    LoggingMiddleware    access log, one line per request

=============================================================================
"""

from .base import Middleware, MiddlewarePipeline, NextHandler
from .logging import LoggingMiddleware

__all__ = [
    "Middleware",
    "MiddlewarePipeline",
    "NextHandler",
    "LoggingMiddleware",
]
