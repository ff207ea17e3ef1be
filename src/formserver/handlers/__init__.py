"""
=============================================================================
HANDLERS
=============================================================================

A handler is any callable taking an HTTPRequest and returning an
HTTPResponse. The three this server routes:

    ┌──────────┬───────────────────────┬────────────────────────────────┐
    │ Pattern  │ Handler               │ Does                           │
    ├──────────┼───────────────────────┼────────────────────────────────┤
    │ /        │ StaticFileHandler     │ files under the static root    │
    │ /form    │ form_handler          │ echo name and address          │
    │ /hello   │ hello_handler         │ "Hello!"                       │
    └──────────┴───────────────────────┴────────────────────────────────┘

None of them keep state between requests.

=============================================================================
"""

from .static import StaticFileHandler
from .form import form_handler
from .hello import hello_handler

__all__ = [
    "StaticFileHandler",
    "form_handler",
    "hello_handler",
]
