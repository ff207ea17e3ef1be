"""
=============================================================================
FORM ECHO HANDLER
=============================================================================

Echoes the "name" and "address" fields of a submitted form.

    POST /form HTTP/1.1
    Content-Type: application/x-www-form-urlencoded

    name=Ada&address=London
                                      ┌──────────────────────────────┐
                               ──►    │ POST request successful      │
                                      │ Name = Ada                   │
                                      │ Address = London             │
                                      └──────────────────────────────┘

Any method is accepted: a GET with ?name=...&address=... is echoed the same
way. Missing fields print as empty. A form that cannot be decoded is
reported in the body with status 200:

    ParseForm() err: invalid URL escape "%zz"

=============================================================================
"""

import logging

from ..http.forms import FormParseError
from ..http.request import HTTPRequest
from ..http.response import HTTPResponse, ResponseBuilder


logger = logging.getLogger(__name__)


def form_handler(request: HTTPRequest) -> HTTPResponse:
    response = ResponseBuilder()

    try:
        request.parse_form()
    except FormParseError as e:
        logger.debug(f"Form parse error from {request.client_address[0]}: {e}")
        return response.write(f"ParseForm() err: {e}").build()

    response.write("POST request successful\n")
    response.write(f"Name = {request.form_value('name')}\n")
    response.write(f"Address = {request.form_value('address')}\n")
    return response.build()
