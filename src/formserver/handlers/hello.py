"""
Greeting endpoint: GET /hello → "Hello!".
"""

from ..http.request import HTTPRequest
from ..http.response import HTTPResponse, ResponseBuilder, http_error
from ..http.status_codes import HTTPStatus


GREETING_PATH = "/hello"


def hello_handler(request: HTTPRequest) -> HTTPResponse:
    """
    Reply "Hello!" to GET /hello.

    Checked in this order, both answering 404:

        path is not exactly /hello   →  "404 not found."
        method is not exactly GET    →  "Method is not supported."

    The router only sends /hello here, so the path check matters when the
    handler is mounted some other way.
    """
    if request.path != GREETING_PATH:
        return http_error(HTTPStatus.NOT_FOUND, "404 not found.")

    # 404 rather than 405, and HEAD is not treated as GET.
    if request.method != "GET":
        return http_error(HTTPStatus.NOT_FOUND, "Method is not supported.")

    return ResponseBuilder().write("Hello!").build()
