"""Direct answers to CORS preflight requests."""

from __future__ import annotations

from collections.abc import Iterable

from backend import Backend
from config import CORS_ALLOWED_METHODS
from request import HTTPRequest
from response import HeaderValue, HTTPResponse

PREFLIGHT_METHOD = "OPTIONS"
HEADER_ALLOW = "Allow"
HEADER_AC_ALLOW_ORIGIN = "Access-Control-Allow-Origin"
HEADER_AC_ALLOW_METHODS = "Access-Control-Allow-Methods"
HEADER_AC_ALLOW_HEADERS = "Access-Control-Allow-Headers"
HEADER_AC_REQUEST_HEADERS = "Access-Control-Request-Headers"


def cors_enabled(backends: Iterable[Backend]) -> bool:
    return any(backend.is_cors_enabled() for backend in backends)


def is_preflight(request: HTTPRequest, backends: Iterable[Backend]) -> bool:
    return request.method == PREFLIGHT_METHOD and cors_enabled(backends)


def preflight_response(request: HTTPRequest) -> HTTPResponse:
    headers: dict[str, HeaderValue] = {
        HEADER_ALLOW: CORS_ALLOWED_METHODS,
        HEADER_AC_ALLOW_ORIGIN: "*",
        HEADER_AC_ALLOW_METHODS: CORS_ALLOWED_METHODS,
    }
    requested = request.header_values(HEADER_AC_REQUEST_HEADERS)
    if len(requested) == 1:
        headers[HEADER_AC_ALLOW_HEADERS] = requested[0]
    elif requested:
        headers[HEADER_AC_ALLOW_HEADERS] = list(requested)
    return HTTPResponse(status_code=200, headers=headers)
