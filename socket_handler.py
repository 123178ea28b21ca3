"""Low-level socket read/write utilities."""

from __future__ import annotations

import socket

from config import BUFFER_SIZE, MAX_BODY_BYTES, MAX_HEADER_BYTES
from response import HTTPResponse


class HTTPReadError(Exception):
    """Raised when a client request cannot be safely read from the socket."""


class MalformedRequestError(HTTPReadError):
    """Raised when socket bytes do not form a complete HTTP request."""


class HeaderTooLargeError(HTTPReadError):
    """Raised when HTTP headers exceed configured maximum size."""


class PayloadTooLargeError(HTTPReadError):
    """Raised when request body exceeds configured maximum size."""


class SocketTimeoutError(HTTPReadError):
    """Raised when a client times out while sending request bytes."""


def _content_length(header_bytes: bytes) -> int:
    for line in header_bytes.decode("iso-8859-1").split("\r\n")[1:]:
        if not line:
            continue
        if ":" not in line:
            raise MalformedRequestError("Malformed header while reading request")
        name, value = line.split(":", 1)
        if name.strip().lower() != "content-length":
            continue
        try:
            length = int(value.strip())
        except ValueError as exc:
            raise MalformedRequestError("Invalid Content-Length header") from exc
        if length < 0:
            raise MalformedRequestError("Negative Content-Length header")
        return length
    return 0


def request_length(buffer: bytes) -> int | None:
    """Total byte length of the request at the start of ``buffer``, once known."""
    header_end_index = buffer.find(b"\r\n\r\n")
    if header_end_index == -1:
        if len(buffer) > MAX_HEADER_BYTES:
            raise HeaderTooLargeError("Headers exceeded MAX_HEADER_BYTES")
        return None
    if header_end_index + 4 > MAX_HEADER_BYTES:
        raise HeaderTooLargeError("Headers exceeded MAX_HEADER_BYTES")

    body_length = _content_length(buffer[:header_end_index])
    if body_length > MAX_BODY_BYTES:
        raise PayloadTooLargeError("Body exceeded MAX_BODY_BYTES")
    return header_end_index + 4 + body_length


def read_http_request(client_socket: socket.socket) -> bytes:
    """Read one complete HTTP request; empty bytes when the peer sent nothing."""
    buffer = bytearray()
    while True:
        expected = request_length(bytes(buffer))
        if expected is not None and len(buffer) >= expected:
            return bytes(buffer[:expected])

        try:
            chunk = client_socket.recv(BUFFER_SIZE)
        except socket.timeout as exc:
            raise SocketTimeoutError("Timed out waiting for request bytes") from exc

        if not chunk:
            if not buffer:
                return b""
            raise MalformedRequestError("Connection closed before request completed")
        buffer.extend(chunk)


def write_http_response(client_socket: socket.socket, response: HTTPResponse) -> int:
    """Write the complete response to a client socket and return bytes sent."""
    payload = response.to_bytes()
    client_socket.sendall(payload)
    return len(payload)
