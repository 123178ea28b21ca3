"""HTTP response model and serializer."""

from __future__ import annotations

from dataclasses import dataclass, field
from email.utils import formatdate

from config import SERVER_NAME

REASON_PHRASES: dict[int, str] = {
    200: "OK",
    201: "Created",
    202: "Accepted",
    204: "No Content",
    301: "Moved Permanently",
    302: "Found",
    304: "Not Modified",
    400: "Bad Request",
    401: "Unauthorized",
    403: "Forbidden",
    404: "Not Found",
    405: "Method Not Allowed",
    408: "Request Timeout",
    409: "Conflict",
    413: "Payload Too Large",
    414: "URI Too Long",
    422: "Unprocessable Entity",
    429: "Too Many Requests",
    431: "Request Header Fields Too Large",
    500: "Internal Server Error",
    501: "Not Implemented",
    502: "Bad Gateway",
    503: "Service Unavailable",
    504: "Gateway Timeout",
    505: "HTTP Version Not Supported",
}

HeaderValue = str | list[str]


@dataclass(slots=True)
class HTTPResponse:
    """Outbound response.

    A header value given as a list is written as one header line per item.
    """

    status_code: int
    reason_phrase: str | None = None
    headers: dict[str, HeaderValue] = field(default_factory=dict)
    body: bytes | str = b""

    def __post_init__(self) -> None:
        if isinstance(self.body, str):
            self.body = self.body.encode("utf-8")

    def header(self, name: str) -> HeaderValue | None:
        wanted = name.lower()
        for header_name, value in self.headers.items():
            if header_name.lower() == wanted:
                return value
        return None

    def to_bytes(self) -> bytes:
        """Serialize the response into HTTP/1.1 wire format bytes."""
        reason = self.reason_phrase or REASON_PHRASES.get(self.status_code, "Unknown")
        normalized_headers = dict(self.headers)
        normalized_headers.setdefault(
            "Date",
            formatdate(timeval=None, localtime=False, usegmt=True),
        )
        normalized_headers.setdefault("Server", SERVER_NAME)
        if self.body:
            normalized_headers.setdefault("Content-Type", "text/plain; charset=utf-8")
        normalized_headers["Content-Length"] = str(len(self.body))

        header_lines = [f"HTTP/1.1 {self.status_code} {reason}"]
        for key, value in normalized_headers.items():
            if isinstance(value, list):
                header_lines.extend(f"{key}: {item}" for item in value)
            else:
                header_lines.append(f"{key}: {value}")
        head = "\r\n".join(header_lines).encode("iso-8859-1") + b"\r\n\r\n"
        return head + bytes(self.body)
