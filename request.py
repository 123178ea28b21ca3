"""HTTP request model and parser."""

from __future__ import annotations

from dataclasses import dataclass, field
from urllib.parse import parse_qs, urlsplit

from config import MAX_BODY_BYTES, MAX_TARGET_LENGTH

ALLOWED_HTTP_VERSIONS = {"HTTP/1.1", "HTTP/1.0"}
KNOWN_METHODS = {
    "GET",
    "HEAD",
    "POST",
    "PUT",
    "DELETE",
    "OPTIONS",
    "PATCH",
    "TRACE",
    "CONNECT",
}


class HTTPRequestParseError(ValueError):
    """Request parse error carrying an HTTP status code."""

    def __init__(self, message: str, *, status_code: int = 400) -> None:
        super().__init__(message)
        self.status_code = status_code


@dataclass(frozen=True, slots=True)
class HTTPRequest:
    """An inbound request as seen by the dispatch core.

    Header names are kept exactly as the client sent them; use ``header`` or
    ``header_values`` for case-insensitive lookups. ``body`` is ``None`` when
    the request carried no payload.
    """

    method: str
    path: str
    url_base: str = "http://localhost"
    http_version: str = "HTTP/1.1"
    raw_target: str = "/"
    headers: dict[str, list[str]] = field(default_factory=dict)
    query_params: dict[str, list[str]] = field(default_factory=dict)
    body: bytes | None = None

    def header_values(self, name: str) -> list[str]:
        wanted = name.lower()
        values: list[str] = []
        for header_name, header_values in self.headers.items():
            if header_name.lower() == wanted:
                values.extend(header_values)
        return values

    def header(self, name: str) -> str | None:
        return _first_header(self.headers, name)

    @classmethod
    def from_bytes(cls, raw: bytes, *, scheme: str = "http") -> "HTTPRequest":
        """Parse raw HTTP request bytes into a structured request object."""
        try:
            header_bytes, body = raw.split(b"\r\n\r\n", 1)
        except ValueError as exc:
            raise HTTPRequestParseError("Missing CRLF CRLF request separator") from exc

        lines = header_bytes.decode("iso-8859-1").split("\r\n")
        if not lines or not lines[0]:
            raise HTTPRequestParseError("Missing request line")

        first_line_parts = lines[0].split(" ")
        if len(first_line_parts) != 3:
            raise HTTPRequestParseError("Invalid request line")

        method, target, http_version = first_line_parts
        if not method or not target or not http_version:
            raise HTTPRequestParseError("Request line contains empty tokens")

        normalized_method = method.upper()
        if normalized_method not in KNOWN_METHODS:
            raise HTTPRequestParseError("Method not implemented", status_code=501)

        if http_version not in ALLOWED_HTTP_VERSIONS:
            raise HTTPRequestParseError("Unsupported HTTP version", status_code=505)

        if len(target) > MAX_TARGET_LENGTH:
            raise HTTPRequestParseError("Request target too long", status_code=414)

        try:
            parsed_target = urlsplit(target)
            query_params = parse_qs(parsed_target.query, keep_blank_values=True)
        except ValueError as exc:
            raise HTTPRequestParseError(f"Invalid request target: {exc}") from exc
        path = parsed_target.path or "/"

        headers: dict[str, list[str]] = {}
        for line in lines[1:]:
            if not line:
                continue
            if ":" not in line:
                raise HTTPRequestParseError("Malformed header line")
            name, value = line.split(":", 1)
            header_name = name.strip()
            if not header_name:
                raise HTTPRequestParseError("Header name cannot be empty")
            headers.setdefault(header_name, []).append(value.strip())

        host = _first_header(headers, "host")
        if http_version == "HTTP/1.1" and host is None:
            raise HTTPRequestParseError("Host header required for HTTP/1.1")

        transfer_encoding = _first_header(headers, "transfer-encoding")
        if transfer_encoding and "chunked" in transfer_encoding.lower():
            raise HTTPRequestParseError("Chunked request bodies are not supported", status_code=501)

        content_length_value = _first_header(headers, "content-length")
        if content_length_value is not None:
            try:
                expected_body_length = int(content_length_value)
            except ValueError as exc:
                raise HTTPRequestParseError("Invalid Content-Length") from exc
            if expected_body_length < 0:
                raise HTTPRequestParseError("Negative Content-Length is invalid")
            if len(body) != expected_body_length:
                raise HTTPRequestParseError("Body length does not match Content-Length")
        elif body:
            raise HTTPRequestParseError("Body sent without Content-Length")

        if len(body) > MAX_BODY_BYTES:
            raise HTTPRequestParseError("Body exceeded MAX_BODY_BYTES", status_code=413)

        return cls(
            method=normalized_method,
            path=path,
            url_base=f"{scheme}://{host or 'localhost'}",
            http_version=http_version,
            raw_target=target,
            headers=headers,
            query_params=query_params,
            body=body or None,
        )


def _first_header(headers: dict[str, list[str]], name: str) -> str | None:
    wanted = name.lower()
    for header_name, values in headers.items():
        if header_name.lower() == wanted and values:
            return values[0]
    return None
