"""Uniform, read-only view of a request used by every backend's matcher."""

from __future__ import annotations

import logging
from collections.abc import Iterator, Mapping
from types import MappingProxyType
from typing import Any

from body_classifier import BodyKind, classify
from body_classifier import logger as classifier_logger
from config import TEXT_ENCODING
from request import HTTPRequest

REQUEST_URL_BASE = "request_url_base"
REQUEST_URI = "request_uri"
REQUEST_METHOD = "request_method"
REQUEST_HEADERS = "request_headers"
REQUEST_PARAMS = "request_params"
REQUEST_BYTES = "request_bytes"
REQUEST_BODY = "request"
RESPONSE_STATUS = "response_status"


class MatchContext(Mapping[str, Any]):
    """Immutable mapping from the well-known keys above to request values."""

    __slots__ = ("_values", "_body_kind")

    def __init__(self, values: Mapping[str, Any], *, body_kind: BodyKind | None = None) -> None:
        self._values = MappingProxyType(dict(values))
        self._body_kind = body_kind

    @property
    def body_kind(self) -> BodyKind | None:
        return self._body_kind

    @property
    def method(self) -> str:
        return self._values[REQUEST_METHOD]

    @property
    def uri(self) -> str:
        return self._values[REQUEST_URI]

    @property
    def headers(self) -> Mapping[str, tuple[str, ...]]:
        return self._values[REQUEST_HEADERS]

    @property
    def params(self) -> Mapping[str, tuple[str, ...]]:
        return self._values[REQUEST_PARAMS]

    @property
    def body(self) -> Any:
        return self._values.get(REQUEST_BODY)

    def __getitem__(self, key: str) -> Any:
        return self._values[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"MatchContext({self.method} {self.uri}, body_kind={self._body_kind})"


def _freeze_multimap(source: Mapping[str, list[str]]) -> Mapping[str, tuple[str, ...]]:
    return MappingProxyType({name: tuple(values) for name, values in source.items()})


def build_match_context(
    request: HTTPRequest,
    *,
    encoding: str = TEXT_ENCODING,
    logger: logging.Logger = classifier_logger,
) -> MatchContext:
    values: dict[str, Any] = {
        REQUEST_URL_BASE: request.url_base,
        REQUEST_URI: request.path,
        REQUEST_METHOD: request.method,
        REQUEST_HEADERS: _freeze_multimap(request.headers),
        REQUEST_PARAMS: _freeze_multimap(request.query_params),
        RESPONSE_STATUS: 200,
    }
    if request.body is None:
        return MatchContext(values)

    classified = classify(request.body, encoding=encoding, logger=logger)
    values[REQUEST_BYTES] = request.body
    values[REQUEST_BODY] = classified.value
    return MatchContext(values, body_kind=classified.kind)
