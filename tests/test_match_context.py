"""Unit tests for match context construction."""

import pytest

from body_classifier import BodyKind
from match_context import (
    REQUEST_BODY,
    REQUEST_BYTES,
    REQUEST_HEADERS,
    REQUEST_METHOD,
    REQUEST_PARAMS,
    REQUEST_URI,
    REQUEST_URL_BASE,
    RESPONSE_STATUS,
    build_match_context,
)
from request import HTTPRequest


def _request(body: bytes | None = None) -> HTTPRequest:
    return HTTPRequest(
        method="POST",
        path="/items",
        url_base="http://localhost:8080",
        headers={"Content-Type": ["application/json"], "X-Tag": ["a", "b"]},
        query_params={"page": ["2"]},
        body=body,
    )


def test_context_without_body_has_no_body_keys() -> None:
    context = build_match_context(_request())

    assert context[REQUEST_URL_BASE] == "http://localhost:8080"
    assert context[REQUEST_URI] == "/items"
    assert context[REQUEST_METHOD] == "POST"
    assert context[REQUEST_HEADERS]["X-Tag"] == ("a", "b")
    assert context[REQUEST_PARAMS] == {"page": ("2",)}
    assert context[RESPONSE_STATUS] == 200
    assert REQUEST_BYTES not in context
    assert REQUEST_BODY not in context
    assert context.body_kind is None
    assert context.body is None


def test_json_body_is_stored_raw_and_parsed() -> None:
    context = build_match_context(_request(b'{"kind": "book"}'))

    assert context[REQUEST_BYTES] == b'{"kind": "book"}'
    assert context[REQUEST_BODY] == {"kind": "book"}
    assert context.body_kind is BodyKind.JSON


def test_malformed_body_still_builds_context() -> None:
    context = build_match_context(_request(b"{bad"))

    assert context.body_kind is BodyKind.STRING
    assert context[REQUEST_BODY] == "{bad"


def test_context_is_read_only() -> None:
    context = build_match_context(_request())

    with pytest.raises(TypeError):
        context[REQUEST_METHOD] = "GET"  # type: ignore[index]
    with pytest.raises(TypeError):
        context[REQUEST_HEADERS]["X-New"] = ("1",)


def test_context_is_detached_from_request_headers() -> None:
    request = _request()
    context = build_match_context(request)

    request.headers["X-Tag"].append("c")

    assert context.headers["X-Tag"] == ("a", "b")


def test_contexts_are_built_fresh_per_request() -> None:
    request = _request(b"hello")

    first = build_match_context(request)
    second = build_match_context(request)

    assert first is not second
    assert dict(first) == dict(second)


def test_deeply_nested_json_body_still_builds_context() -> None:
    raw = b'{"a":' * 100_000

    context = build_match_context(_request(raw))

    assert context.body_kind is BodyKind.STRING
    assert context[REQUEST_BYTES] == raw
