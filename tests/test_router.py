"""Unit tests for scenario selection across backends."""

from __future__ import annotations

import logging

import pytest

from backend import ZERO_SCORE, ScoreVectorError
from match_context import MatchContext, build_match_context
from request import HTTPRequest
from router import Matched, NotFound, ScenarioRouter, route
from stub_backends import StaticBackend


def _context(method: str = "GET", path: str = "/items") -> MatchContext:
    return build_match_context(HTTPRequest(method=method, path=path))


def test_higher_leading_score_wins_regardless_of_trailing() -> None:
    backend = StaticBackend("b", [("low", (1, 9, 9, 9, 9)), ("high", (2, 0, 0, 0, 0))])

    result = route(_context(), [backend])

    assert isinstance(result, Matched)
    assert result.scenario.name == "high"
    assert result.defaulted is False


def test_best_candidate_across_backends_wins_over_default() -> None:
    backend1 = StaticBackend("Backend1", [("S1", (1, 0, 0, 0, 0))], default="S1d")
    backend2 = StaticBackend("Backend2", [("S2", (1, 1, 0, 0, 0))])

    result = route(_context("GET", "/items"), [backend1, backend2])

    assert isinstance(result, Matched)
    assert result.backend is backend2
    assert result.scenario.name == "S2"
    assert result.score == (1, 1, 0, 0, 0)


def test_default_used_when_no_candidate() -> None:
    backend_a = StaticBackend("A")
    backend_b = StaticBackend("B", default="S")

    result = route(_context(), [backend_a, backend_b])

    assert isinstance(result, Matched)
    assert result.defaulted is True
    assert result.backend is backend_b
    assert result.scenario.name == "S"
    assert result.score == ZERO_SCORE


def test_first_declared_default_wins() -> None:
    first = StaticBackend("first", default="d1")
    second = StaticBackend("second", default="d2")

    result = route(_context(), [first, second])

    assert isinstance(result, Matched)
    assert result.backend is first


def test_no_candidate_and_no_default_is_not_found(caplog) -> None:
    with caplog.at_level(logging.WARNING, logger="router"):
        result = route(_context(), [StaticBackend("a"), StaticBackend("b")])

    assert isinstance(result, NotFound)
    assert not isinstance(result, Matched)
    assert "no scenarios matched request" in caplog.text


def test_exact_tie_resolves_to_first_seen() -> None:
    first = StaticBackend("first", [("x", (1, 1, 0, 0, 0)), ("y", (1, 1, 0, 0, 0))])
    second = StaticBackend("second", [("z", (1, 1, 0, 0, 0))])

    result = route(_context(), [first, second])

    assert isinstance(result, Matched)
    assert result.backend is first
    assert result.scenario.name == "x"


def test_routing_is_deterministic() -> None:
    backends = [
        StaticBackend("a", [("a1", (1, 2, 0, 0, 0))], default="ad"),
        StaticBackend("b", [("b1", (1, 2, 0, 0, 0)), ("b2", (1, 1, 5, 0, 0))]),
    ]
    context = _context()

    first = route(context, backends)
    second = route(context, backends)

    assert isinstance(first, Matched) and isinstance(second, Matched)
    assert (first.backend, first.scenario) == (second.backend, second.scenario)


def test_every_backend_is_consulted() -> None:
    backends = [StaticBackend("a"), StaticBackend("b"), StaticBackend("c")]

    route(_context(), backends)

    assert [backend.calls for backend in backends] == [1, 1, 1]


def test_mismatched_score_length_is_rejected() -> None:
    backend = StaticBackend("bad", [("short", (1, 0, 0))])

    with pytest.raises(ScoreVectorError):
        route(_context(), [backend])


def test_debug_log_distinguishes_picked_from_defaulted(caplog) -> None:
    with caplog.at_level(logging.DEBUG, logger="router"):
        route(_context(), [StaticBackend("a", [("s", (1, 0, 0, 0, 0))])])
        route(_context(), [StaticBackend("b", default="d")])

    assert "scenario picked: a#s" in caplog.text
    assert "scenario defaulted: b#d" in caplog.text


def test_scenario_router_uses_injected_logger(caplog) -> None:
    custom = logging.getLogger("tests.router")
    router = ScenarioRouter([StaticBackend("a")], logger=custom)

    with caplog.at_level(logging.WARNING, logger="tests.router"):
        result = router.route(_context())

    assert isinstance(result, NotFound)
    assert any(record.name == "tests.router" for record in caplog.records)
    assert len(router.backends) == 1


def test_list_scores_are_normalized_before_comparison() -> None:
    listed = StaticBackend("listed", [("as-list", [1, 2, 0, 0, 0])])
    tupled = StaticBackend("tupled", [("as-tuple", (1, 1, 0, 0, 0))])

    result = route(_context(), [tupled, listed])

    assert isinstance(result, Matched)
    assert result.scenario.name == "as-list"
    assert result.score == (1, 2, 0, 0, 0)
