"""Scenario selection across every configured backend."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, replace

from backend import ZERO_SCORE, Backend, Candidate, Scenario, ScoreVector, check_score
from match_context import MatchContext

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Matched:
    candidate: Candidate
    defaulted: bool = False

    @property
    def backend(self) -> Backend:
        return self.candidate.backend

    @property
    def scenario(self) -> Scenario:
        return self.candidate.scenario

    @property
    def score(self) -> ScoreVector:
        return self.candidate.score


@dataclass(frozen=True, slots=True)
class NotFound:
    reason: str = "no scenarios matched request"


RouteResult = Matched | NotFound


def route(
    context: MatchContext,
    backends: Sequence[Backend],
    *,
    logger: logging.Logger = logger,
) -> RouteResult:
    """Pick the single scenario that should answer ``context``.

    The highest score vector wins, compared lexicographically. Among exact ties
    the first candidate seen wins, in backend declaration order and then in the
    order each backend returned them. With no scored candidate, the first
    backend (in declaration order) that declares a default supplies it.
    """
    matches: list[Candidate] = []
    defaults: list[Candidate] = []
    for backend in backends:
        for candidate in backend.get_matching_scenarios(context):
            matches.append(replace(candidate, score=check_score(candidate.score)))
        default_scenario = backend.get_default_scenario(context)
        if default_scenario is not None:
            defaults.append(Candidate(backend, default_scenario, ZERO_SCORE))

    if matches:
        # max() keeps the first of several equal maxima.
        winner = max(matches, key=lambda candidate: candidate.score)
        logger.debug("scenario picked: %s score=%s", winner.label, list(winner.score))
        return Matched(winner)

    if defaults:
        winner = defaults[0]
        logger.debug("scenario defaulted: %s", winner.label)
        return Matched(winner, defaulted=True)

    result = NotFound()
    logger.warning("%s: %s %s", result.reason, context.method, context.uri)
    return result


class ScenarioRouter:
    """Routes contexts against a fixed, ordered set of backends."""

    def __init__(self, backends: Sequence[Backend], *, logger: logging.Logger = logger) -> None:
        self._backends = tuple(backends)
        self._logger = logger

    @property
    def backends(self) -> tuple[Backend, ...]:
        return self._backends

    def route(self, context: MatchContext) -> RouteResult:
        return route(context, self._backends, logger=self._logger)
