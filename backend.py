"""Types shared between the router and the backends it consults."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Protocol

from config import SCORE_VECTOR_LENGTH
from match_context import MatchContext
from request import HTTPRequest
from response import HTTPResponse

ScoreVector = tuple[int, ...]

ZERO_SCORE: ScoreVector = (0,) * SCORE_VECTOR_LENGTH


class ScoreVectorError(ValueError):
    """A backend produced a score vector of the wrong shape."""


def check_score(score: ScoreVector) -> ScoreVector:
    if len(score) != SCORE_VECTOR_LENGTH:
        raise ScoreVectorError(
            f"score vector must have {SCORE_VECTOR_LENGTH} entries, got {len(score)}"
        )
    if any(item < 0 for item in score):
        raise ScoreVectorError(f"score vector entries must be non-negative: {score}")
    return tuple(score)


@dataclass(frozen=True, slots=True)
class Scenario:
    name: str
    match: Mapping[str, Any] = field(default_factory=dict)
    response: Mapping[str, Any] = field(default_factory=dict)
    is_default: bool = False


class Backend(Protocol):
    name: str

    def get_matching_scenarios(self, context: MatchContext) -> list[Candidate]: ...

    def get_default_scenario(self, context: MatchContext) -> Scenario | None: ...

    def is_cors_enabled(self) -> bool: ...

    def build_response(
        self,
        request: HTTPRequest,
        started_at: float,
        scenario: Scenario,
        context: MatchContext,
    ) -> HTTPResponse: ...


@dataclass(frozen=True, slots=True)
class Candidate:
    backend: Backend
    scenario: Scenario
    score: ScoreVector

    @property
    def label(self) -> str:
        return f"{self.backend.name}#{self.scenario.name}"
