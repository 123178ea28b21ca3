"""Request dispatch across a fixed set of mock backends."""

from __future__ import annotations

import logging
import time
from collections.abc import Sequence
from dataclasses import dataclass

from backend import Backend
from config import TEXT_ENCODING
from cors import is_preflight, preflight_response
from match_context import MatchContext, build_match_context
from request import HTTPRequest
from response import HTTPResponse
from router import Matched, NotFound, RouteResult, ScenarioRouter

logger = logging.getLogger(__name__)

OUTCOME_CORS = "cors"
OUTCOME_PICKED = "picked"
OUTCOME_DEFAULTED = "defaulted"
OUTCOME_NO_MATCH = "no_match"


@dataclass(frozen=True, slots=True)
class DispatchOutcome:
    response: HTTPResponse
    outcome: str
    result: RouteResult | None = None


def no_match_response(result: NotFound) -> HTTPResponse:
    _ = result
    return HTTPResponse(
        status_code=404,
        headers={"Content-Type": "text/plain; charset=utf-8"},
        body="no matching scenario",
    )


class MockDispatcher:
    """Wires the CORS responder, context builder and router together.

    Backends are fixed at construction and only read afterwards, so one
    dispatcher can serve any number of concurrent requests.
    """

    def __init__(
        self,
        backends: Sequence[Backend],
        *,
        encoding: str = TEXT_ENCODING,
        logger: logging.Logger = logger,
    ) -> None:
        if not backends:
            raise ValueError("at least one backend is required")
        self._backends = tuple(backends)
        self._encoding = encoding
        self._logger = logger
        self._router = ScenarioRouter(self._backends, logger=logger)
        self._logger.info(
            "all backends initialized: %s",
            ", ".join(backend.name for backend in self._backends),
        )

    @property
    def backends(self) -> tuple[Backend, ...]:
        return self._backends

    @property
    def cors_enabled(self) -> bool:
        return any(backend.is_cors_enabled() for backend in self._backends)

    def match(self, context: MatchContext) -> RouteResult:
        return self._router.route(context)

    def handle(
        self,
        context: MatchContext,
        request: HTTPRequest,
        started_at: float | None = None,
    ) -> DispatchOutcome:
        """Route an already-built context and answer it.

        A context nothing matches gets the 404 response with the ``no_match``
        outcome and the ``NotFound`` result attached.
        """
        result = self.match(context)
        if isinstance(result, NotFound):
            return DispatchOutcome(
                response=no_match_response(result),
                outcome=OUTCOME_NO_MATCH,
                result=result,
            )

        response = self._respond(result, request, context, started_at)
        outcome = OUTCOME_DEFAULTED if result.defaulted else OUTCOME_PICKED
        return DispatchOutcome(response=response, outcome=outcome, result=result)

    def build_response(
        self,
        request: HTTPRequest,
        started_at: float | None = None,
    ) -> DispatchOutcome:
        if is_preflight(request, self._backends):
            return DispatchOutcome(response=preflight_response(request), outcome=OUTCOME_CORS)

        context = build_match_context(request, encoding=self._encoding, logger=self._logger)
        return self.handle(context, request, started_at)

    def _respond(
        self,
        result: Matched,
        request: HTTPRequest,
        context: MatchContext,
        started_at: float | None,
    ) -> HTTPResponse:
        if started_at is None:
            started_at = time.perf_counter()
        return result.backend.build_response(request, started_at, result.scenario, context)
