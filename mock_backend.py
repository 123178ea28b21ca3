"""JSON-configured mock backend: declarative predicates and static responses."""

from __future__ import annotations

import json
import logging
import threading
import time
from collections import Counter
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from string import Template
from types import MappingProxyType
from typing import Any

from backend import Candidate, Scenario, ScoreVector, check_score
from body_classifier import BodyKind
from config import TEXT_ENCODING
from match_context import REQUEST_BYTES, MatchContext
from request import HTTPRequest
from response import HeaderValue, HTTPResponse

logger = logging.getLogger(__name__)

PREDICATE_KEYS = ("method", "path", "headers", "params", "body")
_MISSING = object()


class BackendConfigError(ValueError):
    """Backend definition cannot be loaded."""


@dataclass(frozen=True, slots=True)
class PathPattern:
    """Path template such as ``/items/{id}``; ``{name}`` captures one segment."""

    pattern: str
    segments: tuple[str, ...]

    @classmethod
    def parse(cls, pattern: str) -> "PathPattern":
        if not pattern.startswith("/"):
            raise BackendConfigError(f"path must start with '/': {pattern!r}")
        return cls(pattern=pattern, segments=_split_path(pattern))

    @property
    def literal_count(self) -> int:
        return sum(1 for segment in self.segments if not _is_placeholder(segment))

    def match(self, path: str) -> dict[str, str] | None:
        actual = _split_path(path)
        if len(actual) != len(self.segments):
            return None
        captured: dict[str, str] = {}
        for expected, value in zip(self.segments, actual):
            if _is_placeholder(expected):
                captured[expected[1:-1]] = value
            elif expected != value:
                return None
        return captured


def _split_path(path: str) -> tuple[str, ...]:
    return tuple(segment for segment in path.strip("/").split("/") if segment)


def _is_placeholder(segment: str) -> bool:
    return len(segment) > 2 and segment.startswith("{") and segment.endswith("}")


def _lookup_ci(multimap: Mapping[str, tuple[str, ...]], name: str) -> tuple[str, ...]:
    wanted = name.lower()
    values: list[str] = []
    for key, items in multimap.items():
        if key.lower() == wanted:
            values.extend(items)
    return tuple(values)


class MockBackend:
    """A named group of scenarios loaded from one backend definition.

    Scenarios are immutable after construction. The only mutable state is the
    per-scenario hit counter, guarded by its own lock and touched only when a
    response is built.
    """

    def __init__(
        self,
        name: str,
        scenarios: Sequence[Scenario],
        *,
        cors: bool = False,
        args: Mapping[str, Any] | None = None,
        encoding: str = TEXT_ENCODING,
    ) -> None:
        self.name = name
        self._scenarios = tuple(scenarios)
        self._paths: dict[str, PathPattern | None] = {}
        for scenario in self._scenarios:
            path = scenario.match.get("path")
            self._paths[scenario.name] = None if path is None else PathPattern.parse(str(path))
        self._cors = cors
        self._args = MappingProxyType(dict(args or {}))
        self._encoding = encoding
        self._hits: Counter[str] = Counter()
        self._hits_lock = threading.Lock()

    @property
    def scenarios(self) -> tuple[Scenario, ...]:
        return self._scenarios

    @classmethod
    def from_dict(
        cls,
        data: Mapping[str, Any],
        *,
        args: Mapping[str, Any] | None = None,
    ) -> "MockBackend":
        name = str(data.get("name", "")).strip()
        if not name:
            raise BackendConfigError("backend name is required")

        scenarios_raw = data.get("scenarios", [])
        if not isinstance(scenarios_raw, list):
            raise BackendConfigError(f"{name}: scenarios must be a list")

        scenarios: list[Scenario] = []
        seen: set[str] = set()
        for index, scenario_raw in enumerate(scenarios_raw):
            scenario = _parse_scenario(scenario_raw, backend=name, index=index)
            if scenario.name in seen:
                raise BackendConfigError(f"{name}: duplicate scenario name {scenario.name!r}")
            seen.add(scenario.name)
            scenarios.append(scenario)

        file_args = data.get("args", {})
        if file_args is None:
            file_args = {}
        if not isinstance(file_args, dict):
            raise BackendConfigError(f"{name}: args must be an object")
        merged_args = {**file_args, **dict(args or {})}

        return cls(name, scenarios, cors=bool(data.get("cors", False)), args=merged_args)

    def is_cors_enabled(self) -> bool:
        return self._cors

    def get_matching_scenarios(self, context: MatchContext) -> list[Candidate]:
        candidates: list[Candidate] = []
        for scenario in self._scenarios:
            if scenario.is_default:
                continue
            score = self.score(scenario, context)
            if score is not None:
                candidates.append(Candidate(self, scenario, score))
        return candidates

    def get_default_scenario(self, context: MatchContext) -> Scenario | None:
        _ = context
        return next((scenario for scenario in self._scenarios if scenario.is_default), None)

    def score(self, scenario: Scenario, context: MatchContext) -> ScoreVector | None:
        """Score one scenario, or return None when any predicate fails."""
        match = scenario.match
        method_score = 0
        if "method" in match:
            if str(match["method"]).upper() != context.method.upper():
                return None
            method_score = 1

        path_score = 0
        pattern = self._paths.get(scenario.name)
        if pattern is not None:
            if pattern.match(context.uri) is None:
                return None
            path_score = 1 + pattern.literal_count

        header_score = _multimap_score(match.get("headers", {}), context.headers)
        if header_score is None:
            return None

        param_score = _multimap_score(match.get("params", {}), context.params)
        if param_score is None:
            return None

        body_score = 0
        if "body" in match:
            body_score = self._body_score(match["body"], context)
            if body_score is None:
                return None

        return check_score((method_score, path_score, header_score, param_score, body_score))

    def _body_score(self, expected: Any, context: MatchContext) -> int | None:
        if REQUEST_BYTES not in context:
            return None
        if isinstance(expected, dict):
            body = context.body
            if context.body_kind is not BodyKind.JSON or not isinstance(body, dict):
                return None
            for key, value in expected.items():
                if body.get(key, _MISSING) != value:
                    return None
            return len(expected)
        text = context[REQUEST_BYTES].decode(self._encoding, errors="replace")
        return 1 if str(expected) in text else None

    def path_params(self, scenario: Scenario, path: str) -> dict[str, str]:
        pattern = self._paths.get(scenario.name)
        if pattern is None:
            return {}
        return pattern.match(path) or {}

    def build_response(
        self,
        request: HTTPRequest,
        started_at: float,
        scenario: Scenario,
        context: MatchContext,
    ) -> HTTPResponse:
        """Render the scenario's response definition.

        ``started_at`` is a ``time.perf_counter()`` reading taken when the
        request arrived; a configured ``delay_ms`` counts from that instant.
        """
        with self._hits_lock:
            self._hits[scenario.name] += 1

        variables: dict[str, Any] = dict(self._args)
        variables.update({key: values[0] for key, values in context.params.items() if values})
        variables.update(self.path_params(scenario, request.path))

        definition = scenario.response
        headers: dict[str, HeaderValue] = {
            str(key): _substitute(str(value), variables)
            for key, value in dict(definition.get("headers", {})).items()
        }
        body = _render(definition.get("body", ""), variables)
        if isinstance(body, (dict, list)):
            payload: bytes | str = json.dumps(body)
            content_type = "application/json"
        else:
            payload = "" if body is None else str(body)
            content_type = "text/plain; charset=utf-8"
        if payload and not any(key.lower() == "content-type" for key in headers):
            headers["Content-Type"] = content_type

        delay_ms = int(definition.get("delay_ms", 0))
        if delay_ms > 0:
            remaining = delay_ms / 1000 - (time.perf_counter() - started_at)
            if remaining > 0:
                time.sleep(remaining)

        status_code = int(definition.get("status", 200))
        logger.debug("response built: %s#%s status=%s", self.name, scenario.name, status_code)
        return HTTPResponse(
            status_code=status_code,
            headers=headers,
            body=payload,
        )

    def hits(self) -> dict[str, int]:
        with self._hits_lock:
            return dict(self._hits)


def _multimap_score(
    expected: Mapping[str, Any],
    actual: Mapping[str, tuple[str, ...]],
) -> int | None:
    for name, value in expected.items():
        if str(value) not in _lookup_ci(actual, name):
            return None
    return len(expected)


def _substitute(text: str, variables: Mapping[str, Any]) -> str:
    return Template(text).safe_substitute({key: str(value) for key, value in variables.items()})


def _render(value: Any, variables: Mapping[str, Any]) -> Any:
    if isinstance(value, str):
        return _substitute(value, variables)
    if isinstance(value, dict):
        return {key: _render(item, variables) for key, item in value.items()}
    if isinstance(value, list):
        return [_render(item, variables) for item in value]
    return value


def _parse_scenario(raw: Any, *, backend: str, index: int) -> Scenario:
    where = f"{backend}: scenario {index + 1}"
    if not isinstance(raw, dict):
        raise BackendConfigError(f"{where} must be an object")

    name = str(raw.get("name") or f"scenario-{index + 1}")
    is_default = bool(raw.get("default", False))

    match = raw.get("match", {})
    if match is None:
        match = {}
    if not isinstance(match, dict):
        raise BackendConfigError(f"{where}: match must be an object")
    unknown = sorted(set(match) - set(PREDICATE_KEYS))
    if unknown:
        raise BackendConfigError(f"{where}: unknown match keys {unknown}")
    if is_default and match:
        raise BackendConfigError(f"{where}: default scenario cannot declare match")
    if not is_default and not match:
        raise BackendConfigError(f"{where}: match is required unless default is true")
    if "path" in match:
        PathPattern.parse(str(match["path"]))
    for key in ("headers", "params"):
        predicates = match.get(key, {})
        if not isinstance(predicates, dict):
            raise BackendConfigError(f"{where}: match.{key} must be an object")
        for predicate_name, value in predicates.items():
            if isinstance(value, bool) or not isinstance(value, (str, int, float)):
                raise BackendConfigError(
                    f"{where}: match.{key}.{predicate_name} must be a string or a number"
                )
    if "body" in match and not isinstance(match["body"], (dict, str)):
        raise BackendConfigError(f"{where}: match.body must be an object or a string")

    response = raw.get("response", {})
    if response is None:
        response = {}
    if not isinstance(response, dict):
        raise BackendConfigError(f"{where}: response must be an object")
    try:
        status_code = int(response.get("status", 200))
        delay_ms = int(response.get("delay_ms", 0))
    except (TypeError, ValueError) as exc:
        raise BackendConfigError(f"{where}: status and delay_ms must be integers") from exc
    if status_code < 100 or status_code > 599:
        raise BackendConfigError(f"{where}: status must be between 100 and 599")
    if delay_ms < 0:
        raise BackendConfigError(f"{where}: delay_ms must be >= 0")
    if not isinstance(response.get("headers", {}), dict):
        raise BackendConfigError(f"{where}: response.headers must be an object")

    return Scenario(name=name, match=match, response=response, is_default=is_default)


def load_backend(path: str | Path, *, args: Mapping[str, Any] | None = None) -> MockBackend:
    """Load a backend definition file; the name defaults to the file stem."""
    source = Path(path)
    try:
        data = json.loads(source.read_text(encoding="utf-8"))
    except OSError as exc:
        raise BackendConfigError(f"cannot read backend file {source}: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise BackendConfigError(f"invalid JSON in backend file {source}: {exc}") from exc
    if not isinstance(data, dict):
        raise BackendConfigError(f"{source}: backend definition must be an object")
    data.setdefault("name", source.stem)
    backend = MockBackend.from_dict(data, args=args)
    logger.info(
        "backend loaded: %s scenarios=%s cors=%s",
        backend.name,
        len(backend.scenarios),
        backend.is_cors_enabled(),
    )
    return backend
