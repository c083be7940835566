"""
Shape-tolerant extraction of agent results.

Remote agents wrap their result in whatever envelope their workflow engine produces, and
that envelope changes without notice. Each capability therefore owns a prioritized list of
`ShapeMatcher`s; each matcher is a pure pair:

- `locate`: find the candidate result object inside the raw response (or None)
- `project`: rename agent-specific keys onto the canonical model's JSON keys

A matcher is accepted when the located object has its required fields and the projected
object validates against the capability's model. New envelope shapes are supported by
appending a matcher to `CAPABILITY_SHAPES`, never by branching inside existing ones.
"""

from __future__ import annotations

import json
import math
from dataclasses import dataclass
from typing import Any, Callable, Mapping

from pydantic import BaseModel, ValidationError

from reliefcore.core.time import humanize_minutes
from reliefcore.domain.models import ChatReply, MatchSet, ValidationOutcome, VolunteerAssignment

Locator = Callable[[Any], Any]
Projector = Callable[[dict[str, Any], Mapping[str, Any]], dict[str, Any]]
Requirement = Callable[[dict[str, Any]], bool]


class UnrecognizedShapeError(ValueError):
    """No known envelope shape matched the agent response."""

    def __init__(self, capability: str, tried: list[str]):
        super().__init__(f"Unrecognized {capability} response shape (tried: {', '.join(tried) or 'none'})")
        self.capability = capability
        self.tried = tried


def _maybe_json(value: Any) -> Any:
    if isinstance(value, str):
        try:
            return json.loads(value)
        except ValueError:
            return None
    return value


def at_path(*keys: str | int) -> Locator:
    """Locator walking nested dict keys / list indexes; JSON strings are decoded on the way."""

    def locate(payload: Any) -> Any:
        node = payload
        for key in keys:
            node = _maybe_json(node)
            if isinstance(key, int):
                if not isinstance(node, list) or len(node) <= key:
                    return None
                node = node[key]
            else:
                if not isinstance(node, dict) or key not in node:
                    return None
                node = node[key]
        return _maybe_json(node)

    return locate


def langflow_results(*inner: str) -> Locator:
    """Locator for Langflow's `outputs[0].outputs[0].results`, optionally unwrapping `inner` keys."""
    outer = at_path("outputs", 0, "outputs", 0, "results")

    def locate(payload: Any) -> Any:
        node = outer(payload)
        if node is None or not inner:
            return node
        unwrapped = at_path(*inner)(node)
        return unwrapped if unwrapped is not None else node

    return locate


def has_fields(*names: str) -> Requirement:
    return lambda obj: all(obj.get(name) is not None for name in names)


def has_any(*names: str) -> Requirement:
    return lambda obj: any(obj.get(name) is not None for name in names)


def _identity(obj: dict[str, Any], _request: Mapping[str, Any]) -> dict[str, Any]:
    return obj


@dataclass(frozen=True)
class ShapeMatcher:
    name: str
    locate: Locator
    requires: Requirement
    project: Projector = _identity


# --- projectors ---------------------------------------------------------------------------


def project_match_set(obj: dict[str, Any], _request: Mapping[str, Any]) -> dict[str, Any]:
    raw_matches = obj.get("matches")
    if not isinstance(raw_matches, list):
        # Leave it to model validation to reject.
        return obj
    matches = []
    for raw in raw_matches:
        if not isinstance(raw, dict):
            matches.append(raw)
            continue
        item = dict(raw)
        if "distanceKm" not in item and "distance" in item:
            item["distanceKm"] = item.pop("distance")
        matches.append(item)
    out = {**obj, "matches": matches}
    if out.get("totalMatches") is None:
        out["totalMatches"] = len(matches)
    out.setdefault("status", "success")
    return out


def project_assignment(obj: dict[str, Any], request: Mapping[str, Any]) -> dict[str, Any]:
    out = dict(obj)
    volunteer = out.get("assignedVolunteer")
    if isinstance(volunteer, dict):
        volunteer = dict(volunteer)
        if "distanceToPickupKm" not in volunteer and "distanceToPickup" in volunteer:
            volunteer["distanceToPickupKm"] = volunteer.pop("distanceToPickup")
        out["assignedVolunteer"] = volunteer
    route = out.get("simpleRoute")
    if isinstance(route, dict):
        route = dict(route)
        if "totalDistanceKm" not in route and "totalDistance" in route:
            route["totalDistanceKm"] = route.pop("totalDistance")
        total_time = route.get("totalTime")
        if isinstance(total_time, (int, float)) and not isinstance(total_time, bool) and math.isfinite(total_time):
            route["totalTime"] = humanize_minutes(total_time)
        out["simpleRoute"] = route
    if not out.get("matchId") and request.get("matchId"):
        out["matchId"] = request["matchId"]
    out.setdefault("status", "assigned")
    return out


def project_chat_reply(obj: dict[str, Any], _request: Mapping[str, Any]) -> dict[str, Any]:
    suggestions = obj.get("suggestions")
    if isinstance(suggestions, str):
        suggestions = [suggestions]
    actions = obj.get("actions")
    if isinstance(actions, str):
        actions = [actions]
    out: dict[str, Any] = {
        "message": obj.get("response") or obj.get("message"),
        "suggestions": suggestions or None,
        "actions": actions or None,
    }
    intent = obj.get("detected_intent") or obj.get("intent")
    if isinstance(intent, dict) and "category" in intent:
        out["intent"] = {"category": intent["category"], "confidence": intent.get("confidence", 0.5)}
    return out


# --- registry -----------------------------------------------------------------------------

CAPABILITY_MODELS: dict[str, type[BaseModel]] = {
    "validate": ValidationOutcome,
    "match": MatchSet,
    "route": VolunteerAssignment,
    "chat": ChatReply,
}

_VALIDATION_FIELDS = has_fields("isValid", "confidence")
_ASSIGNMENT_FIELDS = has_fields("assignedVolunteer", "simpleRoute")
_CHAT_FIELDS = has_any("response", "message")

CAPABILITY_SHAPES: dict[str, list[ShapeMatcher]] = {
    "validate": [
        ShapeMatcher("result.Output.result", at_path("result", "Output", "result"), _VALIDATION_FIELDS),
        ShapeMatcher("direct", at_path(), _VALIDATION_FIELDS),
    ],
    "match": [
        ShapeMatcher(
            "result.Output.matchResults",
            at_path("result", "Output", "matchResults"),
            has_fields("matches"),
            project_match_set,
        ),
        ShapeMatcher(
            "result.Output.result", at_path("result", "Output", "result"), has_fields("matches"), project_match_set
        ),
        ShapeMatcher("direct", at_path(), has_fields("matches"), project_match_set),
    ],
    "route": [
        ShapeMatcher(
            "result.Output.assignmentResult",
            at_path("result", "Output", "assignmentResult"),
            _ASSIGNMENT_FIELDS,
            project_assignment,
        ),
        ShapeMatcher(
            "langflow.outputs",
            langflow_results("Output", "assignmentResult"),
            _ASSIGNMENT_FIELDS,
            project_assignment,
        ),
        ShapeMatcher("direct", at_path(), _ASSIGNMENT_FIELDS, project_assignment),
    ],
    "chat": [
        ShapeMatcher("result.Output.result", at_path("result", "Output", "result"), _CHAT_FIELDS, project_chat_reply),
        ShapeMatcher("langflow.outputs", langflow_results(), _CHAT_FIELDS, project_chat_reply),
        ShapeMatcher("direct", at_path(), _CHAT_FIELDS, project_chat_reply),
    ],
}


def extract_result(
    capability: str,
    payload: Any,
    *,
    request: Mapping[str, Any] | None = None,
    matchers: list[ShapeMatcher] | None = None,
) -> tuple[BaseModel, str]:
    """Return the canonical model for `payload` and the name of the shape that matched.

    Raises:
        UnrecognizedShapeError: When no matcher accepts the payload.
    """
    model = CAPABILITY_MODELS[capability]
    candidates = matchers if matchers is not None else CAPABILITY_SHAPES[capability]
    tried: list[str] = []
    for matcher in candidates:
        tried.append(matcher.name)
        located = matcher.locate(payload)
        if not isinstance(located, dict) or not matcher.requires(located):
            continue
        try:
            return model.model_validate(matcher.project(located, request or {})), matcher.name
        except (ValidationError, TypeError, ValueError, OverflowError):
            # A matcher that chokes on the payload simply does not match it.
            continue
    raise UnrecognizedShapeError(capability, tried)
