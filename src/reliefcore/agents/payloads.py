"""
Request payload builders (domain request -> agent wire format).

The agents expect camelCase JSON and, for routing and chat, a slightly different layout
than the domain requests. Builders are pure so the DecisionService can build the payload
once and hand the same dict to the client (and to the envelope projectors as context).
"""

from __future__ import annotations

import uuid
from typing import Any

from reliefcore.config.settings import RoutingSettings
from reliefcore.domain.models import AssignmentRequest, ChatRequest, MatchingRequest, RoutePoint, ValidationRequest
from reliefcore.fallback.routing import estimated_item_weight_kg

PLATFORM_NAME = "relief_coordination_platform"
CHAT_CAPABILITIES = ["donation_guidance", "request_assistance", "volunteer_coordination", "disaster_info"]
CHAT_MAX_LENGTH = 300


def validation_payload(request: ValidationRequest) -> dict[str, Any]:
    return request.model_dump(mode="json", by_alias=True, exclude_none=True)


def matching_payload(request: MatchingRequest) -> dict[str, Any]:
    return request.model_dump(mode="json", by_alias=True, exclude_none=True, exclude={"candidates"})


def _located(point: RoutePoint) -> dict[str, Any]:
    out: dict[str, Any] = {"address": point.address}
    if point.lat is not None and point.lng is not None:
        out["coordinates"] = {"lat": point.lat, "lng": point.lng}
    return out


def routing_payload(request: AssignmentRequest, cfg: RoutingSettings) -> dict[str, Any]:
    details = request.item_details
    weight = details.weight
    if weight is None:
        weight = estimated_item_weight_kg(details.category, details.quantity, cfg)
    return {
        "matchId": request.match_id,
        "donationLocation": _located(request.donation_location),
        "deliveryLocation": _located(request.delivery_location),
        "itemDetails": {"category": details.category, "weight": weight, "urgency": details.urgency},
        "constraints": {
            "maxDistance": request.constraints.max_distance or cfg.default_max_distance_km,
            "preferredVehicle": request.constraints.vehicle_type or cfg.default_vehicle_type,
        },
    }


def new_session_id() -> str:
    return f"session_{uuid.uuid4().hex[:12]}"


def chat_payload(request: ChatRequest, *, default_language: str = "en") -> dict[str, Any]:
    language = request.context.language or default_language
    history = [
        {
            "id": turn.id if turn.id is not None else index,
            "role": "user" if turn.sender == "user" else "bot",
            "content": turn.text,
            "language": language,
            "timestamp": turn.timestamp.isoformat() if turn.timestamp else None,
        }
        for index, turn in enumerate(request.context.conversation_history)
    ]
    bangla = language == "bn"
    return {
        "userMessage": request.message,
        "language": language,
        "sessionId": request.session_id or new_session_id(),
        "conversationHistory": history,
        "userContext": {
            "userId": request.user_id or "anonymous_user",
            "platform": PLATFORM_NAME,
            "userRole": request.context.user_role,
            "capabilities": list(CHAT_CAPABILITIES),
        },
        "responseRequirements": {
            "language": language,
            "tone": "respectful_bangla" if bangla else "helpful_english",
            "includeEmojis": True,
            "maxLength": CHAT_MAX_LENGTH,
            "includeActionSuggestions": True,
            "culturalContext": "bangladesh_relief_distribution" if bangla else "international_relief",
        },
    }
