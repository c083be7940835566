"""
API routes.

Endpoints:
- POST `/api/ai/validate`: validate a donation/request submission.
- POST `/api/ai/match`: rank counterparts for a new donation or request.
- POST `/api/ai/assign-volunteer`: pick a volunteer and a simple route for a match.
- POST `/api/chat/message`: chatbot reply.
- POST `/api/chat/analyze-intent`: local intent detection only.
- GET  `/api/health`: liveness plus which agents are configured.

Decision endpoints always answer 200 with a usable payload; `degraded` tells the UI
whether the local fallback produced it. `meta.agentCalls` lists each agent attempt in call
order and `meta.failedAgents` names the capabilities that fell back.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Any

from fastapi import APIRouter
from pydantic import BaseModel

from reliefcore.config.settings import CAPABILITIES, get_settings
from reliefcore.core.call_meta import AgentCallLog, capture_agent_calls
from reliefcore.decision.service import DecisionService
from reliefcore.domain.models import (
    AssignmentRequest,
    ChatRequest,
    Decision,
    MatchingRequest,
    ValidationRequest,
)

router = APIRouter()


class IntentQuery(BaseModel):
    message: str
    language: str | None = None


@lru_cache
def _service() -> DecisionService:
    return DecisionService(get_settings())


def _respond(decision: Decision[Any], log: AgentCallLog) -> dict[str, Any]:
    payload = decision.model_dump(mode="json", by_alias=True)
    payload["meta"] = log.as_meta()
    return payload


@router.get("/api/health")
def get_health() -> dict:
    settings = get_settings()
    return {
        "status": "ok",
        "agents": {cap: bool(settings.agents.endpoints.get(cap)) for cap in CAPABILITIES},
        "backend": bool(settings.backend.base_url),
    }


@router.post("/api/ai/validate")
async def post_validate(request: ValidationRequest) -> dict:
    with capture_agent_calls() as log:
        decision = await _service().validate(request)
    return _respond(decision, log)


@router.post("/api/ai/match")
async def post_match(request: MatchingRequest) -> dict:
    with capture_agent_calls() as log:
        decision = await _service().match(request)
    return _respond(decision, log)


@router.post("/api/ai/assign-volunteer")
async def post_assign_volunteer(request: AssignmentRequest) -> dict:
    with capture_agent_calls() as log:
        decision = await _service().assign_volunteer(request)
    return _respond(decision, log)


@router.post("/api/chat/message")
async def post_chat_message(request: ChatRequest) -> dict:
    with capture_agent_calls() as log:
        decision = await _service().converse(request)
    return _respond(decision, log)


@router.post("/api/chat/analyze-intent")
def post_analyze_intent(query: IntentQuery) -> dict:
    """Classify a message without calling any agent."""
    intent = _service().analyze_intent(query.message, query.language)
    return {"success": True, "data": intent.model_dump(mode="json", by_alias=True)}
