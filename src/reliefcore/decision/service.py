"""
DecisionService: one remote attempt, then the local fallback.

Each capability follows the same lifecycle:

    Pending -> RemoteAttempted -> RemoteAccepted | FallbackUsed

The service always returns a `Decision` with a usable payload. It keeps no mutable state
between calls, so concurrent calls on one instance are independent.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, TypeVar

from pydantic import BaseModel

from reliefcore.agents.client import AgentResult, RemoteAgentClient
from reliefcore.agents.payloads import chat_payload, matching_payload, routing_payload, validation_payload
from reliefcore.config.settings import Capability, Settings
from reliefcore.domain.models import (
    AssignmentRequest,
    ChatIntent,
    ChatReply,
    ChatRequest,
    Decision,
    MatchingRequest,
    MatchSet,
    ValidationOutcome,
    ValidationRequest,
    VolunteerAssignment,
)
from reliefcore.fallback.engine import FallbackEngine
from reliefcore.fallback.matching import rank_matches
from reliefcore.scoring.risk import enforce_outcome_invariants

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


def _degraded_reason(result: AgentResult | None, error: Exception | None = None) -> str:
    if error is not None:
        return f"unexpected: {type(error).__name__}"
    if result is None:
        return "unexpected: no result"
    return result.error_kind or "unknown"


class DecisionService:
    def __init__(
        self,
        settings: Settings,
        *,
        agent_client: RemoteAgentClient | None = None,
        fallback: FallbackEngine | None = None,
    ):
        self._settings = settings
        self._agents = agent_client or RemoteAgentClient(settings)
        self._fallback = fallback or FallbackEngine(settings)

    async def _decide(
        self,
        capability: Capability,
        build_payload: Callable[[], dict[str, Any]],
        run_fallback: Callable[[], ModelT],
        finalize: Callable[[ModelT], ModelT] | None = None,
    ) -> Decision[ModelT]:
        started = time.perf_counter()
        result: AgentResult | None = None
        error: Exception | None = None
        try:
            result = await self._agents.call(capability, build_payload())
        except Exception as exc:
            # The client reports failures as results; anything raised here is a bug upstream.
            logger.exception("Agent call for %s raised", capability)
            error = exc

        if result is not None and result.ok and result.data is not None:
            data = result.data
            if finalize is not None:
                data = finalize(data)
            return Decision(
                data=data,
                source="agent",
                processing_time=round((time.perf_counter() - started) * 1000, 1),
            )

        reason = _degraded_reason(result, error)
        logger.info("Using fallback for %s (%s)", capability, reason)
        data = run_fallback()
        if finalize is not None:
            data = finalize(data)
        return Decision(
            data=data,
            degraded=True,
            degraded_reason=reason,
            source="fallback",
            processing_time=round((time.perf_counter() - started) * 1000, 1),
        )

    async def validate(self, request: ValidationRequest) -> Decision[ValidationOutcome]:
        thresholds = self._settings.validation
        return await self._decide(
            "validate",
            lambda: validation_payload(request),
            lambda: self._fallback.validate(request.content),
            lambda outcome: enforce_outcome_invariants(outcome, thresholds),
        )

    async def match(self, request: MatchingRequest) -> Decision[MatchSet]:
        def ordered(result: MatchSet) -> MatchSet:
            return result.model_copy(update={"matches": rank_matches(result.matches)})

        return await self._decide(
            "match",
            lambda: matching_payload(request),
            lambda: self._fallback.match(request),
            ordered,
        )

    async def assign_volunteer(self, request: AssignmentRequest) -> Decision[VolunteerAssignment]:
        return await self._decide(
            "route",
            lambda: routing_payload(request, self._settings.routing),
            lambda: self._fallback.assign_volunteer(request),
        )

    async def converse(self, request: ChatRequest) -> Decision[ChatReply]:
        return await self._decide(
            "chat",
            lambda: chat_payload(request, default_language=self._settings.app.language),
            lambda: self._fallback.converse(request),
        )

    def analyze_intent(self, message: str, language: str | None = None) -> ChatIntent:
        """Local intent detection only; there is no remote intent capability."""
        return self._fallback.analyze_intent(message, language)
