"""
FallbackEngine: local, deterministic substitutes for every remote capability.

The engine only wires settings into the pure functions of the sibling modules; it does no
I/O, so the DecisionService can call it synchronously whenever an agent is unavailable.
The random source (chat wording) and the clock (timestamps/ETAs) are injectable for tests.
"""

from __future__ import annotations

import random
from datetime import datetime
from typing import Callable

from reliefcore.config.settings import Settings, get_conversation_config
from reliefcore.core.time import utc_now
from reliefcore.domain.models import (
    AssignmentRequest,
    ChatIntent,
    ChatReply,
    ChatRequest,
    MatchingRequest,
    MatchSet,
    SubmissionContent,
    ValidationOutcome,
    VolunteerAssignment,
)
from reliefcore.fallback.conversation import IntentClassifier
from reliefcore.fallback.matching import match_items
from reliefcore.fallback.routing import assign_volunteer
from reliefcore.fallback.validation import validate_submission


class FallbackEngine:
    def __init__(
        self,
        settings: Settings,
        *,
        rng: random.Random | None = None,
        clock: Callable[[], datetime] = utc_now,
        classifier: IntentClassifier | None = None,
    ):
        self._settings = settings
        self._rng = rng or random.Random()
        self._clock = clock
        self._classifier = classifier or IntentClassifier(get_conversation_config())

    def validate(self, content: SubmissionContent) -> ValidationOutcome:
        return validate_submission(content, self._settings.validation)

    def match(self, request: MatchingRequest) -> MatchSet:
        return match_items(request, self._settings.matching, now=self._clock())

    def assign_volunteer(self, request: AssignmentRequest) -> VolunteerAssignment:
        return assign_volunteer(
            request,
            self._settings.routing,
            timezone_name=self._settings.app.timezone,
            now=self._clock(),
        )

    def converse(self, request: ChatRequest) -> ChatReply:
        language = request.context.language or self._settings.app.language
        return self._classifier.reply(request.message, language, self._rng)

    def analyze_intent(self, message: str, language: str | None = None) -> ChatIntent:
        _, intent = self._classifier.classify(message, language or self._settings.app.language)
        return intent
