# src/reliefcore/fallback/conversation.py
"""
Offline chat replies.

A keyword intent classifier over the raw message text, followed by a canned template:

1) pick the language table (unknown languages use the configured default)
2) walk the intents in configured order; the first one with a keyword in the message wins
   - ASCII keywords match on word boundaries ("hi" does not match "this")
   - other scripts (Bangla) match as substrings
3) choose one template for that intent with the injected `random.Random`

Randomness never crosses intents: the same message in the same language always yields
the same intent, suggestions and actions; only the wording may vary.
"""

from __future__ import annotations

import random
import re
from dataclasses import dataclass
from typing import Any

from reliefcore.domain.models import ChatIntent, ChatReply


@dataclass(frozen=True)
class IntentRule:
    name: str
    confidence: float
    keywords: dict[str, list[str]]
    suggestions: dict[str, list[str]]
    actions: list[str]


def _keyword_pattern(keyword: str) -> re.Pattern[str] | None:
    if keyword.isascii():
        return re.compile(rf"\b{re.escape(keyword.lower())}\b")
    return None


class IntentClassifier:
    """Keyword-based classifier built from the packaged `conversation.yaml`."""

    def __init__(self, config: dict[str, Any]):
        self.default_intent = str(config.get("default_intent", "help"))
        self.default_language = str(config.get("default_language", "en"))
        self.rules = [
            IntentRule(
                name=str(raw["name"]),
                confidence=float(raw.get("confidence", 0.8)),
                keywords={lang: list(words) for lang, words in (raw.get("keywords") or {}).items()},
                suggestions={lang: list(s) for lang, s in (raw.get("suggestions") or {}).items()},
                actions=list(raw.get("actions") or []),
            )
            for raw in config.get("intents", [])
        ]
        self.templates: dict[str, dict[str, list[str]]] = config.get("templates", {})
        self._patterns = {
            (rule.name, lang, word): _keyword_pattern(word)
            for rule in self.rules
            for lang, words in rule.keywords.items()
            for word in words
        }

    def language_for(self, language: str | None) -> str:
        lang = (language or "").strip().lower()
        return lang if lang in self.templates else self.default_language

    def _matches(self, rule: IntentRule, lang: str, text: str) -> bool:
        for word in rule.keywords.get(lang, []):
            pattern = self._patterns[(rule.name, lang, word)]
            if pattern is not None:
                if pattern.search(text):
                    return True
            elif word in text:
                return True
        return False

    def classify(self, message: str, language: str | None = None) -> tuple[IntentRule | None, ChatIntent]:
        lang = self.language_for(language)
        text = message.lower()
        for rule in self.rules:
            if self._matches(rule, lang, text):
                return rule, ChatIntent(category=rule.name, confidence=rule.confidence, language=lang)
        return None, ChatIntent(category=self.default_intent, confidence=0.5, language=lang)

    def reply(self, message: str, language: str | None, rng: random.Random) -> ChatReply:
        rule, intent = self.classify(message, language)
        lang = intent.language
        table = self.templates.get(lang) or self.templates[self.default_language]
        options = table.get(intent.category) or table[self.default_intent]
        text = options[0] if len(options) == 1 else rng.choice(options)

        suggestions = (rule.suggestions.get(lang) if rule else None) or None
        actions = (rule.actions if rule else None) or None
        return ChatReply(
            message=text,
            suggestions=list(suggestions[:3]) if suggestions else None,
            actions=list(actions) if actions else None,
            intent=intent,
        )
