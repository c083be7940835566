"""
Shared scoring utilities.

This module contains small, reusable helpers used across the offline scorers:
- `clamp01`: keep values within 0..1 for stable output
- `normalize_weights`: convert arbitrary non-negative weights into a 1.0-summing distribution
- `ComponentResult`: a sub-score plus the human-readable reasons behind it
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


def clamp01(x: float) -> float:
    """Clamp a number into the [0.0, 1.0] range."""
    return max(0.0, min(1.0, float(x)))


@dataclass(frozen=True)
class ComponentResult:
    """A normalized sub-score plus explainability payload."""

    score: float
    reasons: list[str] = field(default_factory=list)
    details: dict[str, Any] = field(default_factory=dict)


def normalize_weights(weights: dict[str, float]) -> dict[str, float]:
    """Normalize a dict of weights so they sum to 1.0 (non-negative)."""
    cleaned = {k: max(0.0, float(v)) for k, v in weights.items()}
    total = sum(cleaned.values())
    if total <= 0:
        return {k: 1.0 / len(weights) for k in weights}
    return {k: v / total for k, v in cleaned.items()}


def weighted_score(components: dict[str, ComponentResult], weights: dict[str, float]) -> float:
    """Combine component scores with normalized weights; missing components count as 0."""
    normalized = normalize_weights(weights)
    total = sum(normalized[name] * components[name].score for name in normalized if name in components)
    return clamp01(total)
