# src/reliefcore/fallback/matching.py
"""
Offline donation <-> request matching.

This module implements a simple, explainable compatibility score between a primary item
(a new donation or request) and its counterparts:

- compatibility: 1.0 for the same category, a configured partial score for related
  categories (food <-> water, clothes <-> blankets), 0 otherwise
- distance: 1.0 at the pickup point, falling linearly to 0 at `maxDistance`
- urgency: 1.0 for equal urgency, minus 1/3 per urgency level apart
- quantity: min/max ratio of the two quantities

Component weights come from config, except urgency, whose weight is the request's
`urgencyWeight` constraint. Scores are normalized to 0..1.

Candidate filtering:
- counterparts of the same kind (donation vs donation) are never paired
- hard filters (`maxDistance`, `categoryStrict`) apply first; if they leave nothing,
  the pool is re-ranked without them and the set is marked `relaxed`
- an empty pool yields an empty set with `totalMatches = 0`

Everything here is pure and deterministic for identical input (no network, no randomness).
"""

from __future__ import annotations

import logging
import time
from datetime import datetime
from typing import Iterable

from reliefcore.config.settings import MatchingSettings, ReferenceItem
from reliefcore.core.geo import distance_km, travel_minutes
from reliefcore.core.time import humanize_minutes, utc_now
from reliefcore.domain.models import (
    URGENCY_RANK,
    Coordinates,
    ItemLocation,
    MatchableItem,
    MatchCandidate,
    MatchConstraints,
    MatchingRequest,
    MatchSet,
)
from reliefcore.scoring.composite import ComponentResult, clamp01, weighted_score

logger = logging.getLogger(__name__)

STATUS_SUCCESS = "success"
STATUS_RELAXED = "relaxed"
STATUS_NO_REFERENCE_DATA = "no_reference_data"

_MAX_URGENCY_GAP = max(URGENCY_RANK.values()) - min(URGENCY_RANK.values())


def rank_matches(candidates: Iterable[MatchCandidate]) -> list[MatchCandidate]:
    """Order candidates by descending score, then ascending distance (id keeps it total)."""
    return sorted(candidates, key=lambda m: (-m.score, m.distance_km, m.id))


def reference_to_item(ref: ReferenceItem) -> MatchableItem:
    return MatchableItem(
        id=ref.id,
        type=ref.type,
        item_name=ref.item_name,
        category=ref.category,
        quantity=ref.quantity,
        urgency=ref.urgency,
        location=ItemLocation(
            address=ref.location.address,
            coordinates=Coordinates(lat=ref.location.lat, lng=ref.location.lng),
        ),
    )


def _compatibility(primary: str, other: str, cfg: MatchingSettings) -> ComponentResult:
    a = primary.strip().lower()
    b = other.strip().lower()
    if a == b:
        return ComponentResult(score=1.0, reasons=["Perfect category match"])
    if b in cfg.related_categories.get(a, []) or a in cfg.related_categories.get(b, []):
        return ComponentResult(score=cfg.related_category_compatibility, reasons=["Related category"])
    return ComponentResult(score=0.0, reasons=["Different category"])


def _distance(km: float, max_distance: float) -> ComponentResult:
    score = clamp01(1.0 - km / max_distance)
    if km <= max_distance:
        return ComponentResult(score=score, reasons=["within distance limit"], details={"distance_km": km})
    return ComponentResult(score=score, reasons=["beyond distance limit"], details={"distance_km": km})


def _urgency(primary: str, other: str) -> ComponentResult:
    gap = abs(URGENCY_RANK[primary] - URGENCY_RANK[other])
    score = clamp01(1.0 - gap / _MAX_URGENCY_GAP)
    if gap == 0:
        label = "high urgency alignment"
    elif gap == 1:
        label = "moderate urgency alignment"
    else:
        label = "low urgency alignment"
    return ComponentResult(score=score, reasons=[label])


def _quantity(primary: float, other: float, tolerance: float) -> ComponentResult:
    ratio = min(primary, other) / max(primary, other)
    if ratio >= 1.0 - tolerance:
        return ComponentResult(score=ratio, reasons=["quantity within tolerance"])
    return ComponentResult(score=ratio, reasons=["partial quantity"])


def score_counterpart(
    primary: MatchableItem,
    other: MatchableItem,
    *,
    constraints: MatchConstraints,
    cfg: MatchingSettings,
) -> tuple[MatchCandidate, bool]:
    """Score one counterpart; returns the candidate and whether it passes the hard filters."""
    km = round(distance_km(primary.location.coordinates, other.location.coordinates), 2)
    components = {
        "compatibility": _compatibility(primary.category, other.category, cfg),
        "distance": _distance(km, constraints.max_distance),
        "urgency": _urgency(primary.urgency, other.urgency),
        "quantity": _quantity(primary.quantity, other.quantity, constraints.quantity_tolerance),
    }
    weights = dict(cfg.score_weights)
    weights["urgency"] = constraints.urgency_weight
    score = round(weighted_score(components, weights), 4)

    passes = km <= constraints.max_distance
    if constraints.category_strict and components["compatibility"].score < 1.0:
        passes = False

    minutes = travel_minutes(km, cfg.delivery_speed_kmh) + cfg.handling_minutes
    reasons = [r for name in ("compatibility", "distance", "urgency") for r in components[name].reasons]
    candidate = MatchCandidate(
        id=other.id,
        score=score,
        distance_km=km,
        compatibility=round(components["compatibility"].score, 4),
        urgency_match=round(components["urgency"].score, 4),
        quantity_match=round(components["quantity"].score, 4),
        estimated_delivery_time=humanize_minutes(minutes),
        reason=", ".join(reasons),
    )
    return candidate, passes


def match_items(request: MatchingRequest, cfg: MatchingSettings, *, now: datetime | None = None) -> MatchSet:
    """Rank counterparts for `request.primary_item` without any remote call."""
    started = time.perf_counter()
    primary = request.primary_item

    if request.candidates is not None:
        pool = list(request.candidates)
    else:
        pool = [reference_to_item(ref) for ref in cfg.reference_pool]
    pool = [item for item in pool if item.type != primary.type and item.id != primary.id]

    strict: list[MatchCandidate] = []
    relaxed: list[MatchCandidate] = []
    for other in pool:
        candidate, passes = score_counterpart(primary, other, constraints=request.constraints, cfg=cfg)
        (strict if passes else relaxed).append(candidate)

    if strict:
        status = STATUS_SUCCESS
        ranked = rank_matches(strict)
    elif relaxed:
        status = STATUS_RELAXED
        ranked = rank_matches(relaxed)
    else:
        status = STATUS_NO_REFERENCE_DATA
        ranked = []
    ranked = ranked[: cfg.top_n]

    logger.debug("Offline matching for %s: %d candidates, status=%s", primary.id, len(ranked), status)
    return MatchSet(
        matches=ranked,
        total_matches=len(ranked),
        processing_time=round((time.perf_counter() - started) * 1000, 3),
        status=status,
        timestamp=now or utc_now(),
    )
