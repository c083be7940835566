# src/reliefcore/fallback/validation.py
"""
Offline submission validation.

Rule-based stand-in for the remote validation agent. Each rule that fails contributes
one issue and one matching suggestion; confidence drops with every issue:

- valid -> `valid_confidence` (0.85)
- invalid -> max(`min_confidence`, `invalid_base_confidence` - `per_issue_penalty` * issues)

Risk level and auto-approval come from `reliefcore.scoring.risk` so offline and remote
outcomes follow the same bands.
"""

from __future__ import annotations

from reliefcore.config.settings import ValidationThresholds
from reliefcore.domain.models import SubmissionContent, ValidationOutcome
from reliefcore.scoring.composite import clamp01
from reliefcore.scoring.risk import may_auto_approve, risk_level_for

ISSUE_NAME_TOO_SHORT = "Item name too short"
ISSUE_INVALID_QUANTITY = "Invalid quantity"
ISSUE_INSUFFICIENT_LOCATION = "Location information insufficient"


def validate_submission(content: SubmissionContent, thresholds: ValidationThresholds) -> ValidationOutcome:
    issues: list[str] = []
    suggestions: list[str] = []

    if len(content.item_name.strip()) < thresholds.min_item_name_length:
        issues.append(ISSUE_NAME_TOO_SHORT)
        suggestions.append("Please provide a more descriptive item name")

    if content.quantity <= 0:
        issues.append(ISSUE_INVALID_QUANTITY)
        suggestions.append("Please specify a positive quantity")

    if len(content.location.strip()) < thresholds.min_location_length:
        issues.append(ISSUE_INSUFFICIENT_LOCATION)
        suggestions.append("Please provide a complete address")

    is_valid = not issues
    if is_valid:
        confidence = thresholds.valid_confidence
    else:
        confidence = max(
            thresholds.min_confidence,
            thresholds.invalid_base_confidence - thresholds.per_issue_penalty * len(issues),
        )
    # 0.8 - 0.2 * n is not exact in binary floating point.
    confidence = clamp01(round(confidence, 4))

    return ValidationOutcome(
        is_valid=is_valid,
        confidence=confidence,
        issues=issues,
        suggestions=suggestions,
        risk_level=risk_level_for(len(issues), thresholds),
        auto_approve=may_auto_approve(is_valid, confidence, thresholds),
    )
