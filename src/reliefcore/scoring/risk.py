"""
Validation outcome invariants.

Both the remote validation agent and the offline validator produce a `ValidationOutcome`;
this module is the single place that derives `riskLevel` and `autoApprove` from the
issue list and confidence so every outcome a caller sees obeys the same bands:

- more than `high_risk_issue_count` issues -> "high"
- 1..`high_risk_issue_count` issues -> "medium"
- no issues -> "low"
- auto-approve only when valid and confidence > `auto_approve_confidence`
"""

from __future__ import annotations

from reliefcore.config.settings import ValidationThresholds
from reliefcore.domain.models import RiskLevel, ValidationOutcome


def risk_level_for(issue_count: int, thresholds: ValidationThresholds) -> RiskLevel:
    if issue_count > thresholds.high_risk_issue_count:
        return "high"
    if issue_count > 0:
        return "medium"
    return "low"


def may_auto_approve(is_valid: bool, confidence: float, thresholds: ValidationThresholds) -> bool:
    return bool(is_valid) and float(confidence) > thresholds.auto_approve_confidence


def enforce_outcome_invariants(outcome: ValidationOutcome, thresholds: ValidationThresholds) -> ValidationOutcome:
    """Return `outcome` with risk level and auto-approval re-derived.

    A reported `autoApprove=true` is kept only when the thresholds allow it; a reported
    `false` is never upgraded, since the agent may have reasons we cannot see.
    """
    risk_level = risk_level_for(len(outcome.issues), thresholds)
    auto_approve = outcome.auto_approve and may_auto_approve(outcome.is_valid, outcome.confidence, thresholds)
    if risk_level == outcome.risk_level and auto_approve == outcome.auto_approve:
        return outcome
    return outcome.model_copy(update={"risk_level": risk_level, "auto_approve": auto_approve})
