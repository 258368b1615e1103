"""Locally built substitutes for non-fatal stages that failed."""

from datetime import date
from typing import List, Optional

from ..models.assessment import FraudAssessment
from ..models.claim import ExtractedClaimData
from ..models.result import ActionItem, ClaimSummary, InternalMemo, RequiredAction

FALLBACK_RISK_SCORE = 10


def fallback_fraud_assessment(reason: Optional[str] = None) -> FraudAssessment:
    """Default low-risk assessment, flagged so handlers review it manually."""
    note = "Automated fraud assessment unavailable; manual review recommended."
    if reason:
        note = f"{note} Reason: {reason}"
    return FraudAssessment(
        risk_level="low",
        risk_score=FALLBACK_RISK_SCORE,
        recommended_actions=["Perform a manual fraud review"],
        overall_assessment=note,
        confidence="low",
        is_fallback=True,
    )


def _format_amount(amount: Optional[float]) -> str:
    if amount is None:
        return "an unspecified amount"
    return f"{amount:,.2f}"


def fallback_summary(claim_data: ExtractedClaimData, fraud_assessment: FraudAssessment) -> ClaimSummary:
    claim_type = claim_data.claim_type or "general"
    claimant = claim_data.claimant_name or "Unknown claimant"
    reference = f" ({claim_data.claim_number})" if claim_data.claim_number else ""
    return ClaimSummary(
        executive_summary=(
            f"{claim_type.capitalize()} claim{reference} from {claimant} for "
            f"{_format_amount(claim_data.estimated_amount)}. "
            f"Assessed fraud risk: {fraud_assessment.risk_level}."
        ),
        key_details={
            "claimant": claimant,
            "incident": claim_data.damage_description or "Not provided",
            "damages": _format_amount(claim_data.estimated_amount),
            "riskFactors": fraud_assessment.risk_level,
        },
        processing_status="Processed with a templated summary",
        recommendations=["Review the claim details manually"],
        is_fallback=True,
    )


def fallback_customer_response(claim_data: ExtractedClaimData) -> str:
    name = claim_data.claimant_name or "Valued Customer"
    reference = f" (reference {claim_data.claim_number})" if claim_data.claim_number else ""
    return (
        f"Dear {name},\n\n"
        f"Thank you for submitting your claim{reference}. We have received your documents "
        "and a claims specialist will review them shortly. We will contact you if we need "
        "any further information.\n\n"
        "Kind regards,\nClaims Team"
    )


def fallback_memo(
    processing_id: str,
    fraud_assessment: FraudAssessment,
    action_plan: List[ActionItem],
) -> InternalMemo:
    recommendations = [item.action for item in action_plan]
    return InternalMemo(
        subject=f"Claim {processing_id}: processing summary",
        summary=(
            f"Claim {processing_id} was processed automatically. "
            f"Fraud risk level: {fraud_assessment.risk_level}."
        ),
        date=date.today().isoformat(),
        priority="urgent" if fraud_assessment.risk_level in ("high", "critical") else "normal",
        key_findings=[f"Risk level: {fraud_assessment.risk_level} (score {fraud_assessment.risk_score})"],
        recommendations=recommendations,
        required_actions=[RequiredAction(action=item.action) for item in action_plan if item.type != "next_step"],
        is_fallback=True,
    )
