"""Deterministic claim validation and action planning (no AI calls)."""

import logging
from typing import List

from ..models.assessment import Categorization, FraudAssessment
from ..models.claim import ClaimValidation, ExtractedClaimData
from ..models.result import ActionItem

logger = logging.getLogger(__name__)

# Field -> what to ask for when it is missing
CRITICAL_FIELDS = {
    "claimant_name": "Confirm the claimant's full name",
    "incident_date": "Provide the date of the incident",
    "claim_type": "Specify the type of claim",
    "damage_description": "Describe the damage or loss",
    "estimated_amount": "Provide an estimated claim amount",
}


def validate_claim(claim_data: ExtractedClaimData) -> ClaimValidation:
    """
    Check extracted claim data for the fields a handler cannot work without.

    Args:
        claim_data: Cleaned extraction output

    Returns:
        ClaimValidation with status "complete" or "incomplete"
    """
    missing = [name for name in CRITICAL_FIELDS if getattr(claim_data, name) is None]
    actions = [CRITICAL_FIELDS[name] for name in missing]

    if claim_data.claim_type == "auto" and claim_data.vehicle is None:
        actions.append("Provide vehicle make, model and plate number")
    if claim_data.injuries and claim_data.medical_treatment is None:
        actions.append("Provide medical treatment records for the reported injuries")

    status = "incomplete" if missing else "complete"
    logger.info(f"Claim validation: status={status}, missing={missing}")
    return ClaimValidation(status=status, missing_critical_fields=missing, required_actions=actions)


def generate_action_plan(
    validation: ClaimValidation,
    fraud_assessment: FraudAssessment,
    categorization: Categorization,
) -> List[ActionItem]:
    """
    Derive the ordered action plan from validation, fraud and routing state.

    Rules, in order:
    - incomplete validation: request documentation (high)
    - high/critical risk: fraud investigation (urgent)
    - fallback fraud assessment: manual fraud review (normal)
    - always: route to the assigned department at the categorized priority
    - each categorization next step becomes a next_step item
    """
    actions: List[ActionItem] = []

    if validation.status == "incomplete":
        actions.append(ActionItem(
            type="validation",
            priority="high",
            action="Request additional documentation",
            details=list(validation.required_actions) or ["Additional documentation needed"],
        ))

    if fraud_assessment.risk_level in ("high", "critical"):
        actions.append(ActionItem(
            type="fraud_review",
            priority="urgent",
            action="Conduct fraud investigation",
            details=list(fraud_assessment.investigation_areas) or ["Requires fraud investigation"],
        ))
    elif fraud_assessment.is_fallback:
        actions.append(ActionItem(
            type="fraud_review",
            priority="normal",
            action="Manual fraud review",
            details=["Automated fraud assessment was unavailable"],
        ))

    routing = categorization.routing
    actions.append(ActionItem(
        type="routing",
        priority=categorization.priority.level,
        action=f"Route to {routing.department}",
        details=[f"Assign to: {routing.assignment_type}"]
        + ([f"Estimated handling time: {routing.estimated_handling_time}"] if routing.estimated_handling_time else []),
    ))

    for step in categorization.next_steps:
        actions.append(ActionItem(type="next_step", priority="normal", action=step))

    return actions
