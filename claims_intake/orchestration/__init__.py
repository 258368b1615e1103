"""Orchestration layer for the claims processing pipeline."""

from .pipeline import ClaimsOrchestrator
from .planning import validate_claim, generate_action_plan

__all__ = [
    "ClaimsOrchestrator",
    "validate_claim",
    "generate_action_plan"
]
