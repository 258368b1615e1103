"""Claim categorization, prioritisation and routing stage."""

import logging
from typing import Any, Optional

from .base import BaseClaimsAgent
from ..models.assessment import (
    ASSIGNMENT_TYPES,
    CATEGORIES,
    COMPLEXITY_LEVELS,
    DEPARTMENTS,
    PRIORITY_LEVELS,
    Categorization,
    ClaimTypeGuess,
    FraudAssessment,
)
from ..models.claim import CLAIM_TYPES, ExtractedClaimData
from ..models.result import StageOutcome
from ..utils.errors import InputValidationError

logger = logging.getLogger(__name__)


class ClaimCategorizationAgent(BaseClaimsAgent):
    """Assigns category, complexity, priority and department routing to a claim."""

    def __init__(self, client: Optional[Any] = None):
        super().__init__(
            name="categorization",
            instructions=self._build_instructions(),
            client=client,
            temperature=0.2,
        )

    def _build_instructions(self) -> str:
        return """You are a claims triage manager. You categorize insurance claims, set their priority and route them to the right department.

PRIORITY GUIDANCE:
- urgent: injuries, high or critical fraud risk, or very large amounts
- high: large amounts or complex circumstances
- normal: routine claims with complete information
- low: small, simple claims suitable for automated handling

ROUTING GUIDANCE:
- Claims with high or critical fraud risk go to special_investigations or fraud_unit
- Otherwise route by claim type (auto_claims, health_claims, property_claims)

Return ONLY a valid JSON object. No markdown, no explanations."""

    def build_prompt(self, claim_data: ExtractedClaimData, fraud_assessment: FraudAssessment) -> str:
        fraud_summary = {
            "riskLevel": fraud_assessment.risk_level,
            "riskScore": fraud_assessment.risk_score,
            "fraudIndicators": [i.indicator for i in fraud_assessment.fraud_indicators],
            "isFallback": fraud_assessment.is_fallback,
        }
        return f"""Categorize and route this insurance claim.

CLAIM DATA:
{self.to_json(claim_data.to_prompt_dict())}

FRAUD ASSESSMENT:
{self.to_json(fraud_summary)}

Return a JSON object with exactly this structure:
{{
    "category": {{
        "primary": "{' | '.join(CATEGORIES)}",
        "secondary": "same values as primary, or null",
        "complexity": "{' | '.join(COMPLEXITY_LEVELS)}",
        "confidence": "high | medium | low"
    }},
    "priority": {{
        "level": "{' | '.join(PRIORITY_LEVELS)}",
        "score": number from 1 to 10,
        "reasoning": "why this priority",
        "factors": ["factors that influenced the priority"]
    }},
    "routing": {{
        "department": "{' | '.join(DEPARTMENTS)}",
        "assignmentType": "{' | '.join(ASSIGNMENT_TYPES)}",
        "specialHandling": ["special handling requirements"],
        "estimatedHandlingTime": "e.g. 3-5 business days"
    }},
    "processingRecommendations": ["handling recommendations"],
    "nextSteps": ["ordered next steps for the handler"]
}}"""

    async def categorize_claim(
        self,
        claim_data: ExtractedClaimData,
        fraud_assessment: FraudAssessment,
    ) -> StageOutcome:
        """
        Run the categorization stage.

        Returns:
            StageOutcome whose data is a Categorization
        """
        return await self.run_stage("categorize_claim", self._categorize(claim_data, fraud_assessment))

    async def _categorize(self, claim_data: ExtractedClaimData, fraud_assessment: FraudAssessment) -> Categorization:
        if claim_data is None or fraud_assessment is None:
            raise InputValidationError.invalid(
                "Claim data and fraud assessment are required for categorization", field="claim_data"
            )
        data = await self.get_json_response(
            self.build_prompt(claim_data, fraud_assessment),
            required_fields=["category", "priority", "routing"],
        )
        categorization = Categorization.from_ai_response(data)
        logger.info(
            f"Categorized as {categorization.category.primary} "
            f"(priority={categorization.priority.level}, department={categorization.routing.department})"
        )
        return categorization

    async def determine_claim_type(self, text: str) -> StageOutcome:
        """
        Quick claim-type classification of raw text.

        Returns:
            StageOutcome whose data is a ClaimTypeGuess
        """
        return await self.run_stage("determine_claim_type", self._determine(text))

    async def _determine(self, text: str) -> ClaimTypeGuess:
        if not isinstance(text, str) or not text.strip():
            raise InputValidationError.invalid("Text is empty or invalid", field="text")

        prompt = f"""Determine the insurance claim type described by this text.

TEXT:
\"\"\"
{text.strip()[:2000]}
\"\"\"

Return a JSON object with exactly this structure:
{{
    "claimType": "{' | '.join(CLAIM_TYPES)}",
    "confidence": "high | medium | low",
    "keywords": ["words that indicated the type"],
    "reasoning": "short explanation"
}}"""
        data = await self.get_json_response(prompt, required_fields=["claimType"], max_tokens=512)
        return ClaimTypeGuess.from_ai_response(data)
