"""Summary, customer response and internal memo generation stage."""

import logging
from datetime import date
from typing import Any, Dict, List, Optional

from .base import BaseClaimsAgent
from ..models.assessment import Categorization, FraudAssessment
from ..models.claim import ExtractedClaimData
from ..models.result import ActionItem, ClaimSummary, InternalMemo, StageOutcome
from ..utils.errors import InputValidationError, StageValidationError

logger = logging.getLogger(__name__)


class ResponseGenerationAgent(BaseClaimsAgent):
    """
    Produces the human-readable outputs of a processing run.

    - generate_claim_summary: executive summary for handlers (JSON)
    - generate_customer_response: message to the claimant (plain text)
    - generate_internal_memo: memo to the claims team (JSON)
    """

    def __init__(self, client: Optional[Any] = None):
        super().__init__(
            name="response generation",
            instructions=self._build_instructions(),
            client=client,
            temperature=0.4,
        )

    def _build_instructions(self) -> str:
        return """You are a senior claims communication specialist. You write clear, accurate summaries and messages about insurance claims.

RULES:
- Only state facts that appear in the supplied claim data and assessments
- Never reveal fraud scores or investigation details to customers
- Be concise and professional
- When asked for JSON, return ONLY a valid JSON object with no markdown"""

    @staticmethod
    def _context(
        claim_data: ExtractedClaimData,
        fraud_assessment: Optional[FraudAssessment] = None,
        categorization: Optional[Categorization] = None,
    ) -> Dict[str, Any]:
        context: Dict[str, Any] = {"claim": claim_data.to_prompt_dict()}
        if fraud_assessment is not None:
            context["fraudAssessment"] = {
                "riskLevel": fraud_assessment.risk_level,
                "riskScore": fraud_assessment.risk_score,
                "overallAssessment": fraud_assessment.overall_assessment,
                "highWeightIndicators": [i.indicator for i in fraud_assessment.high_weight_indicators],
                "isFallback": fraud_assessment.is_fallback,
            }
        if categorization is not None:
            context["categorization"] = {
                "category": categorization.category.primary,
                "complexity": categorization.category.complexity,
                "priority": categorization.priority.level,
                "department": categorization.routing.department,
                "estimatedHandlingTime": categorization.routing.estimated_handling_time,
            }
        return context

    async def generate_claim_summary(
        self,
        claim_data: ExtractedClaimData,
        fraud_assessment: Optional[FraudAssessment] = None,
        categorization: Optional[Categorization] = None,
    ) -> StageOutcome:
        """StageOutcome whose data is a ClaimSummary."""
        return await self.run_stage(
            "generate_claim_summary", self._summary(claim_data, fraud_assessment, categorization)
        )

    async def _summary(self, claim_data, fraud_assessment, categorization) -> ClaimSummary:
        if claim_data is None:
            raise InputValidationError.invalid("Claim data is required for the summary", field="claim_data")

        prompt = f"""Write an executive summary of this claim for the claims handler.

CLAIM CONTEXT:
{self.to_json(self._context(claim_data, fraud_assessment, categorization))}

Return a JSON object with exactly this structure:
{{
    "executiveSummary": "2-3 sentence overview",
    "keyDetails": {{
        "claimant": "who is claiming",
        "incident": "what happened, when and where",
        "damages": "damages and amount",
        "riskFactors": "notable risk factors, or none"
    }},
    "processingStatus": "current status of the claim",
    "recommendations": ["handling recommendations"],
    "timeline": "expected processing timeline",
    "specialNotes": ["anything the handler must not miss"]
}}"""
        data = await self.get_json_response(prompt, required_fields=["executiveSummary"])
        return ClaimSummary.from_ai_response(data)

    async def generate_customer_response(
        self,
        claim_data: ExtractedClaimData,
        categorization: Optional[Categorization] = None,
        customer_friendly: bool = True,
    ) -> StageOutcome:
        """StageOutcome whose data is the plain-text message to the claimant."""
        return await self.run_stage(
            "generate_customer_response", self._customer_response(claim_data, categorization, customer_friendly)
        )

    async def _customer_response(self, claim_data, categorization, customer_friendly: bool) -> str:
        if claim_data is None:
            raise InputValidationError.invalid("Claim data is required for the customer response", field="claim_data")

        tone = (
            "warm, reassuring and free of insurance jargon"
            if customer_friendly
            else "formal and precise, suitable for official correspondence"
        )
        prompt = f"""Write a message to the claimant acknowledging their claim.

CLAIM CONTEXT:
{self.to_json(self._context(claim_data, categorization=categorization))}

The tone must be {tone}. Confirm receipt, restate the claim reference if known,
explain the next steps and the expected timeline, and list any information the
claimant still needs to provide. Do not mention fraud checks.

Return ONLY the message text, with no JSON and no markdown."""
        text = (await self.get_response(prompt) or "").strip()
        if not text:
            raise StageValidationError.invalid("customer response", "empty message")
        return text

    async def generate_internal_memo(
        self,
        processing_id: str,
        claim_data: ExtractedClaimData,
        fraud_assessment: Optional[FraudAssessment] = None,
        categorization: Optional[Categorization] = None,
        action_plan: Optional[List[ActionItem]] = None,
    ) -> StageOutcome:
        """StageOutcome whose data is an InternalMemo."""
        return await self.run_stage(
            "generate_internal_memo",
            self._memo(processing_id, claim_data, fraud_assessment, categorization, action_plan or []),
        )

    async def _memo(self, processing_id, claim_data, fraud_assessment, categorization, action_plan) -> InternalMemo:
        if claim_data is None:
            raise InputValidationError.invalid("Claim data is required for the internal memo", field="claim_data")

        context = self._context(claim_data, fraud_assessment, categorization)
        context["processingId"] = processing_id
        context["actionPlan"] = [
            {"type": item.type, "priority": item.priority, "action": item.action} for item in action_plan
        ]

        prompt = f"""Write an internal memo about this claim for the claims team.

CLAIM CONTEXT:
{self.to_json(context)}

Return a JSON object with exactly this structure:
{{
    "to": "recipient team",
    "from": "Claims Intake System",
    "date": "{date.today().isoformat()}",
    "subject": "memo subject including the claim reference",
    "priority": "urgent | high | normal | low",
    "summary": "short summary of the claim and its assessment",
    "keyFindings": ["key findings"],
    "recommendations": ["recommendations"],
    "requiredActions": [
        {{
            "action": "what must be done",
            "responsible": "who does it",
            "deadline": "when"
        }}
    ],
    "attachments": ["referenced documents"]
}}"""
        data = await self.get_json_response(prompt, required_fields=["subject", "summary"])
        return InternalMemo.from_ai_response(data)
