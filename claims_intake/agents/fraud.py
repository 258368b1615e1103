"""Fraud assessment stage."""

import logging
from typing import Any, Dict, List, Optional

from .base import BaseClaimsAgent
from ..models.assessment import RISK_LEVELS, AnomalyReport, FraudAssessment
from ..models.claim import ExtractedClaimData
from ..models.result import StageOutcome
from ..utils.errors import InputValidationError

logger = logging.getLogger(__name__)

MAX_CONTEXT_CHARS = 4000


class FraudAssessmentAgent(BaseClaimsAgent):
    """
    Scores an extracted claim for fraud risk.

    The model only produces the assessment; the returned risk level must be
    one of low, medium, high or critical, otherwise the stage fails.
    """

    def __init__(self, client: Optional[Any] = None):
        super().__init__(
            name="fraud assessment",
            instructions=self._build_instructions(),
            client=client,
            temperature=0.2,
        )

    def _build_instructions(self) -> str:
        return """You are an insurance fraud analyst. You review structured claim data and assess the likelihood that the claim is fraudulent.

WHAT TO LOOK FOR:
- Inconsistent or vague incident descriptions
- Amounts that are unusually high for the described damage
- Missing supporting details (no witnesses, no police report for a serious incident)
- Claim dates long after the incident date
- Patterns commonly associated with staged incidents or inflated claims

BE FAIR:
- Missing information alone is not proof of fraud
- Weigh legitimacy indicators as carefully as fraud indicators
- Reserve "critical" for claims with multiple strong, independent red flags

Return ONLY a valid JSON object. No markdown, no explanations."""

    def build_prompt(self, claim_data: ExtractedClaimData, additional_context: str = "") -> str:
        context = (additional_context or "").strip()[:MAX_CONTEXT_CHARS]
        context_block = f"\nADDITIONAL CONTEXT:\n{context}\n" if context else ""
        return f"""Assess the fraud risk of this insurance claim.

CLAIM DATA:
{self.to_json(claim_data.to_prompt_dict())}
{context_block}

Return a JSON object with exactly this structure:
{{
    "riskLevel": "{' | '.join(RISK_LEVELS)}",
    "riskScore": number from 0 to 100,
    "fraudIndicators": [
        {{
            "indicator": "description of the red flag",
            "weight": "low | medium | high",
            "explanation": "why this is a concern"
        }}
    ],
    "legitimacyIndicators": [
        {{
            "indicator": "description of supporting evidence",
            "explanation": "why this supports the claim"
        }}
    ],
    "recommendedActions": ["follow-up actions"],
    "investigationAreas": ["areas needing closer review"],
    "overallAssessment": "short narrative assessment",
    "confidence": "high | medium | low"
}}"""

    async def assess_fraud_risk(self, claim_data: ExtractedClaimData, additional_context: str = "") -> StageOutcome:
        """
        Run the fraud assessment stage.

        Args:
            claim_data: Cleaned extraction output
            additional_context: Optional caller-supplied notes shown to the analyst

        Returns:
            StageOutcome whose data is a FraudAssessment
        """
        return await self.run_stage("assess_fraud_risk", self._assess(claim_data, additional_context))

    async def _assess(self, claim_data: ExtractedClaimData, additional_context: str) -> FraudAssessment:
        if claim_data is None:
            raise InputValidationError.invalid("Claim data is required for fraud assessment", field="claim_data")
        prompt = self.build_prompt(claim_data, additional_context)
        data = await self.get_json_response(prompt, required_fields=["riskLevel"])
        assessment = FraudAssessment.from_ai_response(data)
        logger.info(
            f"Fraud assessment: risk_level={assessment.risk_level}, score={assessment.risk_score}, "
            f"{len(assessment.fraud_indicators)} indicators"
        )
        return assessment

    async def detect_anomalies(
        self,
        claim_data: ExtractedClaimData,
        historical_claims: Optional[List[Dict[str, Any]]] = None,
    ) -> StageOutcome:
        """
        Compare a claim against recent historical claims for unusual patterns.

        Args:
            claim_data: The claim under review
            historical_claims: Up to the 10 most recent prior claims (dicts)

        Returns:
            StageOutcome whose data is an AnomalyReport
        """
        return await self.run_stage("detect_anomalies", self._detect(claim_data, historical_claims or []))

    async def _detect(self, claim_data: ExtractedClaimData, historical_claims: List[Dict[str, Any]]) -> AnomalyReport:
        if claim_data is None:
            raise InputValidationError.invalid("Claim data is required for anomaly detection", field="claim_data")

        prompt = f"""Compare this claim with the historical claims and identify anomalies.

CURRENT CLAIM:
{self.to_json(claim_data.to_prompt_dict())}

HISTORICAL CLAIMS ({len(historical_claims[-10:])} most recent):
{self.to_json(historical_claims[-10:])}

Return a JSON object with exactly this structure:
{{
    "anomaliesDetected": true or false,
    "anomalies": [
        {{
            "type": "amount | frequency | pattern | timing | other",
            "description": "what is unusual",
            "severity": "low | medium | high"
        }}
    ],
    "patternAnalysis": "short analysis",
    "riskAssessment": "{' | '.join(RISK_LEVELS)}"
}}"""
        data = await self.get_json_response(prompt, required_fields=["anomaliesDetected"])
        return AnomalyReport.from_ai_response(data)
