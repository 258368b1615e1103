"""Claim extraction stage: structured claim fields from free-form document text."""

import logging
from typing import Any, Optional

from .base import BaseClaimsAgent
from ..models.claim import CLAIM_TYPES, ExtractedClaimData
from ..models.result import StageOutcome
from ..utils.errors import InputValidationError

logger = logging.getLogger(__name__)

DEFAULT_MAX_DOCUMENT_CHARS = 12000


class ClaimExtractionAgent(BaseClaimsAgent):
    """
    Pulls claimant, policy, incident and amount fields out of document text.

    Document text longer than ``max_document_chars`` is truncated before it
    is embedded in the prompt. The parsed response is cleaned into an
    ExtractedClaimData record (dates normalised, amounts parsed, coverage
    and confidence computed).
    """

    def __init__(self, client: Optional[Any] = None, max_document_chars: int = DEFAULT_MAX_DOCUMENT_CHARS):
        super().__init__(
            name="claim extraction",
            instructions=self._build_instructions(),
            client=client,
            temperature=0.1,
        )
        self.max_document_chars = max_document_chars

    def _build_instructions(self) -> str:
        return """You are an insurance claims intake specialist. You read claim documents and extract structured claim information.

RULES:
- Extract only information that is present in the document. Never invent values.
- Use null for any field that is not present.
- Dates must be formatted as YYYY-MM-DD when the full date is known.
- Amounts must be plain numbers without currency symbols or thousands separators.
- Return ONLY a valid JSON object. No markdown, no explanations."""

    def prepare_text(self, document_text: str) -> str:
        """
        Validate and bound the document text sent upstream.

        Raises:
            InputValidationError: If the text is empty or not a string
        """
        if not isinstance(document_text, str) or not document_text.strip():
            raise InputValidationError.invalid("Document text is empty or invalid", field="document_text")

        text = document_text.strip()
        if len(text) > self.max_document_chars:
            logger.info(f"Truncating document text from {len(text)} to {self.max_document_chars} characters")
            text = text[:self.max_document_chars]
        return text

    def prepare_context(self, additional_context: str, document_chars: int) -> str:
        """Bound caller notes to whatever the document text left of the character budget."""
        context = (additional_context or "").strip()
        remaining = max(self.max_document_chars - document_chars, 0)
        if len(context) > remaining:
            logger.info(f"Truncating additional context from {len(context)} to {remaining} characters")
            context = context[:remaining]
        return context

    def build_prompt(self, document_text: str, additional_context: str = "") -> str:
        claim_types = " | ".join(CLAIM_TYPES)
        context_block = f"\nADDITIONAL CONTEXT:\n{additional_context.strip()}\n" if additional_context.strip() else ""
        return f"""Extract the claim information from the document below.

DOCUMENT:
\"\"\"
{document_text}
\"\"\"
{context_block}
Return a JSON object with exactly this structure:
{{
    "claimNumber": "string or null",
    "policyNumber": "string or null",
    "claimantName": "string or null",
    "incidentDate": "YYYY-MM-DD or null",
    "claimDate": "YYYY-MM-DD or null",
    "claimType": "{claim_types}",
    "incidentLocation": "string or null",
    "damageDescription": "string or null",
    "estimatedAmount": number or null,
    "witnessInfo": "string or null",
    "medicalTreatment": "string or null",
    "vehicleInfo": {{
        "make": "string or null",
        "model": "string or null",
        "year": "string or null",
        "plateNumber": "string or null"
    }},
    "claimantAddress": "string or null",
    "contactPhone": "string or null",
    "contactEmail": "string or null",
    "policeReportNumber": "string or null",
    "injuries": ["list of injuries, empty if none"],
    "additionalInfo": "string or null"
}}"""

    async def extract_claim_data(self, document_text: str, additional_context: str = "") -> StageOutcome:
        """
        Run the extraction stage.

        Args:
            document_text: Plain text of the claim documents
            additional_context: Optional caller-supplied notes

        Returns:
            StageOutcome whose data is an ExtractedClaimData
        """
        return await self.run_stage("extract_claim_data", self._extract(document_text, additional_context))

    async def _extract(self, document_text: str, additional_context: str) -> ExtractedClaimData:
        text = self.prepare_text(document_text)
        context = self.prepare_context(additional_context, len(text))
        data = await self.get_json_response(self.build_prompt(text, context))
        claim_data = ExtractedClaimData.from_ai_response(data)
        logger.info(
            f"Extracted {len(claim_data.extracted_fields)} fields "
            f"(confidence={claim_data.confidence}, missing={claim_data.missing_fields})"
        )
        return claim_data
