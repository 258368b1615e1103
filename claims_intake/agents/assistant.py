"""Conversational assistant for claims staff and claimants."""

import logging
from typing import Any, Dict, List, Optional

from .base import BaseClaimsAgent
from ..models.result import StageOutcome
from ..utils.errors import InputValidationError, StageValidationError

logger = logging.getLogger(__name__)


class ClaimsAssistantAgent(BaseClaimsAgent):
    """
    Free-text question answering about claims.

    Keeps a rolling history of the most recent ``history_limit`` turns
    (user and assistant messages) that is replayed with every query.
    """

    def __init__(self, client: Optional[Any] = None, history_limit: int = 20):
        super().__init__(
            name="claims assistant",
            instructions=self._build_instructions(),
            client=client,
            temperature=0.7,
            max_tokens=1024,
        )
        self.history_limit = history_limit
        self.history: List[Dict[str, str]] = []

    def _build_instructions(self) -> str:
        return """You are a helpful insurance claims assistant.

You help claims staff and claimants understand claims, the claims process, required documentation and processing decisions.

GUIDELINES:
- Answer in plain language and keep answers short
- Use the claim context when one is supplied; say so when information is missing
- Never make coverage promises or disclose fraud investigation details
- Suggest contacting a claims adjuster for anything requiring a formal decision"""

    async def process_query(self, query: str, claim_context: Optional[Dict[str, Any]] = None) -> StageOutcome:
        """
        Answer a free-text question, optionally about a specific claim.

        Returns:
            StageOutcome whose data is the answer text
        """
        return await self.run_stage("process_query", self._answer(query, claim_context))

    async def _answer(self, query: str, claim_context: Optional[Dict[str, Any]]) -> str:
        if not isinstance(query, str) or not query.strip():
            raise InputValidationError.invalid("Query is empty or invalid", field="query")

        message = query.strip()
        if claim_context:
            message = f"CLAIM CONTEXT:\n{self.to_json(claim_context)}\n\nQUESTION:\n{message}"

        answer = (await self.get_response(message, history=list(self.history)) or "").strip()
        if not answer:
            raise StageValidationError.invalid("assistant answer", "empty response")

        self.history.append({"role": "user", "content": query.strip()})
        self.history.append({"role": "assistant", "content": answer})
        if len(self.history) > self.history_limit:
            self.history = self.history[-self.history_limit:]
        return answer

    async def explain_decision(self, claim_data: Dict[str, Any], decision: Dict[str, Any]) -> StageOutcome:
        """Explain a processing decision to the claimant in plain language."""
        query = (
            "Explain this claim decision to the claimant in plain language: what was decided, "
            "why, and what they can do next.\n\n"
            f"DECISION:\n{self.to_json(decision)}"
        )
        return await self.process_query(query, claim_context=claim_data)

    async def answer_faq(self, question: str) -> StageOutcome:
        """Answer a general question about the claims process."""
        if not isinstance(question, str) or not question.strip():
            return StageOutcome.failed(InputValidationError.invalid("Question is empty or invalid", field="question"))
        return await self.process_query(
            f"Answer this frequently asked question about insurance claims: {question.strip()}"
        )

    def get_history(self) -> List[Dict[str, str]]:
        """Copy of the retained conversation turns, oldest first."""
        return [dict(turn) for turn in self.history]

    def clear_history(self) -> None:
        self.history = []
        logger.info("Assistant conversation history cleared")
