"""Base class for the AI-backed claims processing stages."""

import json
import logging
from abc import ABC
from typing import Any, Awaitable, Dict, List, Optional

from ..models.result import StageOutcome
from ..utils.bedrock_client import BedrockClient
from ..utils.config import Config
from ..utils.json_parser import AIResponseParser

logger = logging.getLogger(__name__)


class BaseClaimsAgent(ABC):
    """
    Base class for all claims processing stages.

    A stage builds a role-tagged prompt (system persona plus a user turn
    with the serialized input and the expected JSON shape), sends it through
    the AI client, recovers JSON with AIResponseParser and validates the
    shape before returning.

    Attributes:
        name: Stage name used in logs and error messages
        instructions: System instructions for the stage
        client: Object with ``async complete(messages, temperature, max_tokens)``
    """

    def __init__(
        self,
        name: str,
        instructions: str,
        client: Optional[Any] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ):
        self.name = name
        self.instructions = instructions
        self.temperature = temperature
        self.max_tokens = max_tokens

        if client is not None:
            self.client = client
        else:
            config = Config.load()
            self.client = BedrockClient(config=config.ai, region=config.aws_region)

        logger.info(f"Initialized {self.__class__.__name__}: {name}")

    def build_messages(
        self,
        user_message: str,
        history: Optional[List[Dict[str, str]]] = None,
    ) -> List[Dict[str, str]]:
        messages = [{"role": "system", "content": self.instructions}]
        if history:
            messages.extend(history)
        messages.append({"role": "user", "content": user_message})
        return messages

    async def get_response(
        self,
        user_message: str,
        history: Optional[List[Dict[str, str]]] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> str:
        """Send the stage prompt and return the raw completion text."""
        response_text = await self.client.complete(
            self.build_messages(user_message, history),
            temperature=temperature if temperature is not None else self.temperature,
            max_tokens=max_tokens if max_tokens is not None else self.max_tokens,
        )
        logger.debug(f"{self.name} generated response: {(response_text or '')[:100]}...")
        return response_text

    async def get_json_response(
        self,
        user_message: str,
        required_fields: Optional[List[str]] = None,
        **kwargs,
    ) -> Dict[str, Any]:
        """
        Send the stage prompt and return the validated JSON object.

        Raises:
            AIClientError: Transport failure
            ResponseParseError: No JSON could be recovered
            StageValidationError: JSON lacks the required top-level keys
        """
        response_text = await self.get_response(user_message, **kwargs)
        data = AIResponseParser.parse(response_text)
        return AIResponseParser.validate_json_structure(data, required_fields, stage=self.name)

    async def run_stage(self, operation: str, work: Awaitable[Any]) -> StageOutcome:
        """Await a stage coroutine and wrap its result or failure in a StageOutcome."""
        try:
            result = await work
        except Exception as e:
            logger.error(f"{self.name} {operation} failed: {str(e)}")
            return StageOutcome.failed(e)
        logger.info(f"{self.name} {operation} succeeded")
        return StageOutcome.ok(result)

    @staticmethod
    def to_json(data: Any) -> str:
        return json.dumps(data, indent=2, ensure_ascii=False, default=str)

    def __str__(self) -> str:
        return f"{self.__class__.__name__}(name={self.name})"

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name={self.name}, client={self.client.__class__.__name__})"
