"""Amazon Bedrock chat client with retry logic and error classification."""

import asyncio
import logging
import os
from typing import Any, Dict, List, Optional

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import (
    BotoCoreError,
    ClientError,
    ConnectTimeoutError,
    EndpointConnectionError,
    NoCredentialsError,
    ReadTimeoutError,
)

from .config import AIConfig
from .errors import AIClientError, ErrorType

logger = logging.getLogger(__name__)

VALID_ROLES = ("system", "user", "assistant")


class BedrockClient:
    """
    Thin transport adapter over the Bedrock Converse API.

    Takes role-tagged chat turns (``{"role": ..., "content": str}``), builds
    the Converse request with generation parameters and guardrail settings
    from configuration, and returns the raw completion text.

    Failures are classified into network, authentication, rate-limit and
    generic provider errors (see AIClientError). Transient failures are
    retried with exponential backoff.
    """

    def __init__(
        self,
        config: Optional[AIConfig] = None,
        region: str = "us-east-1",
        runtime: Any = None,
    ):
        """
        Initialize the client.

        Args:
            config: AI configuration (model, key, generation parameters)
            region: AWS region for the Bedrock runtime
            runtime: Optional pre-built bedrock-runtime client (used by tests)
        """
        self.config = config or AIConfig()
        self.region = region
        self.model_id = self.config.model_id
        self.max_retries = max(1, self.config.max_retries)
        self._runtime = runtime

        if self.config.enabled and self.config.api_key and not os.getenv("AWS_BEARER_TOKEN_BEDROCK"):
            os.environ["AWS_BEARER_TOKEN_BEDROCK"] = self.config.api_key.strip()

        if not self.config.enabled:
            logger.warning("AI service is not configured; AI-dependent stages will fail fast")

        logger.info(
            f"Initialized BedrockClient: region={region}, "
            f"model={self.model_id}, max_retries={self.max_retries}, enabled={self.is_enabled}"
        )

    @property
    def is_enabled(self) -> bool:
        return self.config.enabled

    @property
    def runtime(self):
        """Lazily create the bedrock-runtime client."""
        if self._runtime is None:
            config_kwargs: Dict[str, Any] = {
                "region_name": self.region,
                "connect_timeout": self.config.timeout,
                "read_timeout": self.config.timeout,
                "retries": {"max_attempts": 0},  # retries are handled in complete()
            }
            if self.config.api_key:
                config_kwargs["signature_version"] = "bearer"
            self._runtime = boto3.client("bedrock-runtime", config=BotoConfig(**config_kwargs))
        return self._runtime

    def build_request(
        self,
        messages: List[Dict[str, str]],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> Dict[str, Any]:
        """
        Translate role-tagged turns into a Converse request.

        System turns become the native ``system`` block, or are folded into
        the first user turn as a ``Context:`` prefix when ``fold_system_prompt``
        is set. Consecutive turns with the same role are merged because the
        Converse API requires alternating roles starting with a user turn.

        Args:
            messages: Ordered list of {"role", "content"} dicts
            temperature: Optional override of the configured temperature
            max_tokens: Optional override of the configured token limit

        Returns:
            Keyword arguments for ``runtime.converse``
        """
        if not isinstance(messages, list) or not messages:
            raise ValueError("Messages must be a non-empty list")

        system_parts: List[str] = []
        turns: List[Dict[str, Any]] = []

        for message in messages:
            role = message.get("role")
            content = message.get("content")
            if role not in VALID_ROLES:
                raise ValueError(f"Unsupported message role: {role!r}")
            if not isinstance(content, str):
                raise ValueError(f"Message content for role {role!r} must be a string")

            if role == "system":
                system_parts.append(content.strip())
                continue

            if turns and turns[-1]["role"] == role:
                turns[-1]["content"][0]["text"] += "\n\n" + content
            else:
                turns.append({"role": role, "content": [{"text": content}]})

        if not turns or turns[0]["role"] != "user":
            turns.insert(0, {"role": "user", "content": [{"text": "Please respond to the following."}]})

        system_text = "\n\n".join(part for part in system_parts if part)
        if system_text and self.config.fold_system_prompt:
            first = turns[0]["content"][0]
            first["text"] = f"Context: {system_text}\n\n{first['text']}"

        inference = self.config.generation_params()
        if temperature is not None:
            inference["temperature"] = temperature
        if max_tokens is not None:
            inference["maxTokens"] = max_tokens

        params: Dict[str, Any] = {
            "modelId": self.model_id,
            "messages": turns,
            "inferenceConfig": inference,
        }
        if system_text and not self.config.fold_system_prompt:
            params["system"] = [{"text": system_text}]

        guardrail = self.config.safety_config()
        if guardrail:
            params["guardrailConfig"] = guardrail

        return params

    async def complete(
        self,
        messages: List[Dict[str, str]],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> str:
        """
        Send chat turns to the model and return the completion text.

        Args:
            messages: Ordered list of {"role", "content"} dicts
            temperature: Optional sampling temperature override
            max_tokens: Optional output token limit override

        Returns:
            Raw completion text (may be empty)

        Raises:
            AIClientError: Classified transport failure
        """
        if not self.is_enabled:
            raise AIClientError.of_type(ErrorType.AI_NOT_CONFIGURED, operation="complete")

        params = self.build_request(messages, temperature=temperature, max_tokens=max_tokens)

        last_error: Optional[AIClientError] = None
        for attempt in range(self.max_retries):
            try:
                logger.debug(f"Invoking {self.model_id} (attempt {attempt + 1}/{self.max_retries})")
                response = await asyncio.to_thread(self.runtime.converse, **params)
                logger.info(
                    f"Model invocation successful: "
                    f"stop_reason={response.get('stopReason')}, usage={response.get('usage')}"
                )
                return self._extract_text(response)

            except Exception as e:
                last_error = self._classify(e)
                logger.warning(
                    f"AI request failed (attempt {attempt + 1}/{self.max_retries}): "
                    f"{last_error.error_type.value}: {e}"
                )

            if last_error.retryable and attempt < self.max_retries - 1:
                wait_time = 2 ** attempt
                logger.info(f"Retrying in {wait_time} seconds...")
                await asyncio.sleep(wait_time)
                continue
            break

        logger.error(f"AI request failed: {last_error.error_type.value}")
        raise last_error

    async def test_connection(self) -> Dict[str, Any]:
        """
        Minimal round-trip used at startup to decide whether AI features run.

        Never raises.

        Returns:
            {"success": True, "response": str} or {"success": False, "error": str}
        """
        try:
            text = await self.complete([{"role": "user", "content": "Hello"}], max_tokens=16)
            return {"success": True, "response": text}
        except AIClientError as e:
            return {"success": False, "error": str(e), "error_type": e.error_type.value}
        except Exception as e:
            logger.error(f"Unexpected error during connection test: {e}", exc_info=True)
            return {"success": False, "error": str(e), "error_type": ErrorType.UNKNOWN_ERROR.value}

    @staticmethod
    def _extract_text(response: Dict[str, Any]) -> str:
        message = response.get("output", {}).get("message", {})
        text_parts = [block["text"] for block in message.get("content", []) if "text" in block]
        return "\n".join(text_parts)

    @staticmethod
    def _classify(error: Exception) -> AIClientError:
        if isinstance(error, AIClientError):
            return error
        if isinstance(error, NoCredentialsError):
            return AIClientError.of_type(ErrorType.AI_AUTH_ERROR, operation="complete", error=error)
        if isinstance(error, (EndpointConnectionError, ConnectTimeoutError, ReadTimeoutError, ConnectionError, TimeoutError)):
            return AIClientError.of_type(ErrorType.AI_NETWORK_ERROR, operation="complete", error=error)
        if isinstance(error, ClientError):
            return AIClientError.from_client_error(error, operation="complete")
        if isinstance(error, BotoCoreError):
            return AIClientError.of_type(ErrorType.AI_PROVIDER_ERROR, operation="complete", error=error)
        return AIClientError.of_type(
            ErrorType.AI_PROVIDER_ERROR,
            operation="complete",
            error=error,
            details={"provider_message": str(error)},
        )
