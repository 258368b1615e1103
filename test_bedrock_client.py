"""Tests for the Bedrock chat client: request building, retries and error classification."""

import pytest
from botocore.exceptions import ClientError, EndpointConnectionError

from claims_intake.utils import bedrock_client as bedrock_module
from claims_intake.utils.bedrock_client import BedrockClient
from claims_intake.utils.config import MISSING_API_KEY_SENTINEL, AIConfig
from claims_intake.utils.errors import AIClientError, ErrorType


class FakeRuntime:
    """Records converse() calls and replays a list of outcomes."""

    def __init__(self, outcomes):
        self.outcomes = list(outcomes)
        self.calls = []

    def converse(self, **params):
        self.calls.append(params)
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return {
            "output": {"message": {"role": "assistant", "content": [{"text": outcome}]}},
            "stopReason": "end_turn",
            "usage": {"inputTokens": 10, "outputTokens": 5},
        }


def client_error(code, status, message="boom"):
    return ClientError(
        {"Error": {"Code": code, "Message": message}, "ResponseMetadata": {"HTTPStatusCode": status}},
        "Converse",
    )


def make_client(outcomes, **config_overrides):
    config = AIConfig(**config_overrides)
    runtime = FakeRuntime(outcomes)
    return BedrockClient(config=config, runtime=runtime), runtime


@pytest.fixture
def no_sleep(monkeypatch):
    waits = []

    async def fake_sleep(seconds):
        waits.append(seconds)

    monkeypatch.setattr(bedrock_module.asyncio, "sleep", fake_sleep)
    return waits


def test_build_request_uses_native_system_block():
    client, _ = make_client([])
    params = client.build_request([
        {"role": "system", "content": "You are a claims analyst."},
        {"role": "user", "content": "Hello"},
    ])

    assert params["system"] == [{"text": "You are a claims analyst."}]
    assert params["messages"] == [{"role": "user", "content": [{"text": "Hello"}]}]
    assert params["inferenceConfig"] == {"temperature": 0.5, "topP": 0.95, "maxTokens": 4096}
    assert "guardrailConfig" not in params


def test_build_request_folds_system_prompt_when_configured():
    client, _ = make_client([], fold_system_prompt=True)
    params = client.build_request([
        {"role": "system", "content": "Be brief."},
        {"role": "user", "content": "Hello"},
    ])

    assert "system" not in params
    assert params["messages"][0]["content"][0]["text"] == "Context: Be brief.\n\nHello"


def test_build_request_merges_consecutive_turns_and_applies_overrides():
    client, _ = make_client([], guardrail_id="gr-1")
    params = client.build_request(
        [
            {"role": "assistant", "content": "Earlier answer"},
            {"role": "user", "content": "First"},
            {"role": "user", "content": "Second"},
        ],
        temperature=0.1,
        max_tokens=100,
    )

    roles = [turn["role"] for turn in params["messages"]]
    assert roles == ["user", "assistant", "user"]
    assert params["messages"][-1]["content"][0]["text"] == "First\n\nSecond"
    assert params["inferenceConfig"]["temperature"] == 0.1
    assert params["inferenceConfig"]["maxTokens"] == 100
    assert params["guardrailConfig"] == {"guardrailIdentifier": "gr-1", "guardrailVersion": "DRAFT"}


@pytest.mark.parametrize("messages", [
    [],
    [{"role": "tool", "content": "x"}],
    [{"role": "user", "content": None}],
])
def test_build_request_rejects_malformed_messages(messages):
    client, _ = make_client([])
    with pytest.raises(ValueError):
        client.build_request(messages)


@pytest.mark.asyncio
async def test_complete_returns_text():
    client, runtime = make_client(["Hello there"])
    text = await client.complete([{"role": "user", "content": "Hello"}])

    assert text == "Hello there"
    assert len(runtime.calls) == 1
    assert runtime.calls[0]["modelId"] == "amazon.nova-pro-v1:0"


@pytest.mark.asyncio
async def test_placeholder_key_fails_fast_without_calling_the_service():
    client, runtime = make_client(["unused"], api_key=MISSING_API_KEY_SENTINEL)

    assert client.is_enabled is False
    with pytest.raises(AIClientError) as exc_info:
        await client.complete([{"role": "user", "content": "Hello"}])
    assert exc_info.value.error_type == ErrorType.AI_NOT_CONFIGURED
    assert runtime.calls == []


@pytest.mark.asyncio
@pytest.mark.parametrize("code,status,expected", [
    ("AccessDeniedException", 403, ErrorType.AI_AUTH_ERROR),
    ("SomethingElse", 401, ErrorType.AI_AUTH_ERROR),
    ("ValidationException", 400, ErrorType.AI_PROVIDER_ERROR),
])
async def test_non_retryable_client_errors_are_classified(code, status, expected, no_sleep):
    client, runtime = make_client([client_error(code, status)])

    with pytest.raises(AIClientError) as exc_info:
        await client.complete([{"role": "user", "content": "Hello"}])

    assert exc_info.value.error_type == expected
    assert exc_info.value.context.details["error_code"] == code
    assert len(runtime.calls) == 1
    assert no_sleep == []


@pytest.mark.asyncio
async def test_throttling_is_retried_with_backoff(no_sleep):
    client, runtime = make_client([
        client_error("ThrottlingException", 429),
        client_error("ThrottlingException", 429),
        "Recovered",
    ])

    assert await client.complete([{"role": "user", "content": "Hello"}]) == "Recovered"
    assert len(runtime.calls) == 3
    assert no_sleep == [1, 2]


@pytest.mark.asyncio
async def test_rate_limit_surfaces_after_retries_are_exhausted(no_sleep):
    client, runtime = make_client([client_error("TooManyRequestsException", 429)] * 3)

    with pytest.raises(AIClientError) as exc_info:
        await client.complete([{"role": "user", "content": "Hello"}])

    assert exc_info.value.error_type == ErrorType.AI_RATE_LIMIT
    assert str(exc_info.value).startswith("Rate limit exceeded")
    assert len(runtime.calls) == 3


@pytest.mark.asyncio
async def test_network_errors_are_classified(no_sleep):
    error = EndpointConnectionError(endpoint_url="https://bedrock-runtime.us-east-1.amazonaws.com")
    client, runtime = make_client([error], max_retries=1)

    with pytest.raises(AIClientError) as exc_info:
        await client.complete([{"role": "user", "content": "Hello"}])

    assert exc_info.value.error_type == ErrorType.AI_NETWORK_ERROR
    assert exc_info.value.retryable is True


@pytest.mark.asyncio
async def test_unexpected_exceptions_become_provider_errors(no_sleep):
    client, _ = make_client([RuntimeError("weird")], max_retries=1)

    with pytest.raises(AIClientError) as exc_info:
        await client.complete([{"role": "user", "content": "Hello"}])

    assert exc_info.value.error_type == ErrorType.AI_PROVIDER_ERROR
    assert exc_info.value.context.details["provider_message"] == "weird"


@pytest.mark.asyncio
async def test_test_connection_never_raises(no_sleep):
    ok_client, _ = make_client(["Hi"])
    assert await ok_client.test_connection() == {"success": True, "response": "Hi"}

    auth_client, _ = make_client([client_error("UnrecognizedClientException", 403)])
    result = await auth_client.test_connection()
    assert result["success"] is False
    assert result["error_type"] == "AI_AUTH_ERROR"

    disabled_client, _ = make_client([], disabled=True)
    result = await disabled_client.test_connection()
    assert result == {
        "success": False,
        "error": AIClientError.USER_MESSAGES[ErrorType.AI_NOT_CONFIGURED],
        "error_type": "AI_NOT_CONFIGURED",
    }
