from unittest.mock import MagicMock

import groq
import httpx
import openai
import pytest

from triagecli.domain.errors import (
    CircuitOpenError,
    ConfigError,
    NotAuthenticatedError,
    ProviderError,
    RateLimitedError,
    TruncatedResponseError,
)
from triagecli.infrastructure.ai.client_factory import create_client
from triagecli.infrastructure.ai.groq.groq_client import GroqClient
from triagecli.infrastructure.ai.openai.gpt_client import OPENROUTER_BASE_URL, GptClient, OpenRouterClient
from triagecli.infrastructure.cache.file_cache import FileCacheImpl
from triagecli.infrastructure.config import settings
from triagecli.infrastructure.resilience.api_retry import RetryPolicy
from triagecli.infrastructure.resilience.circuit_breaker import CircuitBreaker

REQUEST = httpx.Request("POST", "https://api.example.com/v1/chat/completions")
MESSAGES = [{"role": "user", "content": "Summarize this issue"}]


def make_response(status, headers=None):
    return httpx.Response(status, request=REQUEST, headers=headers or {})


def make_completion(content="Mocked AI response", finish_reason="stop"):
    completion = MagicMock()
    choice = MagicMock()
    choice.message.content = content
    choice.finish_reason = finish_reason
    completion.choices = [choice]
    completion.usage.prompt_tokens = 10
    completion.usage.completion_tokens = 20
    completion.usage.total_tokens = 30
    completion.model = "gpt-4o-mini-2024"
    return completion


@pytest.fixture
def sdk_client():
    client = MagicMock()
    client.chat.completions.create.return_value = make_completion()
    return client


@pytest.fixture
def breaker(clock):
    return CircuitBreaker(threshold=2, reset_seconds=60, clock=clock, name="openai")


@pytest.fixture
def gpt_client(sdk_client, breaker, recording_sleep):
    return GptClient(
        api_key=None,
        client=sdk_client,
        breaker=breaker,
        retry_policy=RetryPolicy(max_attempts=3, sleep=recording_sleep),
    )


@pytest.mark.asyncio
async def test_complete_success(gpt_client, sdk_client):
    response = await gpt_client.complete(MESSAGES)

    assert response.content == "Mocked AI response"
    assert response.finish_reason == "stop"
    assert response.model_name == "gpt-4o-mini-2024"
    assert response.token_usage == {"prompt_tokens": 10, "completion_tokens": 20, "total_tokens": 30}
    assert response.latency_ms is not None
    call_kwargs = sdk_client.chat.completions.create.call_args.kwargs
    assert call_kwargs["model"] == GptClient.DEFAULT_MODEL
    assert call_kwargs["messages"] == MESSAGES


@pytest.mark.asyncio
async def test_length_finish_reason_is_truncation(gpt_client, sdk_client, breaker):
    sdk_client.chat.completions.create.return_value = make_completion('{"summary": "cut', finish_reason="length")

    with pytest.raises(TruncatedResponseError):
        await gpt_client.complete(MESSAGES)

    assert sdk_client.chat.completions.create.call_count == 3
    assert breaker.failure_count == 1


@pytest.mark.asyncio
async def test_rate_limit_translated_with_retry_after(gpt_client, sdk_client):
    sdk_client.chat.completions.create.side_effect = openai.RateLimitError(
        "slow down", response=make_response(429, {"retry-after": "7"}), body=None
    )

    with pytest.raises(RateLimitedError) as exc_info:
        await gpt_client.complete(MESSAGES)

    assert exc_info.value.retry_after == 7
    assert exc_info.value.provider == "openai"
    assert sdk_client.chat.completions.create.call_count == 3


@pytest.mark.asyncio
async def test_authentication_error_is_not_retried(gpt_client, sdk_client):
    sdk_client.chat.completions.create.side_effect = openai.AuthenticationError(
        "invalid key", response=make_response(401), body=None
    )

    with pytest.raises(NotAuthenticatedError) as exc_info:
        await gpt_client.complete(MESSAGES)

    assert exc_info.value.env_var == "OPENAI_API_KEY"
    assert sdk_client.chat.completions.create.call_count == 1


@pytest.mark.asyncio
async def test_server_error_translated_and_retried(gpt_client, sdk_client):
    sdk_client.chat.completions.create.side_effect = [
        openai.InternalServerError("oops", response=make_response(500), body=None),
        make_completion("recovered"),
    ]

    response = await gpt_client.complete(MESSAGES)

    assert response.content == "recovered"
    assert sdk_client.chat.completions.create.call_count == 2


@pytest.mark.asyncio
async def test_client_error_keeps_status(gpt_client, sdk_client):
    sdk_client.chat.completions.create.side_effect = openai.BadRequestError(
        "bad request", response=make_response(400), body=None
    )

    with pytest.raises(ProviderError) as exc_info:
        await gpt_client.complete(MESSAGES)

    assert exc_info.value.status == 400
    assert not exc_info.value.retryable
    assert sdk_client.chat.completions.create.call_count == 1


@pytest.mark.asyncio
async def test_connection_errors_pass_through(gpt_client, sdk_client):
    sdk_client.chat.completions.create.side_effect = openai.APIConnectionError(request=REQUEST)

    with pytest.raises(openai.APIConnectionError):
        await gpt_client.complete(MESSAGES)
    assert sdk_client.chat.completions.create.call_count == 3


@pytest.mark.asyncio
async def test_breaker_opens_and_fails_fast(gpt_client, sdk_client):
    sdk_client.chat.completions.create.side_effect = openai.AuthenticationError(
        "invalid key", response=make_response(401), body=None
    )
    for _ in range(2):
        with pytest.raises(NotAuthenticatedError):
            await gpt_client.complete(MESSAGES)

    with pytest.raises(CircuitOpenError):
        await gpt_client.complete(MESSAGES)
    assert sdk_client.chat.completions.create.call_count == 2


@pytest.mark.asyncio
async def test_list_available_models(gpt_client, sdk_client):
    first, second = MagicMock(id="gpt-4o", owned_by="openai"), MagicMock(id="gpt-4o-mini", owned_by="system")
    sdk_client.models.list.return_value = MagicMock(data=[first, second])

    models = await gpt_client.list_available_models()

    assert [m.model_id for m in models] == ["gpt-4o", "gpt-4o-mini"]
    assert models[0].provider == "openai"
    assert models[1].owned_by == "system"


@pytest.mark.asyncio
async def test_list_available_models_uses_cache(gpt_client, sdk_client, cache_root):
    sdk_client.models.list.return_value = MagicMock(data=[MagicMock(id="gpt-4o", owned_by="openai")])
    cache = FileCacheImpl("models", ttl=3600, cache_root=cache_root)

    first = await gpt_client.list_available_models(cache=cache)
    second = await gpt_client.list_available_models(cache=cache)

    assert first == second
    assert sdk_client.models.list.call_count == 1
    assert (cache_root / "models" / "openai.json").exists()


def test_missing_api_key_raises():
    with pytest.raises(NotAuthenticatedError) as exc_info:
        GroqClient(api_key=None)
    assert exc_info.value.env_var == "GROQ_API_KEY"


@pytest.mark.asyncio
async def test_groq_rate_limit_translated(recording_sleep):
    sdk_client = MagicMock()
    sdk_client.chat.completions.create.side_effect = groq.RateLimitError(
        "slow down", response=make_response(429, {"retry-after": "3"}), body=None
    )
    client = GroqClient(api_key=None, client=sdk_client, retry_policy=RetryPolicy(max_attempts=1, sleep=recording_sleep))

    with pytest.raises(RateLimitedError) as exc_info:
        await client.complete(MESSAGES)

    assert exc_info.value.provider == "groq"
    assert exc_info.value.retry_after == 3


def test_openrouter_uses_openai_sdk_with_base_url(mocker):
    constructor = mocker.patch("triagecli.infrastructure.ai.openai.gpt_client.OpenAI")

    client = OpenRouterClient(api_key="or-key")

    constructor.assert_called_once_with(api_key="or-key", base_url=OPENROUTER_BASE_URL)
    assert client.provider_name == "openrouter"
    assert client.model == OpenRouterClient.DEFAULT_MODEL


def test_create_client_reads_configuration(mocker, monkeypatch):
    mocker.patch("triagecli.infrastructure.ai.openai.gpt_client.OpenAI")
    monkeypatch.setenv("OPENROUTER_API_KEY", "or-key")
    settings.set_config_for_testing({
        "circuit_breaker.threshold": 5,
        "circuit_breaker.reset_seconds": 120,
        "ai.openrouter.model": "meta-llama/llama-3.1-8b-instruct",
    })

    client = create_client()

    assert isinstance(client, OpenRouterClient)
    assert client.model == "meta-llama/llama-3.1-8b-instruct"
    assert client.breaker.threshold == 5
    assert client.breaker.reset_seconds == 120


def test_create_client_without_key(mocker):
    mocker.patch("triagecli.infrastructure.ai.groq.groq_client.GroqSDKClient")
    with pytest.raises(NotAuthenticatedError):
        create_client("groq")


def test_create_client_unknown_provider():
    with pytest.raises(ConfigError):
        create_client("mystery")
