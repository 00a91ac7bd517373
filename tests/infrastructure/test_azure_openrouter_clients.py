"""Tests for the Azure OpenAI and OpenRouter client variants.

Tests cover:
- Azure deployment URL, api-key header and model-less body
- Azure gpt-5 and o-series parameter rules
- OpenRouter reasoning field
"""

import json

import httpx
import pytest

from application.clients import ConfigError
from domain.models import Message
from infrastructure import AzureOpenAiChatClient, OpenRouterChatClient
from tests.fixtures.factories import ApiConfigFactory
from tests.fixtures.fakes import collect


def delta_chunk(delta: dict, finish_reason=None) -> str:
    return "data: " + json.dumps({"choices": [{"index": 0, "delta": delta, "finish_reason": finish_reason}]}) + "\n\n"


class Recorder:
    def __init__(self, text: str = "data: [DONE]\n\n"):
        self.requests: list[httpx.Request] = []
        self.text = text

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(200, text=self.text)

    @property
    def body(self) -> dict:
        return json.loads(self.requests[0].content)


def transport_client(recorder: Recorder) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(recorder))


class TestAzureOpenAiChatClient:
    """Test the Azure OpenAI variant."""

    @pytest.mark.asyncio
    async def test_deployment_url_and_api_key_header(self):
        recorder = Recorder()
        config = ApiConfigFactory.create_azure(endpoint="https://my-resource.openai.azure.com/", model="gpt-4o")
        client = AzureOpenAiChatClient(config, http_client=transport_client(recorder))

        await collect(client.stream_chat_completion([Message.user("Hi")]))

        request = recorder.requests[0]
        assert str(request.url) == "https://my-resource.openai.azure.com/openai/deployments/gpt-4o/chat/completions?api-version=2025-04-01-preview"
        assert request.headers["api-key"] == "azure-key"
        assert "Authorization" not in request.headers
        assert "model" not in recorder.body
        assert recorder.body["temperature"] == 0.7

    def test_endpoint_without_scheme_and_custom_version(self):
        config = ApiConfigFactory.create_azure(endpoint="my-resource.openai.azure.com", model="prod-gpt", azure_api_version="2024-10-21")

        url = AzureOpenAiChatClient(config)._build_api_url()

        assert url == "https://my-resource.openai.azure.com/openai/deployments/prod-gpt/chat/completions?api-version=2024-10-21"

    @pytest.mark.asyncio
    async def test_gpt5_parameters(self):
        recorder = Recorder()
        config = ApiConfigFactory.create_azure(model="gpt-5", max_tokens=2, reasoning_effort="low", verbosity="high")
        client = AzureOpenAiChatClient(config, http_client=transport_client(recorder))

        await collect(client.stream_chat_completion([Message.user("Hi")]))

        body = recorder.body
        assert "temperature" not in body and "top_p" not in body
        assert body["max_completion_tokens"] == 4
        assert (body["reasoning_effort"], body["verbosity"]) == ("low", "high")

    @pytest.mark.asyncio
    async def test_reasoning_options_ignored_for_other_models(self):
        recorder = Recorder()
        config = ApiConfigFactory.create_azure(model="gpt-4o", reasoning_effort="low")

        await collect(AzureOpenAiChatClient(config, http_client=transport_client(recorder)).stream_chat_completion([Message.user("Hi")]))

        assert "reasoning_effort" not in recorder.body

    @pytest.mark.parametrize("overrides", [{"endpoint": ""}, {"model": ""}, {"api_key": ""}])
    def test_validate_config(self, overrides):
        config = ApiConfigFactory.create_azure().with_overrides(**overrides)

        with pytest.raises(ConfigError):
            AzureOpenAiChatClient(config).validate_config()


class TestOpenRouterChatClient:
    """Test the OpenRouter variant."""

    @pytest.mark.asyncio
    async def test_reasoning_field_relayed(self):
        text = delta_chunk({"reasoning": "Let me think"}) + delta_chunk({"reasoning_content": "More"}) + delta_chunk({"content": "Done"}, "stop")
        recorder = Recorder(text)
        config = ApiConfigFactory.create(provider="OpenRouter", endpoint="https://openrouter.ai/api/v1/chat/completions", model="deepseek/deepseek-r1")
        client = OpenRouterChatClient(config, http_client=transport_client(recorder))

        chunks = await collect(client.stream_chat_completion([Message.user("Hi")]))

        assert [chunk.reasoning_content for chunk in chunks] == ["Let me think", "More", None]
        assert recorder.body["max_tokens"] == 2000
