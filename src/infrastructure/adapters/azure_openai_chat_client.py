"""Azure OpenAI chat client.

Same JSON request and SSE response shapes as the OpenAI-compatible client,
with three differences: the deployment (model) is addressed in the URL path,
authentication uses the `api-key` header, and the body carries no `model`.
"""

import logging
from typing import Any, Optional

from application.clients import ConfigError
from domain.models import Message, Tool

from .openai_chat_client import OpenAiChatClient

logger = logging.getLogger(__name__)

DEFAULT_AZURE_API_VERSION = "2025-04-01-preview"
MIN_COMPLETION_TOKENS = 4


class AzureOpenAiChatClient(OpenAiChatClient):
    """Chat client for Azure OpenAI deployments.

    The configured endpoint is the resource host, with or without scheme,
    e.g. "my-resource.openai.azure.com". The model is the deployment name.
    """

    VARIANT = "azure-openai"

    def validate_config(self) -> None:
        if not self._config.endpoint.strip() or not self._config.model.strip():
            raise ConfigError("Azure OpenAI requires endpoint and model (deployment name)", field_name="endpoint")
        if not self._config.api_key.strip():
            raise ConfigError("API key is required for provider 'Azure OpenAI'", field_name="api_key")

    def _get_auth_headers(self) -> dict[str, str]:
        return {"api-key": self._config.api_key}

    def _build_api_url(self) -> str:
        """Build https://{resource}/openai/deployments/{model}/chat/completions?api-version={version}."""
        resource = self._config.endpoint.strip()
        for scheme in ("https://", "http://"):
            if resource.startswith(scheme):
                resource = resource[len(scheme) :]
                break
        resource = resource.rstrip("/")
        api_version = (self._config.azure_api_version or "").strip() or DEFAULT_AZURE_API_VERSION
        return f"https://{resource}/openai/deployments/{self._config.model}/chat/completions?api-version={api_version}"

    def _is_gpt5(self) -> bool:
        return self._config.model.lower().startswith("gpt-5")

    def _supports_sampling_params(self) -> bool:
        # o-series and gpt-5 deployments reject temperature and top_p
        return not (self._config.model.lower().startswith("o") or self._is_gpt5())

    def _build_request_body(self, messages: list[Message], tools: Optional[list[Tool]], stream: bool) -> dict[str, Any]:
        body: dict[str, Any] = {
            "messages": [message.to_wire() for message in messages],
            "frequency_penalty": self._config.frequency_penalty,
            "presence_penalty": self._config.presence_penalty,
            "stream": stream,
        }
        if stream:
            body["stream_options"] = {"include_usage": True}

        if self._config.max_tokens is not None:
            body["max_completion_tokens"] = max(MIN_COMPLETION_TOKENS, self._config.max_tokens)

        if self._supports_sampling_params():
            body["temperature"] = self._config.temperature
            body["top_p"] = self._config.top_p

        if self._is_gpt5():
            if self._config.reasoning_effort:
                body["reasoning_effort"] = self._config.reasoning_effort
            if self._config.verbosity:
                body["verbosity"] = self._config.verbosity

        if tools:
            body["tools"] = [tool.schema for tool in tools]
            body["tool_choice"] = "auto"

        return body
