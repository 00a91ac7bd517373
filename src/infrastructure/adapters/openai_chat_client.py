"""OpenAI-compatible chat client.

This module implements the ChatClient interface for every provider that
speaks the standard chat-completions protocol (OpenAI, Deepseek, Qwen,
Doubao, Qianfan, Xunfei, Ollama, custom endpoints).

Features:
- Streaming (SSE `data: {json}` framing terminated by `data: [DONE]`) and non-streaming calls
- Tool/function calling: tool schemas are sent verbatim with tool_choice "auto"
- Raw tool-call deltas, reasoning content and usage relayed per chunk
- OpenTelemetry tracing and metrics
"""

import json
import logging
import time
from typing import Any, AsyncIterator, Optional

import httpx
from opentelemetry import trace

from application.clients import ChatClient, ChunkEvent, ConfigError, ProviderError, ToolCallDelta
from application.providers import get_provider
from domain.models import ApiConfig, Message, Tool
from observability import provider_errors, provider_request_count, provider_request_time, provider_tool_call_deltas

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

SSE_DATA_PREFIX = "data:"
SSE_DONE = "[DONE]"
DEFAULT_TIMEOUT = 120.0


class OpenAiChatClient(ChatClient):
    """Chat client for OpenAI-compatible endpoints.

    The configured endpoint is the full chat-completions URL. Requests are
    authenticated with `Authorization: Bearer <api key>`.

    Usage:
        config = ApiConfig(provider="OpenAI", endpoint="https://api.openai.com/v1/chat/completions",
                           api_key="sk-xxx", model="gpt-4o")  # pragma: allowlist secret
        async with OpenAiChatClient(config) as client:
            text = await client.chat_completion([Message.user("Hello!")])
    """

    VARIANT = "openai"

    def __init__(
        self,
        config: ApiConfig,
        provider_name: Optional[str] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        """Initialize the client.

        Args:
            config: Provider call configuration
            provider_name: Catalog name of the provider, defaults to config.provider
            http_client: Optional shared HTTP client; when given it is not closed by this client
            timeout: Request timeout in seconds for a lazily created HTTP client
        """
        super().__init__(config, provider_name)
        self._client = http_client
        self._owns_client = http_client is None
        self._timeout = timeout

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=self._timeout)
            self._owns_client = True
        return self._client

    # =========================================================================
    # Request building
    # =========================================================================

    def _requires_api_key(self) -> bool:
        provider = get_provider(self.provider_name)
        return provider.requires_api_key if provider else True

    def validate_config(self) -> None:
        """Fail before any network call when the configuration cannot work."""
        if not self._config.endpoint.strip():
            raise ConfigError(f"API endpoint is required for provider '{self.provider_name}'", field_name="endpoint")
        if self._requires_api_key() and not self._config.api_key.strip():
            raise ConfigError(f"API key is required for provider '{self.provider_name}'", field_name="api_key")

    def _get_auth_headers(self) -> dict[str, str]:
        if not self._config.api_key:
            return {}
        return {"Authorization": f"Bearer {self._config.api_key}"}

    def _build_api_url(self) -> str:
        return self._config.endpoint.strip()

    def _max_tokens_field(self) -> str:
        # OpenAI itself expects max_completion_tokens, compatible servers still use max_tokens
        return "max_completion_tokens" if self.provider_name == "OpenAI" else "max_tokens"

    def _supports_temperature(self) -> bool:
        # o-series reasoning models reject temperature
        return not self._config.model.lower().startswith("o")

    def _build_request_body(self, messages: list[Message], tools: Optional[list[Tool]], stream: bool) -> dict[str, Any]:
        """Build the chat-completions request body.

        Args:
            messages: Conversation messages, system prompt included by the caller
            tools: Tool definitions whose schema is sent verbatim
            stream: Whether to stream the response

        Returns:
            Request body dictionary
        """
        body: dict[str, Any] = {
            "model": self._config.model,
            "messages": [message.to_wire() for message in messages],
            "top_p": self._config.top_p,
            "frequency_penalty": self._config.frequency_penalty,
            "presence_penalty": self._config.presence_penalty,
            "stream": stream,
        }
        if stream:
            body["stream_options"] = {"include_usage": True}

        if self._config.max_tokens:
            body[self._max_tokens_field()] = self._config.max_tokens

        if self._supports_temperature():
            body["temperature"] = self._config.temperature

        if tools:
            body["tools"] = [tool.schema for tool in tools]
            body["tool_choice"] = "auto"

        return body

    def _build_headers(self, stream: bool) -> dict[str, str]:
        headers = {"Content-Type": "application/json", **self._get_auth_headers()}
        if stream:
            headers["Accept"] = "text/event-stream"
        return headers

    # =========================================================================
    # Response parsing
    # =========================================================================

    def _reasoning_from_delta(self, delta: dict[str, Any]) -> Optional[str]:
        return delta.get("reasoning_content") or None

    def _parse_chunk(self, data: dict[str, Any]) -> ChunkEvent:
        """Translate one decoded SSE payload into a ChunkEvent."""
        usage = data.get("usage") or None
        choices = data.get("choices") or []
        if not choices:
            return ChunkEvent(usage=usage)

        choice = choices[0]
        delta = choice.get("delta") or {}
        tool_call_deltas = tuple(ToolCallDelta.from_wire(tool_call, position) for position, tool_call in enumerate(delta.get("tool_calls") or []))
        return ChunkEvent(
            content=delta.get("content") or None,
            reasoning_content=self._reasoning_from_delta(delta),
            tool_call_deltas=tool_call_deltas,
            finish_reason=choice.get("finish_reason") or None,
            usage=usage,
        )

    def _parse_sse_line(self, line: str) -> Optional[str]:
        """Return the data payload of an SSE line, or None for anything else."""
        stripped = line.strip()
        if not stripped.startswith(SSE_DATA_PREFIX):
            return None
        return stripped[len(SSE_DATA_PREFIX) :].strip()

    # =========================================================================
    # Error mapping
    # =========================================================================

    def _handle_http_error_from_status(self, status_code: int, error_text: str) -> ProviderError:
        """Map a non-2xx response to a ProviderError.

        Args:
            status_code: HTTP status code
            error_text: Raw error response body

        Returns:
            Appropriate ProviderError
        """
        error_detail = ""
        try:
            error_json = json.loads(error_text)
            if isinstance(error_json, dict) and isinstance(error_json.get("error"), dict):
                error_detail = error_json["error"].get("message") or ""
        except json.JSONDecodeError:
            pass
        if not error_detail:
            error_detail = httpx.codes.get_reason_phrase(status_code) or error_text[:200]

        if status_code in (401, 403):
            error_code, retryable = "authentication_error", False
        elif status_code == 404:
            error_code, retryable = "model_not_found", False
        elif status_code == 429:
            error_code, retryable = "rate_limit", True
        elif status_code >= 500:
            error_code, retryable = "server_error", True
        else:
            error_code, retryable = "http_error", False

        return ProviderError(
            message=f"API Error: {status_code} - {error_detail}",
            error_code=error_code,
            provider=self.provider_name,
            status=status_code,
            is_retryable=retryable,
            details={"model": self._config.model, "body": error_text[:500]},
        )

    def _handle_transport_error(self, e: httpx.HTTPError) -> ProviderError:
        if isinstance(e, httpx.TimeoutException):
            logger.error(f"{self.provider_name} request timed out: {e}")
            return ProviderError(
                message=f"{self.provider_name} request timed out",
                error_code="timeout",
                provider=self.provider_name,
                is_retryable=True,
            )
        logger.error(f"Cannot reach {self.provider_name} at {self._build_api_url()}: {e}")
        return ProviderError(
            message=f"Failed to communicate with {self.provider_name}: {e}",
            error_code="connection_error",
            provider=self.provider_name,
            is_retryable=True,
            details={"url": self._build_api_url()},
        )

    def _record_error(self, error: ProviderError) -> None:
        provider_errors.add(1, {"provider": self.provider_name, "error_code": error.error_code})

    # =========================================================================
    # ChatClient operations
    # =========================================================================

    async def chat_completion(self, messages: list[Message], tools: Optional[list[Tool]] = None) -> str:
        """Send a chat completion request and return the assistant text.

        Raises:
            ConfigError: If the endpoint or API key is missing
            ProviderError: If the API call fails or the body is malformed
        """
        self.validate_config()
        client = self._get_client()
        model = self._config.model
        start_time = time.time()
        provider_request_count.add(1, {"model": model, "provider": self.provider_name, "stream": "false"})

        with tracer.start_as_current_span(f"{self.VARIANT}.chat_completion") as span:
            span.set_attribute("llm.model", model)
            span.set_attribute("llm.provider", self.provider_name)
            span.set_attribute("llm.message_count", len(messages))

            url = self._build_api_url()
            body = self._build_request_body(messages, tools, stream=False)
            logger.debug(f"{self.provider_name} request: model={model}, messages={len(messages)}, tools={len(tools) if tools else 0}")

            try:
                response = await client.post(url, json=body, headers=self._build_headers(stream=False))
            except httpx.HTTPError as e:
                span.set_attribute("error", True)
                error = self._handle_transport_error(e)
                self._record_error(error)
                raise error from e

            if not response.is_success:
                span.set_attribute("error", True)
                logger.error(f"{self.provider_name} HTTP error: {response.status_code} - {response.text[:500]}")
                error = self._handle_http_error_from_status(response.status_code, response.text)
                self._record_error(error)
                raise error

            try:
                data = response.json()
                message = data["choices"][0]["message"]
            except (ValueError, KeyError, IndexError, TypeError) as e:
                span.set_attribute("error", True)
                error = ProviderError(
                    message=f"Invalid response format from {self.provider_name}",
                    error_code="invalid_response",
                    provider=self.provider_name,
                    status=response.status_code,
                    details={"body": response.text[:500]},
                )
                self._record_error(error)
                raise error from e

            duration_ms = (time.time() - start_time) * 1000
            provider_request_time.record(duration_ms, {"model": model, "provider": self.provider_name})
            span.set_attribute("llm.duration_ms", duration_ms)
            return (message or {}).get("content") or ""

    async def stream_chat_completion(self, messages: list[Message], tools: Optional[list[Tool]] = None) -> AsyncIterator[ChunkEvent]:
        """Send a streaming chat completion request and yield raw increments.

        Raises:
            ConfigError: If the endpoint or API key is missing
            ProviderError: If the API call fails
        """
        self.validate_config()
        client = self._get_client()
        model = self._config.model
        start_time = time.time()
        provider_request_count.add(1, {"model": model, "provider": self.provider_name, "stream": "true"})

        # The span is not made current: the stream is suspended between chunks
        span = tracer.start_span(f"{self.VARIANT}.stream_chat_completion")
        span.set_attribute("llm.model", model)
        span.set_attribute("llm.provider", self.provider_name)
        span.set_attribute("llm.message_count", len(messages))

        url = self._build_api_url()
        body = self._build_request_body(messages, tools, stream=True)
        logger.info(f"🔧 {self.provider_name} stream request: model={model}, messages={len(messages)}, tools={len(tools) if tools else 0}")
        logger.debug(f"🔧 {self.provider_name} request URL: {url}")

        chunk_count = 0
        try:
            async with client.stream("POST", url, json=body, headers=self._build_headers(stream=True)) as response:
                if not response.is_success:
                    error_content = await response.aread()
                    error_text = error_content.decode("utf-8", errors="replace")
                    logger.error(f"{self.provider_name} HTTP error: {response.status_code} - {error_text[:500]}")
                    raise self._handle_http_error_from_status(response.status_code, error_text)

                async for line in response.aiter_lines():
                    payload = self._parse_sse_line(line)
                    if not payload:
                        continue
                    if payload == SSE_DONE:
                        break

                    try:
                        data = json.loads(payload)
                    except json.JSONDecodeError:
                        logger.warning(f"Failed to parse SSE data: {payload[:200]}")
                        continue
                    if not isinstance(data, dict):
                        continue

                    chunk = self._parse_chunk(data)
                    if chunk.is_empty:
                        continue
                    chunk_count += 1
                    if chunk.tool_call_deltas:
                        provider_tool_call_deltas.add(len(chunk.tool_call_deltas), {"provider": self.provider_name})
                    if chunk.finish_reason:
                        span.set_attribute("llm.finish_reason", chunk.finish_reason)
                    yield chunk

            duration_ms = (time.time() - start_time) * 1000
            provider_request_time.record(duration_ms, {"model": model, "provider": self.provider_name})
            span.set_attribute("llm.duration_ms", duration_ms)
            logger.info(f"🏁 {self.provider_name} stream completed: {chunk_count} chunks")

        except ProviderError as e:
            span.set_attribute("error", True)
            self._record_error(e)
            raise
        except httpx.HTTPError as e:
            span.set_attribute("error", True)
            error = self._handle_transport_error(e)
            self._record_error(error)
            raise error from e
        finally:
            span.end()

    async def close(self) -> None:
        """Close the HTTP client if this instance created it."""
        if self._owns_client and self._client is not None and not self._client.is_closed:
            await self._client.aclose()
        self._client = None
