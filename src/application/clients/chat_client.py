"""Chat client abstraction for the conversation engine.

This module defines the capability interface every provider variant
implements (a non-streaming and a streaming chat completion) together with
the streaming event types and the error taxonomy shared by all variants.

Design Principles:
- One interface, a closed set of variants selected by provider name
- Clients relay raw stream deltas; accumulation belongs to the caller
- Configuration is an immutable ApiConfig handed over at construction
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Optional

from domain.models import ApiConfig, Message, Tool

logger = logging.getLogger(__name__)


# =============================================================================
# Unified Error Handling
# =============================================================================


class ProviderError(Exception):
    """Raised when the model API cannot produce a usable response.

    Covers non-2xx HTTP statuses, network failures and malformed bodies.

    Attributes:
        message: Human-readable error message
        error_code: Categorized error code for programmatic handling
        provider: The provider that raised the error
        status: HTTP status code, when one was received
        is_retryable: Whether the operation might succeed on retry
        details: Additional error context
    """

    def __init__(
        self,
        message: str,
        error_code: str,
        provider: str,
        status: Optional[int] = None,
        is_retryable: bool = False,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.provider = provider
        self.status = status
        self.is_retryable = is_retryable
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for API response."""
        return {
            "message": self.message,
            "error_code": self.error_code,
            "provider": self.provider,
            "status": self.status,
            "is_retryable": self.is_retryable,
            "details": self.details,
        }

    def __repr__(self) -> str:
        return f"ProviderError({self.provider}:{self.error_code}: {self.message})"


class ConfigError(Exception):
    """Raised before any network call when the configuration cannot work (missing key, endpoint or model)."""

    def __init__(self, message: str, field_name: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.error_code = "config_error"
        self.field_name = field_name
        self.is_retryable = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "message": self.message,
            "error_code": self.error_code,
            "field": self.field_name,
            "is_retryable": self.is_retryable,
        }


# =============================================================================
# Streaming Events
# =============================================================================


@dataclass(frozen=True)
class ToolCallDelta:
    """One raw tool-call fragment from a stream chunk.

    Fragments sharing an index belong to the same call.
    """

    index: int
    id: Optional[str] = None
    name: Optional[str] = None
    arguments_fragment: Optional[str] = None

    @classmethod
    def from_wire(cls, data: dict[str, Any], position: int = 0) -> "ToolCallDelta":
        function = data.get("function") or {}
        return cls(
            index=data.get("index", position),
            id=data.get("id") or None,
            name=function.get("name") or None,
            arguments_fragment=function.get("arguments"),
        )


@dataclass(frozen=True)
class ChunkEvent:
    """A single increment of a streamed chat completion."""

    content: Optional[str] = None
    reasoning_content: Optional[str] = None
    tool_call_deltas: tuple[ToolCallDelta, ...] = field(default_factory=tuple)
    finish_reason: Optional[str] = None
    usage: Optional[dict[str, Any]] = None

    @property
    def is_empty(self) -> bool:
        return not (self.content or self.reasoning_content or self.tool_call_deltas or self.finish_reason or self.usage)


# =============================================================================
# Client Interface
# =============================================================================


class ChatClient(ABC):
    """Abstract base class for chat-completion provider variants.

    Implementations:
    - OpenAiChatClient: OpenAI-compatible endpoints (OpenAI, Deepseek, Ollama, ...)
    - AzureOpenAiChatClient: Azure OpenAI deployments
    - OpenRouterChatClient: OpenRouter, which reports reasoning separately

    Usage:
        async with OpenAiChatClient(config, provider_name="OpenAI") as client:
            async for chunk in client.stream_chat_completion(messages, tools):
                ...
    """

    def __init__(self, config: ApiConfig, provider_name: Optional[str] = None) -> None:
        self._config = config
        self._provider_name = provider_name or config.provider

    @property
    def config(self) -> ApiConfig:
        return self._config

    @property
    def provider_name(self) -> str:
        return self._provider_name

    def validate_config(self) -> None:
        """Raise ConfigError when the configuration cannot work; no network I/O."""
        if not self._config.endpoint.strip():
            raise ConfigError(f"API endpoint is required for provider '{self.provider_name}'", field_name="endpoint")

    @abstractmethod
    async def chat_completion(self, messages: list[Message], tools: Optional[list[Tool]] = None) -> str:
        """Send a single request and return the assistant text content.

        Raises:
            ProviderError: On HTTP errors, network failures or malformed responses
            ConfigError: When the configuration is unusable, before any request
        """
        pass

    @abstractmethod
    def stream_chat_completion(self, messages: list[Message], tools: Optional[list[Tool]] = None) -> AsyncIterator[ChunkEvent]:
        """Send a streaming request and yield raw increments as they arrive.

        The sequence is finite and cannot be restarted; issue a new call to retry.
        Implementations are async generators.
        """
        raise NotImplementedError

    @abstractmethod
    async def close(self) -> None:
        """Close any resources held by the client."""
        pass

    async def __aenter__(self) -> "ChatClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
