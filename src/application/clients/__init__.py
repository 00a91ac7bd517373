"""Provider client abstraction used by the conversation engine and generators."""

from .chat_client import ChatClient, ChunkEvent, ConfigError, ProviderError, ToolCallDelta

__all__ = [
    "ChatClient",
    "ChunkEvent",
    "ConfigError",
    "ProviderError",
    "ToolCallDelta",
]
