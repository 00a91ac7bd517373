"""Infrastructure layer: provider adapters, client factory and storage."""

from .adapters import AzureOpenAiChatClient, OpenAiChatClient, OpenRouterChatClient
from .chat_client_factory import CHAT_CLIENT_VARIANTS, ChatClientFactory
from .repositories import InMemoryPlaygroundRepository

__all__ = [
    "AzureOpenAiChatClient",
    "CHAT_CLIENT_VARIANTS",
    "ChatClientFactory",
    "InMemoryPlaygroundRepository",
    "OpenAiChatClient",
    "OpenRouterChatClient",
]
