"""Provider client adapters implementing the ChatClient interface."""

from .azure_openai_chat_client import AzureOpenAiChatClient
from .openai_chat_client import OpenAiChatClient
from .openrouter_chat_client import OpenRouterChatClient

__all__ = [
    "AzureOpenAiChatClient",
    "OpenAiChatClient",
    "OpenRouterChatClient",
]
