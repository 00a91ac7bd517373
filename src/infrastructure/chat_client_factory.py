"""Chat client factory for runtime provider selection.

Providers are looked up by catalog name and mapped to a wire-protocol variant
through a static table. Adding a variant means implementing ChatClient and
adding one entry to CHAT_CLIENT_VARIANTS.

Usage:
    factory = ChatClientFactory(timeout=app_settings.provider_timeout)
    client = factory.create(api_config, "Azure OpenAI")
    async for chunk in client.stream_chat_completion(messages):
        ...
"""

import logging
from typing import Optional

import httpx

from application.clients import ChatClient, ConfigError
from application.providers import get_provider
from domain.models import ApiConfig

from .adapters import AzureOpenAiChatClient, OpenAiChatClient, OpenRouterChatClient

logger = logging.getLogger(__name__)

CHAT_CLIENT_VARIANTS: dict[str, type[OpenAiChatClient]] = {
    OpenAiChatClient.VARIANT: OpenAiChatClient,
    AzureOpenAiChatClient.VARIANT: AzureOpenAiChatClient,
    OpenRouterChatClient.VARIANT: OpenRouterChatClient,
}


class ChatClientFactory:
    """Creates the chat client matching a provider's protocol variant.

    A shared httpx.AsyncClient may be injected; clients created by the
    factory then reuse its connection pool and never close it.
    """

    def __init__(self, http_client: Optional[httpx.AsyncClient] = None, timeout: float = 120.0) -> None:
        self._http_client = http_client
        self._timeout = timeout

    @staticmethod
    def variant_for(provider_name: str) -> str:
        """Return the variant name for a catalog provider.

        Raises:
            ConfigError: If the provider is not in the catalog
        """
        provider = get_provider(provider_name)
        if provider is None:
            raise ConfigError(f"Unknown provider: {provider_name}", field_name="provider")
        return provider.client

    def create(self, config: ApiConfig, provider_name: Optional[str] = None) -> ChatClient:
        """Create a client for the given configuration.

        Args:
            config: Provider call configuration
            provider_name: Catalog provider name, defaults to config.provider

        Raises:
            ConfigError: If the provider or its variant is unknown
        """
        name = provider_name or config.provider
        variant = self.variant_for(name)
        client_class = CHAT_CLIENT_VARIANTS.get(variant)
        if client_class is None:
            raise ConfigError(f"Unsupported client variant '{variant}' for provider {name}", field_name="provider")
        logger.debug(f"Creating {client_class.__name__} for provider={name}, model={config.model}")
        return client_class(config, provider_name=name, http_client=self._http_client, timeout=self._timeout)

    def __call__(self, config: ApiConfig, provider_name: Optional[str] = None) -> ChatClient:
        return self.create(config, provider_name)
