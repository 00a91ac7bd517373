"""Agent system prompt generation from free-form requirements."""

import logging
from typing import AsyncIterator, Callable, Optional

from application.clients import ChatClient, ConfigError
from domain.models import ApiConfig, Message

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """You are an expert in AI Agents, proficient in the principles of various AI Agents, and possess extensive practical experience. Please assist users in generating excellent prompts for AI Agent.

Guidelines for creating system prompts:
1. Be specific about the agent's role and capabilities
2. Include clear instructions on how the agent should behave
3. Specify the tone and communication style
4. Include any relevant constraints or guidelines
5. Description of available tools and their invocation order.
6. Make it actionable and practical
7. Keep it concise but comprehensive

IMPORTANT: You must generate the system prompt in the same language as the user's input. If the user writes in Chinese, generate the instruction in Chinese. If the user writes in English, generate the instruction in English. Always match the user's language exactly.

Generate a system prompt that would make an AI agent behave exactly as described by the user."""


class InstructionGenerator:
    """Streams a generated agent system prompt."""

    def __init__(self, client_factory: Callable[[ApiConfig, Optional[str]], ChatClient]) -> None:
        self._client_factory = client_factory

    async def stream(self, requirements: str, config: ApiConfig, provider_name: Optional[str] = None) -> AsyncIterator[str]:
        """Yield the generated prompt text as it arrives.

        Raises:
            ConfigError: For a blank prompt or a configuration without key or endpoint
            ProviderError: If the model request fails
        """
        if not requirements.strip() or not config.api_key or not config.endpoint:
            raise ConfigError("Invalid prompt or API configuration")

        user_prompt = (
            "Create a system prompt for an AI agent with the following requirements:\n\n"
            f"{requirements}\n\n"
            "Please generate a clear, professional system prompt that defines how this agent should behave and respond to users."
        )
        messages = [Message.system(SYSTEM_PROMPT), Message.user(user_prompt)]

        async with self._client_factory(config, provider_name) as client:
            client.validate_config()
            async for chunk in client.stream_chat_completion(messages):
                if chunk.content:
                    yield chunk.content

    async def generate(self, requirements: str, config: ApiConfig, provider_name: Optional[str] = None) -> str:
        parts = [part async for part in self.stream(requirements, config, provider_name)]
        logger.debug(f"Generated instruction of {sum(len(p) for p in parts)} characters")
        return "".join(parts)
