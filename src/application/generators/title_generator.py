"""Session title generation."""

import logging
import re
from typing import Callable, Optional

from application.clients import ChatClient, ConfigError, ProviderError
from domain.models import ApiConfig, Message

logger = logging.getLogger(__name__)

FALLBACK_TITLE = "New conversation"
MAX_TITLE_LENGTH = 50
MAX_SOURCE_LENGTH = 500

SYSTEM_PROMPT = (
    "You are a title generator that uses user conversation language. "
    "Generate very short, concise titles (2-5 words) capturing the main topic. "
    "Return only the title, no quotes or extra text."
)


def simple_title(text: str, max_length: int = MAX_TITLE_LENGTH) -> str:
    """Build a title from the first few meaningful words of the text."""
    cleaned = re.sub(r"[^\w\s]", "", text.strip())[:100]
    words = [word for word in cleaned.split() if len(word) > 2][:4]
    if not words:
        return FALLBACK_TITLE
    return " ".join(word[:1].upper() + word[1:].lower() for word in words)[:max_length]


class TitleGenerator:
    """Asks the model for a 2-5 word title; never raises."""

    def __init__(self, client_factory: Callable[[ApiConfig, Optional[str]], ChatClient], max_length: int = MAX_TITLE_LENGTH) -> None:
        self._client_factory = client_factory
        self._max_length = max_length

    async def generate(self, text: str, config: ApiConfig, provider_name: Optional[str] = None) -> str:
        prompt = f'Generate a very short title (2-5 words) that summarizes the topic or main point:\n\n"{text[:MAX_SOURCE_LENGTH]}"'
        messages = [Message.system(SYSTEM_PROMPT), Message.user(prompt)]
        try:
            async with self._client_factory(config.with_overrides(temperature=0.3, max_tokens=20), provider_name) as client:
                client.validate_config()
                title = (await client.chat_completion(messages)).strip()
        except (ProviderError, ConfigError) as e:
            logger.warning(f"Title generation failed, using fallback: {e.message}")
            return simple_title(text, self._max_length)

        title = re.sub(r"['\"]", "", title)[: self._max_length].strip()
        return title or FALLBACK_TITLE
