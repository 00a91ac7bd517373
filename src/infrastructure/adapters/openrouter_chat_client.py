"""OpenRouter chat client.

OpenRouter is OpenAI-compatible but reports model reasoning in
`delta.reasoning` in addition to (or instead of) `delta.reasoning_content`.
"""

from typing import Any, Optional

from .openai_chat_client import OpenAiChatClient


class OpenRouterChatClient(OpenAiChatClient):
    VARIANT = "openrouter"

    def _reasoning_from_delta(self, delta: dict[str, Any]) -> Optional[str]:
        reasoning = delta.get("reasoning")
        if isinstance(reasoning, str) and reasoning.strip():
            return reasoning
        content = delta.get("reasoning_content")
        if isinstance(content, str) and content.strip():
            return content
        return None
