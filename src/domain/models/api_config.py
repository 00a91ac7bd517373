"""Provider call configuration, passed by value into every client call."""

from dataclasses import dataclass, replace
from typing import Any, Optional


@dataclass(frozen=True)
class ApiConfig:
    """Everything a chat client needs to talk to one provider/model.

    Instances are immutable snapshots; a turn uses the same instance from
    start to end.
    """

    provider: str
    endpoint: str
    api_key: str
    model: str
    temperature: float = 0.7
    max_tokens: Optional[int] = 2000
    top_p: float = 1.0
    frequency_penalty: float = 0.0
    presence_penalty: float = 0.0
    system_prompt: str = ""

    # Variant specific
    azure_api_version: Optional[str] = None
    reasoning_effort: Optional[str] = None
    verbosity: Optional[str] = None

    def with_overrides(self, **changes: Any) -> "ApiConfig":
        """Return a copy with the given fields replaced."""
        return replace(self, **changes)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary for storage."""
        data: dict[str, Any] = {
            "provider": self.provider,
            "endpoint": self.endpoint,
            "apiKey": self.api_key,
            "model": self.model,
            "temperature": self.temperature,
            "maxTokens": self.max_tokens,
            "topP": self.top_p,
            "frequencyPenalty": self.frequency_penalty,
            "presencePenalty": self.presence_penalty,
            "systemPrompt": self.system_prompt,
        }
        if self.azure_api_version:
            data["azureApiVersion"] = self.azure_api_version
        if self.reasoning_effort:
            data["reasoningEffort"] = self.reasoning_effort
        if self.verbosity:
            data["verbosity"] = self.verbosity
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ApiConfig":
        """Deserialize from dictionary."""
        return cls(
            provider=data.get("provider", ""),
            endpoint=data.get("endpoint", ""),
            api_key=data.get("apiKey", ""),
            model=data.get("model", ""),
            temperature=data.get("temperature", 0.7),
            max_tokens=data.get("maxTokens", 2000),
            top_p=data.get("topP", 1.0),
            frequency_penalty=data.get("frequencyPenalty", 0.0),
            presence_penalty=data.get("presencePenalty", 0.0),
            system_prompt=data.get("systemPrompt", ""),
            azure_api_version=data.get("azureApiVersion"),
            reasoning_effort=data.get("reasoningEffort"),
            verbosity=data.get("verbosity"),
        )
