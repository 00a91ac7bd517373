"""Shared state for the models the user has enabled and the ones currently selected.

Every consumer subscribes to a single ModelAvailability instance and is told
when the set of available models or a selection changes.
"""

import logging
from typing import Callable, Iterable, Optional

from application.providers import USER_ENDPOINT_PROVIDERS, get_provider
from domain.models import ApiConfig, AvailableModel
from domain.repositories import PlaygroundRepository, StoreCollection

logger = logging.getLogger(__name__)

Subscriber = Callable[["ModelAvailability"], None]

# Call parameters used for generator requests made with the system model
SYSTEM_MODEL_TEMPERATURE = 0.7
SYSTEM_MODEL_PROMPT = "You are a helpful assistant."


class ModelAvailability:
    """Available models plus the chat (current) and system model selections.

    Subscribers are plain callables invoked with this instance, only when
    something actually changed. A selection whose model is no longer
    available is cleared.
    """

    def __init__(self, models: Iterable[AvailableModel] = ()) -> None:
        self._models: tuple[AvailableModel, ...] = tuple(models)
        self._current: Optional[AvailableModel] = None
        self._system: Optional[AvailableModel] = None
        self._subscribers: list[Subscriber] = []

    @property
    def models(self) -> tuple[AvailableModel, ...]:
        return self._models

    @property
    def has_models(self) -> bool:
        return len(self._models) > 0

    @property
    def current(self) -> Optional[AvailableModel]:
        return self._current

    @property
    def system_model(self) -> Optional[AvailableModel]:
        return self._system

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register a change callback. Returns a callable that unregisters it."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def is_available(self, model: Optional[AvailableModel]) -> bool:
        return model is not None and any(m.id == model.id for m in self._models)

    def set_available_models(self, models: Iterable[AvailableModel]) -> bool:
        """Replace the available set. Returns True when anything changed."""
        models = tuple(models)
        changed = [m.id for m in models] != [m.id for m in self._models]
        self._models = models

        if self._current is not None and not self.is_available(self._current):
            logger.info(f"Selected model {self._current.id} is no longer available")
            self._current = None
            changed = True
        if self._system is not None and not self.is_available(self._system):
            logger.info(f"System model {self._system.id} is no longer available")
            self._system = None
            changed = True

        if changed:
            self._notify()
        return changed

    def select(self, model: Optional[AvailableModel]) -> bool:
        """Select the chat model (None clears). Returns True when the selection changed."""
        return self._select("_current", model)

    def select_system_model(self, model: Optional[AvailableModel]) -> bool:
        """Select the model used for title, instruction and tool generation."""
        return self._select("_system", model)

    async def refresh(self, repository: PlaygroundRepository) -> bool:
        """Reload the available set from storage."""
        records = await repository.list_async(StoreCollection.AVAILABLE_MODELS)
        return self.set_available_models(AvailableModel.from_dict(record) for record in records)

    def _select(self, attribute: str, model: Optional[AvailableModel]) -> bool:
        if model is not None and not self.is_available(model):
            raise ValueError(f"Model {model.id} is not available")
        previous: Optional[AvailableModel] = getattr(self, attribute)
        if (previous.id if previous else None) == (model.id if model else None):
            return False
        setattr(self, attribute, model)
        self._notify()
        return True

    def _notify(self) -> None:
        for callback in list(self._subscribers):
            callback(self)


def api_config_for(model: Optional[AvailableModel], keys: dict[str, str], endpoints: dict[str, str]) -> Optional[ApiConfig]:
    """Build a call configuration for a provider/model from saved keys and endpoints.

    Returns None for an unknown provider, or when no endpoint is available.
    Azure OpenAI and Custom never fall back to a catalog endpoint.
    """
    if model is None:
        return None
    provider = get_provider(model.provider)
    if provider is None:
        logger.warning(f"Unknown provider for model {model.id}")
        return None

    endpoint = endpoints.get(provider.name) or ("" if provider.name in USER_ENDPOINT_PROVIDERS else provider.endpoint)
    if not endpoint:
        return None

    return ApiConfig(
        provider=provider.name,
        endpoint=endpoint,
        api_key=keys.get(provider.name, ""),
        model=model.model,
        temperature=SYSTEM_MODEL_TEMPERATURE,
        max_tokens=None,
        system_prompt=SYSTEM_MODEL_PROMPT,
    )
