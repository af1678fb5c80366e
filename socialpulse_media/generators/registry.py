"""
Provider registry for SocialPulse Media.

Maps backend ids to constructors and caches one instance per id. The first
construction of each id happens under that id's lock, so concurrent first
access builds exactly one instance; later reads are a plain dict lookup.
"""

import logging
import threading
from typing import Callable, Mapping, Optional

from socialpulse_media.config import BackendSettings, GatewayConfiguration
from socialpulse_media.errors import UnknownProviderError
from socialpulse_media.models import ProviderDescriptor

from . import ImageGenerator, get_gemini_generator, get_kie_generator, get_openai_generator

logger = logging.getLogger(__name__)


ProviderFactory = Callable[[BackendSettings], ImageGenerator]


def _lazy(loader) -> ProviderFactory:
    def factory(settings: BackendSettings) -> ImageGenerator:
        return loader()(settings)
    return factory


DEFAULT_FACTORIES: dict[str, ProviderFactory] = {
    "gemini": _lazy(get_gemini_generator),
    "kie-ai": _lazy(get_kie_generator),
    "openai": _lazy(get_openai_generator),
}


class ProviderRegistry:
    """Builds and caches image generators by backend id."""

    def __init__(
        self,
        config: GatewayConfiguration,
        factories: Optional[Mapping[str, ProviderFactory]] = None,
    ):
        """
        Initialize the registry.

        Args:
            config: Gateway configuration; each generator gets its backend's settings
            factories: Backend id -> constructor map (defaults to the built-in backends)
        """
        self.config = config
        self._factories = dict(factories if factories is not None else DEFAULT_FACTORIES)
        self._instances: dict[str, ImageGenerator] = {}
        self._locks = {provider_id: threading.Lock() for provider_id in self._factories}

    @property
    def provider_ids(self) -> list[str]:
        return list(self._factories)

    def __contains__(self, provider_id: str) -> bool:
        return provider_id in self._factories

    def create(self, provider_id: str) -> ImageGenerator:
        """Create a new, uncached instance of a provider."""
        factory = self._factories.get(provider_id)
        if factory is None:
            raise UnknownProviderError(f"Unknown image provider: {provider_id}", provider=provider_id)
        return factory(self.config.settings_for(provider_id))

    def get(self, provider_id: str) -> ImageGenerator:
        """Get the cached instance of a provider, building it on first use."""
        instance = self._instances.get(provider_id)
        if instance is not None:
            return instance

        lock = self._locks.get(provider_id)
        if lock is None:
            raise UnknownProviderError(f"Unknown image provider: {provider_id}", provider=provider_id)

        with lock:
            instance = self._instances.get(provider_id)
            if instance is None:
                logger.debug(f"Creating provider instance: {provider_id}")
                instance = self.create(provider_id)
                self._instances[provider_id] = instance
        return instance

    def describe_all(self) -> list[ProviderDescriptor]:
        """Descriptors for every registered backend."""
        return [self.get(provider_id).describe() for provider_id in self._factories]

    def close(self):
        """Close every constructed instance."""
        for instance in list(self._instances.values()):
            instance.close()
        self._instances.clear()
