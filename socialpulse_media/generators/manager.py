"""
Provider manager for multi-provider image generation.

Selects the configured primary generator and falls back, at most once, to
the configured fallback generator when the primary is unconfigured or fails.
"""

import logging
from pathlib import Path
from typing import Optional

from socialpulse_media.config import GatewayConfiguration
from socialpulse_media.errors import ConfigurationError, GatewayError
from socialpulse_media.models import GenerationRequest, GenerationResult, ProviderDescriptor

from . import ImageGenerator
from .registry import ProviderRegistry

logger = logging.getLogger(__name__)


class ProviderManager:
    """Runs generation requests against the primary provider with one-hop fallback.

    Usage:
        with create_gateway() as manager:
            result = manager.generate_image(GenerationRequest(prompt="Cup of coffee"))
            if result.success:
                print(result.image_url or result.image.mime_type)
            else:
                print(f"Generation failed: {result.error}")
    """

    def __init__(
        self,
        config: Optional[GatewayConfiguration] = None,
        registry: Optional[ProviderRegistry] = None,
    ):
        """
        Initialize the provider manager.

        Args:
            config: Gateway configuration (loaded from file/env if None)
            registry: Provider registry (built from config if None)
        """
        if config is None:
            config = registry.config if registry is not None else GatewayConfiguration.load()
        self.config = config
        self.registry = registry or ProviderRegistry(config)

    def get_primary_provider(self) -> ImageGenerator:
        """Get the primary provider. Raises UnknownProviderError for unregistered ids."""
        return self.registry.get(self.config.primary)

    def get_fallback_provider(self) -> Optional[ImageGenerator]:
        """Get the fallback provider, or None if absent, unknown or unconfigured."""
        fallback_id = self.config.fallback
        if not fallback_id:
            return None
        if fallback_id not in self.registry:
            logger.warning(f"Ignoring unknown fallback provider: {fallback_id}")
            return None

        fallback = self.registry.get(fallback_id)
        if not fallback.is_configured():
            return None
        return fallback

    def generate_image(self, request: GenerationRequest) -> GenerationResult:
        """
        Generate an image with one-hop fallback.

        The fallback runs only when the primary is unconfigured or returns a
        failure, and its result is returned as-is; it is never itself retried.

        Args:
            request: The structured generation request

        Returns:
            GenerationResult from whichever provider ran last. Never raises.
        """
        try:
            primary = self.get_primary_provider()
        except GatewayError as e:
            logger.error(f"Primary provider unavailable: {e.message}")
            return self._fallback_or(request, GenerationResult.failure(e))

        if not primary.is_configured():
            fallback = self.get_fallback_provider()
            if fallback is not None:
                logger.info(
                    f"Primary provider {primary.provider_id} not configured, using fallback {fallback.provider_id}"
                )
                return fallback.generate(request)
            return GenerationResult.failure(ConfigurationError(
                f"No configured image provider. Please set up {primary.provider_id} or a fallback provider.",
                provider=primary.provider_id,
            ))

        result = primary.generate(request)
        if result.success:
            return result

        logger.warning(f"Provider {primary.provider_id} failed: {result.error}")
        return self._fallback_or(request, result)

    def _fallback_or(self, request: GenerationRequest, failed: GenerationResult) -> GenerationResult:
        fallback = self.get_fallback_provider()
        if fallback is None:
            return failed

        logger.info(f"Trying fallback provider {fallback.provider_id}")
        return fallback.generate(request)

    def available_providers(self) -> list[ProviderDescriptor]:
        """Describe every registered provider and whether it is configured."""
        return self.registry.describe_all()

    def close(self):
        """Clean up resources."""
        self.registry.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


def create_gateway(config_path: Optional[Path] = None) -> ProviderManager:
    """Load configuration once and build the registry and manager around it."""
    config = GatewayConfiguration.load(config_path)
    return ProviderManager(config=config, registry=ProviderRegistry(config))
