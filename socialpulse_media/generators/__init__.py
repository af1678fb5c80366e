"""
Image generators for SocialPulse Media.
"""

import logging
from abc import ABC, abstractmethod
from typing import Optional

import httpx

from socialpulse_media.config import BackendSettings
from socialpulse_media.errors import (
    ConfigurationError,
    EmptyResultError,
    GatewayError,
    NetworkError,
    UnsupportedModelError,
)
from socialpulse_media.models import GenerationRequest, GenerationResult, ProviderDescriptor
from socialpulse_media.prompting import enhance_prompt

logger = logging.getLogger(__name__)


class ImageGenerator(ABC):
    """Abstract base class for image generators.

    Subclasses implement `_generate`, raising GatewayError subclasses on
    failure. `generate` is the adapter boundary: it always returns a
    GenerationResult and never raises.
    """

    provider_id: str = ""
    display_name: str = ""
    available_models: tuple[str, ...] = ()
    env_prefix: str = ""
    default_base_url: str = ""

    def __init__(self, settings: Optional[BackendSettings] = None, client: Optional[httpx.Client] = None):
        """
        Initialize the generator.

        Args:
            settings: Backend settings. Unconfigured defaults if not provided.
            client: HTTP client to use. A new one is created (and owned) if not provided.
        """
        self.settings = settings or BackendSettings()
        self.base_url = (self.settings.base_url or self.default_base_url).rstrip("/")
        self._owns_client = client is None
        self._client = client or httpx.Client(timeout=self.settings.request_timeout)

    def is_configured(self) -> bool:
        """Check if the generator has its credential."""
        return self.settings.configured

    def describe(self) -> ProviderDescriptor:
        return ProviderDescriptor(
            provider_id=self.provider_id,
            display_name=self.display_name,
            models=tuple(self.available_models),
            credential_check=self.is_configured,
        )

    def enhance_prompt(self, request: GenerationRequest) -> str:
        return enhance_prompt(request)

    def resolve_model(self, request: GenerationRequest) -> str:
        """Pick the request's model, else the configured default, else the first listed model."""
        model = request.model or self.settings.default_model or self.available_models[0]
        if model not in self.available_models:
            raise UnsupportedModelError(
                f"Unsupported model: {model}. {self.display_name} supports: {', '.join(self.available_models)}",
                provider=self.provider_id,
            )
        return model

    def generate(self, request: GenerationRequest) -> GenerationResult:
        """
        Generate an image from a request.

        Args:
            request: The structured generation request

        Returns:
            GenerationResult. Every failure mode is reported as success=False
            with an error message; nothing is raised.
        """
        try:
            if not self.is_configured():
                raise ConfigurationError(
                    f"{self.display_name} provider is not configured. Please set {self.env_prefix}_API_KEY.",
                    provider=self.provider_id,
                )
            model = self.resolve_model(request)
            result = self._generate(request, model)
            if result.success and not result.has_output:
                raise EmptyResultError(
                    f"{self.display_name} reported success without an image",
                    provider=self.provider_id,
                )
        except GatewayError as e:
            if e.provider is None:
                e.provider = self.provider_id
            logger.warning(f"[{self.provider_id}] {e.kind}: {e.message}")
            return GenerationResult.failure(e)
        except httpx.HTTPError as e:
            logger.warning(f"[{self.provider_id}] transport error: {e}")
            return GenerationResult.failure(
                NetworkError(f"{self.display_name} request failed: {e}", provider=self.provider_id)
            )
        except Exception as e:
            logger.exception(f"[{self.provider_id}] unexpected generation error")
            return GenerationResult.failure(
                GatewayError(f"{self.display_name} generation failed: {e}", provider=self.provider_id)
            )

        logger.info(f"[{self.provider_id}] generated image with model {model}")
        return result

    @abstractmethod
    def _generate(self, request: GenerationRequest, model: str) -> GenerationResult:
        """Backend-specific generation. Raise GatewayError subclasses on failure."""
        pass

    def _error_message(self, response: httpx.Response) -> str:
        """Best-effort error text from a failed response."""
        try:
            data = response.json()
        except ValueError:
            return response.text or f"HTTP {response.status_code}"
        if isinstance(data, dict):
            error = data.get("error")
            if isinstance(error, dict) and error.get("message"):
                return error["message"]
            if isinstance(error, str):
                return error
            if data.get("msg"):
                return data["msg"]
        return response.text

    def close(self):
        """Close the HTTP client."""
        if self._owns_client:
            self._client.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


# Lazy imports to avoid loading all generators at startup
def get_gemini_generator():
    from .gemini import GeminiGenerator
    return GeminiGenerator


def get_kie_generator():
    from .kie import KieAiGenerator
    return KieAiGenerator


def get_openai_generator():
    from .openai import OpenAIGenerator
    return OpenAIGenerator
