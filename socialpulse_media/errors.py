"""
Error taxonomy for the image generation gateway.

Adapters raise these internally. ImageGenerator.generate() converts every one
of them into a failed GenerationResult, so none crosses the adapter boundary.
"""

from typing import Optional


class GatewayError(Exception):
    """Base exception for gateway errors."""

    def __init__(self, message: str, provider: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.provider = provider

    @property
    def kind(self) -> str:
        return type(self).__name__


class ConfigurationError(GatewayError):
    """A required credential or setting is absent."""
    pass


class UnknownProviderError(ConfigurationError):
    """Backend id has no registered constructor."""
    pass


class UnsupportedModelError(GatewayError):
    """Requested model id is not in the backend's supported list."""
    pass


class NetworkError(GatewayError):
    """Transport-level failure on submit, poll, upload or fetch."""
    pass


class ProviderError(GatewayError):
    """Backend explicitly reported a failure."""
    pass


class GenerationTimeoutError(GatewayError):
    """Polling exceeded the configured max wait time."""
    pass


class EmptyResultError(GatewayError):
    """Backend reported success but supplied no usable image."""
    pass
