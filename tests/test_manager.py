"""Tests for the provider manager and its fallback rules."""

from unittest.mock import patch

from socialpulse_media.config import GatewayConfiguration
from socialpulse_media.errors import ProviderError
from socialpulse_media.generators.manager import ProviderManager
from socialpulse_media.generators.registry import ProviderRegistry
from socialpulse_media.models import GenerationResult

from conftest import FakeGenerator


def build_manager(primary, fallback=None, primary_id="kie-ai", fallback_id="gemini", extra=()):
    """Manager whose registry serves pre-built fake generators."""
    generators = {primary_id: primary}
    if fallback is not None:
        generators[fallback_id] = fallback
    for generator in extra:
        generators[generator.provider_id] = generator

    config = GatewayConfiguration(primary=primary_id, fallback=fallback_id if fallback is not None else None)
    factories = {pid: (lambda s, g=g: g) for pid, g in generators.items()}
    return ProviderManager(config=config, registry=ProviderRegistry(config, factories=factories))


def failure(message="backend exploded", provider="kie-ai"):
    return GenerationResult.failure(ProviderError(message, provider=provider))


class TestPrimary:
    def test_primary_success_skips_fallback(self, request_basic):
        primary = FakeGenerator("kie-ai")
        fallback = FakeGenerator("gemini")
        manager = build_manager(primary, fallback)

        result = manager.generate_image(request_basic)

        assert result.success
        assert result.provider_metadata["provider"] == "kie-ai"
        assert len(primary.calls) == 1
        assert fallback.calls == []

    def test_primary_failure_without_fallback(self, request_basic):
        primary = FakeGenerator("kie-ai", outcome=failure())
        manager = build_manager(primary)

        result = manager.generate_image(request_basic)

        assert not result.success
        assert result.error == "backend exploded"


class TestFallback:
    def test_primary_failure_uses_fallback(self, request_basic):
        primary = FakeGenerator("kie-ai", outcome=failure())
        fallback = FakeGenerator("gemini")
        manager = build_manager(primary, fallback)

        result = manager.generate_image(request_basic)

        assert result.success
        assert result.provider_metadata["provider"] == "gemini"
        assert len(primary.calls) == 1
        assert fallback.calls == [request_basic]

    def test_primary_exception_uses_fallback(self, request_basic):
        primary = FakeGenerator("kie-ai", outcome=RuntimeError("bug"))
        fallback = FakeGenerator("gemini")

        result = build_manager(primary, fallback).generate_image(request_basic)

        assert result.success
        assert result.provider_metadata["provider"] == "gemini"

    def test_unconfigured_primary_uses_fallback(self, request_basic):
        primary = FakeGenerator("kie-ai", configured=False)
        fallback = FakeGenerator("gemini")

        manager = build_manager(primary, fallback)

        with patch.object(primary, "generate", wraps=primary.generate) as primary_generate:
            result = manager.generate_image(request_basic)

        primary_generate.assert_not_called()
        assert result is fallback.outcome
        assert len(fallback.calls) == 1

    def test_unconfigured_primary_without_fallback(self, request_basic):
        primary = FakeGenerator("kie-ai", configured=False)

        result = build_manager(primary).generate_image(request_basic)

        assert not result.success
        assert result.error_kind == "ConfigurationError"
        assert result.error == "No configured image provider. Please set up kie-ai or a fallback provider."

    def test_unconfigured_fallback_is_skipped(self, request_basic):
        primary = FakeGenerator("kie-ai", outcome=failure())
        fallback = FakeGenerator("gemini", configured=False)

        result = build_manager(primary, fallback).generate_image(request_basic)

        assert result.error == "backend exploded"
        assert fallback.calls == []

    def test_fallback_failure_is_final(self, request_basic):
        primary = FakeGenerator("kie-ai", outcome=failure("primary down"))
        fallback = FakeGenerator("gemini", outcome=failure("fallback down", provider="gemini"))

        result = build_manager(primary, fallback).generate_image(request_basic)

        assert not result.success
        assert result.error == "fallback down"
        assert len(primary.calls) == 1
        assert len(fallback.calls) == 1

    def test_fallback_result_returned_unchanged(self, request_basic):
        expected = GenerationResult.ok(image_url="https://gemini.example/x.png", provider="gemini", model="m")
        primary = FakeGenerator("kie-ai", outcome=failure())
        fallback = FakeGenerator("gemini", outcome=expected)

        result = build_manager(primary, fallback).generate_image(request_basic)

        assert result is expected

    def test_fallback_same_as_primary_runs_once_more(self, request_basic):
        primary = FakeGenerator("kie-ai", outcome=failure())
        config = GatewayConfiguration(primary="kie-ai", fallback="kie-ai")
        registry = ProviderRegistry(config, factories={"kie-ai": lambda s: primary})

        result = ProviderManager(config=config, registry=registry).generate_image(request_basic)

        assert not result.success
        assert len(primary.calls) == 2


class TestUnknownProviders:
    def test_unknown_primary_uses_fallback(self, request_basic):
        fallback = FakeGenerator("gemini")
        config = GatewayConfiguration(primary="midjourney", fallback="gemini")
        registry = ProviderRegistry(config, factories={"gemini": lambda s: fallback})

        result = ProviderManager(config=config, registry=registry).generate_image(request_basic)

        assert result.success
        assert len(fallback.calls) == 1

    def test_unknown_primary_without_fallback(self, request_basic):
        config = GatewayConfiguration(primary="midjourney")
        registry = ProviderRegistry(config, factories={"gemini": lambda s: FakeGenerator("gemini")})

        result = ProviderManager(config=config, registry=registry).generate_image(request_basic)

        assert not result.success
        assert result.error_kind == "UnknownProviderError"

    def test_unknown_fallback_is_ignored(self, request_basic):
        primary = FakeGenerator("kie-ai", outcome=failure())
        config = GatewayConfiguration(primary="kie-ai", fallback="midjourney")
        registry = ProviderRegistry(config, factories={"kie-ai": lambda s: primary})
        manager = ProviderManager(config=config, registry=registry)

        assert manager.get_fallback_provider() is None
        assert manager.generate_image(request_basic).error == "backend exploded"


def test_available_providers(request_basic):
    manager = build_manager(
        FakeGenerator("kie-ai"),
        FakeGenerator("gemini", configured=False),
    )

    descriptors = {d.provider_id: d.configured for d in manager.available_providers()}

    assert descriptors == {"kie-ai": True, "gemini": False}


def test_manager_uses_registry_config():
    config = GatewayConfiguration(primary="openai")
    registry = ProviderRegistry(config, factories={"openai": lambda s: FakeGenerator("openai")})

    with ProviderManager(registry=registry) as manager:
        assert manager.config is config
        assert manager.get_primary_provider().provider_id == "openai"
