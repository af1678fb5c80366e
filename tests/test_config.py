"""Tests for configuration loading."""

import dataclasses
import logging

import pytest
import yaml

from socialpulse_media.config import BackendSettings, GatewayConfiguration


@pytest.fixture
def missing_path(tmp_path):
    return tmp_path / "missing.yaml"


class TestBackendSettings:
    def test_defaults(self):
        settings = BackendSettings()
        assert not settings.configured
        assert settings.polling_interval == 5.0
        assert settings.max_wait_time == 300.0
        assert settings.poll_retries == 0

    def test_merge_env(self):
        settings = BackendSettings().merge_env("KIE_AI", {
            "KIE_AI_API_KEY": "kie-key",
            "KIE_AI_POLLING_INTERVAL": "2000",
            "KIE_AI_MAX_WAIT_TIME": "60000",
            "KIE_AI_POLL_RETRIES": "3",
        })
        assert settings.api_key == "kie-key"
        assert settings.polling_interval == 2.0
        assert settings.max_wait_time == 60.0
        assert settings.poll_retries == 3

    @pytest.mark.parametrize("value", ["soon", "-5", "1.5s"])
    def test_invalid_interval_uses_default(self, caplog, value):
        with caplog.at_level(logging.WARNING):
            settings = BackendSettings().merge_env("KIE_AI", {"KIE_AI_POLLING_INTERVAL": value})

        assert settings.polling_interval_ms == 5000
        assert "polling_interval_ms" in caplog.text

    def test_frozen(self):
        with pytest.raises(dataclasses.FrozenInstanceError):
            BackendSettings().api_key = "changed"


class TestGatewayConfiguration:
    def test_defaults_without_file_or_env(self, missing_path):
        config = GatewayConfiguration.load(missing_path, environ={})

        assert config.primary == "gemini"
        assert config.fallback is None
        assert set(config.providers) == {"gemini", "kie-ai", "openai"}
        assert config.configured_providers() == []
        assert config.settings_for("kie-ai").default_model == "google/nano-banana"

    def test_env(self, missing_path):
        config = GatewayConfiguration.load(missing_path, environ={
            "IMAGE_PROVIDER": "kie-ai",
            "IMAGE_PROVIDER_FALLBACK": "gemini",
            "KIE_AI_API_KEY": "kie-key",
            "GEMINI_API_KEY": "gemini-key",
        })

        assert config.primary == "kie-ai"
        assert config.fallback == "gemini"
        assert config.is_configured("kie-ai")
        assert config.is_configured("gemini")
        assert not config.is_configured("openai")

    def test_env_overrides_file(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(yaml.dump({
            "primary": "openai",
            "fallback": "gemini",
            "providers": {
                "openai": {"api_key": "file-key", "default_model": "dall-e-2"},
                "kie-ai": {"polling_interval_ms": 1000},
            },
        }))

        config = GatewayConfiguration.load(path, environ={
            "IMAGE_PROVIDER": "kie-ai",
            "OPENAI_API_KEY": "env-key",
        })

        assert config.primary == "kie-ai"
        assert config.fallback == "gemini"
        assert config.settings_for("openai").api_key == "env-key"
        assert config.settings_for("openai").default_model == "dall-e-2"
        assert config.settings_for("kie-ai").polling_interval_ms == 1000

    def test_missing_credentials_do_not_raise(self, missing_path):
        config = GatewayConfiguration.load(missing_path, environ={"IMAGE_PROVIDER": "openai"})
        assert not config.is_configured("openai")

    def test_unknown_id_has_unconfigured_settings(self):
        config = GatewayConfiguration()
        assert config.settings_for("midjourney") == BackendSettings()
        assert not config.is_configured("midjourney")

    def test_immutable(self):
        config = GatewayConfiguration()
        with pytest.raises(dataclasses.FrozenInstanceError):
            config.primary = "openai"
        with pytest.raises(TypeError):
            config.providers["openai"] = BackendSettings(api_key="x")

    def test_validate(self, missing_path):
        config = GatewayConfiguration.load(missing_path, environ={
            "IMAGE_PROVIDER": "kie-ai",
            "IMAGE_PROVIDER_FALLBACK": "gemini",
            "GEMINI_API_KEY": "gemini-key",
        })

        issues = config.validate()
        assert len(issues) == 1
        assert "KIE_AI_API_KEY" in issues[0]

    def test_validate_clean(self, missing_path):
        config = GatewayConfiguration.load(missing_path, environ={"GEMINI_API_KEY": "gemini-key"})
        assert config.validate() == []

    def test_save_and_load(self, tmp_path):
        path = tmp_path / "nested" / "config.yaml"
        original = GatewayConfiguration.load(tmp_path / "missing.yaml", environ={
            "IMAGE_PROVIDER": "kie-ai",
            "KIE_AI_API_KEY": "kie-key",
            "KIE_AI_POLL_RETRIES": "2",
        })

        original.save(path)
        loaded = GatewayConfiguration.load(path, environ={})

        assert loaded.primary == "kie-ai"
        assert loaded.settings_for("kie-ai") == original.settings_for("kie-ai")
