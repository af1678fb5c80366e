"""
Configuration management for SocialPulse Media.

Settings are resolved once into an immutable GatewayConfiguration: defaults,
then the optional YAML file, then environment variables (env takes precedence).
"""

import logging
import os
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from types import MappingProxyType
from typing import Mapping, Optional

import yaml


logger = logging.getLogger(__name__)

GLOBAL_CONFIG_DIR = Path.home() / ".socialpulse"
GLOBAL_CONFIG_FILE = GLOBAL_CONFIG_DIR / "config.yaml"

DEFAULT_PRIMARY = "gemini"

# Backend id -> environment variable prefix
ENV_PREFIXES = {
    "gemini": "GEMINI",
    "kie-ai": "KIE_AI",
    "openai": "OPENAI",
}

# Backend defaults that differ from BackendSettings defaults
PROVIDER_DEFAULTS = {
    "gemini": {"default_model": "gemini-2.0-flash-preview-image-generation"},
    "kie-ai": {"default_model": "google/nano-banana"},
    "openai": {"default_model": "dall-e-3"},
}

_INT_FIELDS = ("polling_interval_ms", "max_wait_time_ms", "poll_retries")


@dataclass(frozen=True)
class BackendSettings:
    """Settings for a single image backend."""

    api_key: str = ""
    default_model: Optional[str] = None
    base_url: Optional[str] = None
    polling_interval_ms: int = 5000  # Async backends only
    max_wait_time_ms: int = 300000  # Async backends only
    poll_retries: int = 0  # Transport retries per poll attempt; 0 fails fast
    request_timeout: float = 120.0  # seconds, per HTTP call

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    @property
    def polling_interval(self) -> float:
        """Polling interval in seconds."""
        return self.polling_interval_ms / 1000.0

    @property
    def max_wait_time(self) -> float:
        """Max wait time in seconds."""
        return self.max_wait_time_ms / 1000.0

    @classmethod
    def from_dict(cls, data: dict, base: Optional["BackendSettings"] = None) -> "BackendSettings":
        base = base or cls()
        updates = {}
        for f in fields(cls):
            if data.get(f.name) is None:
                continue
            value = data[f.name]
            if f.name in _INT_FIELDS:
                value = _parse_int(value, f.name, getattr(base, f.name))
            elif f.name == "request_timeout":
                value = _parse_float(value, f.name, base.request_timeout)
            else:
                value = str(value)
            updates[f.name] = value
        return replace(base, **updates)

    def merge_env(self, prefix: str, environ: Mapping[str, str]) -> "BackendSettings":
        """Merge with environment variables (env takes precedence)."""
        env = {
            "api_key": environ.get(f"{prefix}_API_KEY"),
            "default_model": environ.get(f"{prefix}_DEFAULT_MODEL"),
            "base_url": environ.get(f"{prefix}_BASE_URL"),
            "polling_interval_ms": environ.get(f"{prefix}_POLLING_INTERVAL"),
            "max_wait_time_ms": environ.get(f"{prefix}_MAX_WAIT_TIME"),
            "poll_retries": environ.get(f"{prefix}_POLL_RETRIES"),
            "request_timeout": environ.get(f"{prefix}_REQUEST_TIMEOUT"),
        }
        return BackendSettings.from_dict({k: v for k, v in env.items() if v}, base=self)

    def to_dict(self) -> dict:
        return {f.name: getattr(self, f.name) for f in fields(self)}


def _parse_int(value, name: str, default: int) -> int:
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        logger.warning(f"Ignoring invalid {name}={value!r}, using {default}")
        return default
    if parsed < 0:
        logger.warning(f"Ignoring negative {name}={value!r}, using {default}")
        return default
    return parsed


def _parse_float(value, name: str, default: float) -> float:
    try:
        parsed = float(value)
    except (TypeError, ValueError):
        logger.warning(f"Ignoring invalid {name}={value!r}, using {default}")
        return default
    return parsed if parsed > 0 else default


def _default_providers() -> dict:
    return {pid: BackendSettings(**defaults) for pid, defaults in PROVIDER_DEFAULTS.items()}


@dataclass(frozen=True)
class GatewayConfiguration:
    """Complete, immutable gateway configuration."""

    primary: str = DEFAULT_PRIMARY
    fallback: Optional[str] = None
    providers: Mapping[str, BackendSettings] = field(default_factory=_default_providers)

    def __post_init__(self):
        object.__setattr__(self, "providers", MappingProxyType(dict(self.providers)))

    def settings_for(self, provider_id: str) -> BackendSettings:
        """Settings for a backend; unconfigured defaults for unknown ids."""
        return self.providers.get(provider_id) or BackendSettings()

    def is_configured(self, provider_id: str) -> bool:
        return self.settings_for(provider_id).configured

    def configured_providers(self) -> list[str]:
        """Backend ids that have a credential."""
        return [pid for pid, settings in self.providers.items() if settings.configured]

    @classmethod
    def from_dict(cls, data: dict) -> "GatewayConfiguration":
        providers = _default_providers()
        for pid, values in (data.get("providers") or {}).items():
            providers[pid] = BackendSettings.from_dict(values or {}, base=providers.get(pid))
        return cls(
            primary=data.get("primary") or DEFAULT_PRIMARY,
            fallback=data.get("fallback") or None,
            providers=providers,
        )

    @classmethod
    def load(
        cls,
        config_path: Optional[Path] = None,
        environ: Optional[Mapping[str, str]] = None,
    ) -> "GatewayConfiguration":
        """Load configuration from file and environment.

        Never raises for missing credentials: a backend without an API key is
        simply unconfigured, and that is checked per call.
        """
        config_path = config_path or GLOBAL_CONFIG_FILE
        environ = os.environ if environ is None else environ

        data = {}
        if config_path.exists():
            with open(config_path) as f:
                data = yaml.safe_load(f) or {}

        config = cls.from_dict(data)

        # Merge environment variables (they take precedence)
        providers = dict(config.providers)
        for pid, prefix in ENV_PREFIXES.items():
            providers[pid] = providers.get(pid, BackendSettings()).merge_env(prefix, environ)

        loaded = cls(
            primary=environ.get("IMAGE_PROVIDER") or config.primary,
            fallback=environ.get("IMAGE_PROVIDER_FALLBACK") or config.fallback,
            providers=providers,
        )
        logger.debug(
            f"Loaded gateway config: primary={loaded.primary} fallback={loaded.fallback} "
            f"configured={loaded.configured_providers()}"
        )
        return loaded

    def save(self, config_path: Optional[Path] = None) -> None:
        """Save configuration to file."""
        config_path = config_path or GLOBAL_CONFIG_FILE
        config_path.parent.mkdir(parents=True, exist_ok=True)

        data = {
            "primary": self.primary,
            "fallback": self.fallback,
            "providers": {pid: settings.to_dict() for pid, settings in self.providers.items()},
        }

        with open(config_path, "w") as f:
            yaml.dump(data, f, default_flow_style=False)

    def validate(self) -> list[str]:
        """Validate configuration and return list of issues."""
        issues = []

        if not self.is_configured(self.primary):
            prefix = ENV_PREFIXES.get(self.primary, self.primary.upper())
            issues.append(f"Primary provider '{self.primary}' has no API key ({prefix}_API_KEY)")

        if self.fallback and not self.is_configured(self.fallback):
            prefix = ENV_PREFIXES.get(self.fallback, self.fallback.upper())
            issues.append(f"Fallback provider '{self.fallback}' has no API key ({prefix}_API_KEY)")

        return issues
