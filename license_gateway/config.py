"""Configuration management - loads settings.yaml and environment secrets."""

import os
from pathlib import Path
from typing import Mapping, Optional

import yaml
from pydantic import ValidationError

from license_gateway.models.settings import GatewaySettings

TRUE_VALUES = ("1", "true", "yes", "on")


class ConfigurationError(Exception):
    """Raised when configuration is invalid or missing."""

    pass


class Config:
    """Application configuration loader.

    Loads settings.yaml, resolves the Stripe mode and the secrets for that
    mode from the environment, and exposes the result as a frozen
    GatewaySettings value that is handed to every component.
    """

    def __init__(
        self,
        config_path: Optional[str] = None,
        environ: Optional[Mapping[str, str]] = None,
    ):
        """Initialize configuration loader.

        Args:
            config_path: Path to settings.yaml. If not provided, uses CONFIG_PATH env var
                        or defaults to ./config/settings.yaml
            environ: Environment mapping (defaults to os.environ)
        """
        self._environ = environ if environ is not None else os.environ
        self._config_path = self._resolve_config_path(config_path)
        self._settings: Optional[GatewaySettings] = None
        self._load_config()

    def _resolve_config_path(self, config_path: Optional[str]) -> Path:
        """Resolve configuration file path from argument, env var, or default."""
        if config_path:
            return Path(config_path)

        env_path = self._environ.get("CONFIG_PATH")
        if env_path:
            return Path(env_path)

        return Path("config/settings.yaml")

    def _load_config(self) -> None:
        """Load settings.yaml, apply environment overrides and validate."""
        if not self._config_path.exists():
            raise ConfigurationError(
                f"Configuration file not found: {self._config_path}\n"
                f"Please create config/settings.yaml or set CONFIG_PATH environment variable"
            )

        try:
            with open(self._config_path, encoding="utf-8") as f:
                raw_config = yaml.safe_load(f) or {}

            if not isinstance(raw_config, dict):
                raise ConfigurationError(f"Configuration root must be a mapping: {self._config_path}")

            self._settings = GatewaySettings(**self._apply_environment(raw_config))

        except yaml.YAMLError as e:
            raise ConfigurationError(f"Failed to parse YAML configuration: {e}")
        except ValidationError as e:
            raise ConfigurationError(f"Configuration validation failed:\n{e}")

    def _apply_environment(self, raw_config: dict) -> dict:
        """Merge mode selection and secrets from the environment into raw settings."""
        env = self._environ
        merged = dict(raw_config)

        stripe_section = dict(merged.get("stripe") or {})
        if env.get("STRIPE_MODE"):
            stripe_section["mode"] = env["STRIPE_MODE"].strip().lower()
        if env.get("FORCE_TEST_MODE", "").strip().lower() in TRUE_VALUES:
            stripe_section["mode"] = "test"
        merged["stripe"] = stripe_section

        prefix = "TEST_" if stripe_section.get("mode") == "test" else ""
        merged["credentials"] = {
            "secret_key": env.get(f"{prefix}STRIPE_SECRET_KEY") or None,
            "publishable_key": env.get(f"{prefix}STRIPE_PUBLISHABLE_KEY") or None,
            "webhook_secret": env.get(f"{prefix}STRIPE_WEBHOOK_SECRET") or None,
        }

        notifications = dict(merged.get("notifications") or {})
        if env.get("RESEND_API_KEY"):
            notifications["resend_api_key"] = env["RESEND_API_KEY"]
        if env.get("ADMIN_EMAIL"):
            notifications["recipient"] = env["ADMIN_EMAIL"]
        merged["notifications"] = notifications

        chat = dict(merged.get("chat") or {})
        if env.get("OPENAI_API_KEY"):
            chat["api_key"] = env["OPENAI_API_KEY"]
        merged["chat"] = chat

        return merged

    @property
    def settings(self) -> GatewaySettings:
        """Get validated settings."""
        if self._settings is None:
            raise ConfigurationError("Configuration not loaded")
        return self._settings

    @property
    def config_path(self) -> Path:
        """Get path to configuration file."""
        return self._config_path


_config_instance: Optional[Config] = None


def get_config(config_path: Optional[str] = None) -> Config:
    """Get global configuration instance (singleton).

    Args:
        config_path: Optional path to configuration file (only used on first call)

    Returns:
        Config instance
    """
    global _config_instance
    if _config_instance is None:
        _config_instance = Config(config_path)
    return _config_instance


def reset_config() -> None:
    """Drop the global configuration instance (for testing)."""
    global _config_instance
    _config_instance = None
