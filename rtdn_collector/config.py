"""Configuration management - loads settings.yaml and environment variables."""

import os
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import ValidationError

from rtdn_collector.models import ServiceSettings


class ConfigurationError(Exception):
    """Raised when configuration is invalid."""

    pass


# Environment variable -> settings field. Earlier names win.
ENV_OVERRIDES: dict[str, tuple[str, ...]] = {
    "project_id": ("GOOGLE_CLOUD_PROJECT", "GCP_PROJECT_ID"),
    "subscription_name": ("PUBSUB_SUBSCRIPTION",),
    "max_pull_messages": ("PULL_MAX_MESSAGES",),
    "data_dir": ("DATA_DIR",),
    "storage_backend": ("STORAGE_BACKEND",),
    "display_timezone": ("DISPLAY_TIMEZONE",),
    "credentials_file": ("PLAY_CREDENTIALS_FILE",),
}


class Config:
    """Application configuration loader.

    The settings file is optional: a missing file means "defaults plus
    environment". Environment variables always override file values.
    """

    def __init__(self, config_path: Optional[str] = None):
        """Initialize configuration loader.

        Args:
            config_path: Path to settings.yaml. Falls back to the CONFIG_PATH
                env var, then ./config/settings.yaml
        """
        self._config_path = self._resolve_config_path(config_path)
        self._settings: Optional[ServiceSettings] = None
        self._load_config()

    def _resolve_config_path(self, config_path: Optional[str]) -> Path:
        if config_path:
            return Path(config_path)

        env_path = os.getenv("CONFIG_PATH")
        if env_path:
            return Path(env_path)

        return Path("config/settings.yaml")

    def _read_file(self) -> dict[str, Any]:
        if not self._config_path.exists():
            return {}

        try:
            with open(self._config_path, encoding="utf-8") as f:
                raw_config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Failed to parse YAML configuration: {e}")

        if raw_config is None:
            return {}
        if not isinstance(raw_config, dict):
            raise ConfigurationError(
                f"Configuration file must contain a mapping: {self._config_path}"
            )
        return raw_config

    def _read_env(self) -> dict[str, Any]:
        values: dict[str, Any] = {}
        for field_name, env_names in ENV_OVERRIDES.items():
            for env_name in env_names:
                value = os.getenv(env_name)
                if value:
                    values[field_name] = value
                    break
        return values

    def _load_config(self) -> None:
        """Merge file and environment values and validate them."""
        merged = {**self._read_file(), **self._read_env()}
        try:
            self._settings = ServiceSettings(**merged)
        except ValidationError as e:
            raise ConfigurationError(f"Configuration validation failed:\n{e}")

    @property
    def settings(self) -> ServiceSettings:
        """Get validated settings."""
        if self._settings is None:
            raise ConfigurationError("Configuration not loaded")
        return self._settings

    @property
    def config_path(self) -> Path:
        return self._config_path

    @property
    def project_id(self) -> Optional[str]:
        return self.settings.project_id

    @property
    def subscription_name(self) -> str:
        return self.settings.subscription_name

    @property
    def subscription_path(self) -> str:
        """Fully qualified subscription path.

        Raises:
            ConfigurationError: If no project id is configured
        """
        if not self.project_id:
            raise ConfigurationError("GCP project id is not configured")
        return f"projects/{self.project_id}/subscriptions/{self.subscription_name}"

    @property
    def data_dir(self) -> Path:
        return Path(self.settings.data_dir)

    @property
    def display_timezone(self) -> str:
        return self.settings.display_timezone

    def redacted(self) -> dict[str, str]:
        """Config summary safe to expose on the status endpoint."""
        return {
            "projectId": "***configured***" if self.project_id else "NOT SET",
            "subscription": self.subscription_name,
        }

    def reload(self) -> None:
        """Reload configuration from disk and environment."""
        self._load_config()


_config_instance: Optional[Config] = None


def get_config(config_path: Optional[str] = None) -> Config:
    """Get global configuration instance (singleton).

    Args:
        config_path: Optional path to configuration file (only used on first call)
    """
    global _config_instance
    if _config_instance is None:
        _config_instance = Config(config_path)
    return _config_instance


def reset_config() -> None:
    """Drop the global configuration so the next call re-reads it."""
    global _config_instance
    _config_instance = None
