"""Configuration management - loads warehouse.yaml and environment variables."""

import os
from pathlib import Path
from typing import Optional

import yaml
from pydantic import ValidationError

from warehouse.exceptions import ConfigurationError
from warehouse.models import (
    EmulatorSettings,
    ProductDefinition,
    PubSubSettings,
    ValidationSettings,
    WarehouseSettings,
)

DEFAULT_CONFIG_PATH = "config/warehouse.yaml"


class Config:
    """Application configuration loader and manager.

    Loads warehouse.yaml and provides validated access to:
    - Product identifiers and the static product catalog
    - Receipt validation endpoints
    - Entitlement storage and local receipt locations
    - Event forwarding and emulator settings
    """

    def __init__(self, config_path: Optional[str] = None):
        """Initialize configuration loader.

        Args:
            config_path: Path to warehouse.yaml. If not provided, uses the
                WAREHOUSE_CONFIG env var or defaults to ./config/warehouse.yaml
        """
        self._config_path: Optional[Path] = self._resolve_config_path(config_path)
        self._settings: Optional[WarehouseSettings] = None
        self._load_config()

    @classmethod
    def from_settings(cls, settings: WarehouseSettings) -> "Config":
        """Build a configuration from already validated settings (no file)."""
        config = cls.__new__(cls)
        config._config_path = None
        config._settings = settings
        return config

    def _resolve_config_path(self, config_path: Optional[str]) -> Path:
        if config_path:
            return Path(config_path)

        env_path = os.getenv("WAREHOUSE_CONFIG")
        if env_path:
            return Path(env_path)

        return Path(DEFAULT_CONFIG_PATH)

    def _load_config(self) -> None:
        """Load and validate warehouse.yaml configuration."""
        if self._config_path is None:
            return

        if not self._config_path.exists():
            raise ConfigurationError(
                f"Configuration file not found: {self._config_path}\n"
                f"Please create {DEFAULT_CONFIG_PATH} or set WAREHOUSE_CONFIG environment variable"
            )

        try:
            with open(self._config_path, encoding="utf-8") as f:
                raw_config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Failed to parse YAML configuration: {e}")

        if not raw_config:
            raise ConfigurationError(f"Configuration file is empty: {self._config_path}")
        if not isinstance(raw_config, dict):
            raise ConfigurationError(
                f"Configuration root must be a mapping: {self._config_path}"
            )

        try:
            self._settings = WarehouseSettings(**raw_config)
        except ValidationError as e:
            raise ConfigurationError(f"Configuration validation failed:\n{e}")

    @property
    def settings(self) -> WarehouseSettings:
        """Get validated warehouse settings."""
        if self._settings is None:
            raise ConfigurationError("Configuration not loaded")
        return self._settings

    @property
    def config_path(self) -> Optional[Path]:
        return self._config_path

    @property
    def bundle_id(self) -> str:
        return self.settings.bundle_id

    @property
    def product_identifiers(self) -> list[str]:
        """Product identifiers to retrieve at startup.

        Falls back to the IDs of the static catalog when none are listed.
        """
        if self.settings.product_identifiers:
            return list(self.settings.product_identifiers)
        return [product.id for product in self.settings.products]

    @property
    def products(self) -> list[ProductDefinition]:
        return list(self.settings.products)

    @property
    def validation(self) -> ValidationSettings:
        return self.settings.validation

    @property
    def storage_path(self) -> Optional[str]:
        return self.settings.storage.path

    @property
    def storage_key(self) -> str:
        return self.settings.storage.key

    @property
    def receipt_path(self) -> Optional[str]:
        return self.settings.receipt.path

    @property
    def pubsub(self) -> PubSubSettings:
        return self.settings.events.pubsub

    @property
    def emulator_settings(self) -> EmulatorSettings:
        return self.settings.emulator

    def reload(self) -> None:
        """Reload configuration from disk."""
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


def reload_config() -> None:
    """Reload global configuration from disk."""
    global _config_instance
    if _config_instance:
        _config_instance.reload()
    else:
        _config_instance = Config()


def reset_config() -> None:
    """Forget the global configuration instance (useful for testing)."""
    global _config_instance
    _config_instance = None
