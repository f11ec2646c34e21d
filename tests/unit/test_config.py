"""Tests for configuration loading and management."""

from pathlib import Path

import pytest

from warehouse.config import Config, get_config, reload_config, reset_config
from warehouse.exceptions import ConfigurationError
from warehouse.models import ProductDefinition, WarehouseSettings
from warehouse.models.settings import PRODUCTION_URL, SANDBOX_URL

SHIPPED_CONFIG = Path(__file__).resolve().parents[2] / "config" / "warehouse.yaml"

MINIMAL_YAML = """
bundle_id: com.example.app
products:
  - id: com.app.pro
    title: Pro Upgrade
"""


@pytest.fixture
def config_file(tmp_path):
    """Write a YAML document and return its path."""

    def write(content: str) -> str:
        path = tmp_path / "warehouse.yaml"
        path.write_text(content)
        return str(path)

    return write


@pytest.fixture(autouse=True)
def reset_singleton():
    reset_config()
    yield
    reset_config()


class TestShippedConfiguration:
    """Test the configuration file shipped with the project."""

    @pytest.fixture
    def config(self):
        return Config(str(SHIPPED_CONFIG))

    def test_config_loads_successfully(self, config):
        """Test that the shipped configuration is valid."""
        assert config.config_path == SHIPPED_CONFIG
        assert config.bundle_id == "com.example.app"

    def test_products_are_configured(self, config):
        assert config.product_identifiers == ["com.app.pro", "com.app.themes"]
        assert [p.id for p in config.products] == ["com.app.pro", "com.app.themes"]

    def test_validation_defaults_to_production_with_retry(self, config):
        assert config.validation.environment == "production"
        assert config.validation.retry_on_environment_mismatch is True
        assert config.validation.timeout_seconds == 30

    def test_pubsub_disabled(self, config):
        assert config.pubsub.enabled is False


class TestConfigurationLoading:
    """Test loading from explicit paths and the environment."""

    def test_minimal_config_uses_defaults(self, config_file):
        """Omitted sections take their defaults."""
        config = Config(config_file(MINIMAL_YAML))

        assert config.validation.production_url == PRODUCTION_URL
        assert config.validation.sandbox_url == SANDBOX_URL
        assert config.validation.url_for("sandbox") == SANDBOX_URL
        assert config.validation.validate_restored_transactions is True
        assert config.storage_path is None
        assert config.storage_key == "WarehouseStorageKey"
        assert config.receipt_path is None
        assert config.emulator_settings.bundle_id is None

    def test_product_identifiers_fall_back_to_catalog(self, config_file):
        config = Config(config_file(MINIMAL_YAML))

        assert config.product_identifiers == ["com.app.pro"]

    def test_env_var_selects_config(self, config_file, monkeypatch):
        monkeypatch.setenv("WAREHOUSE_CONFIG", config_file(MINIMAL_YAML))

        config = Config()

        assert config.bundle_id == "com.example.app"

    def test_from_settings_has_no_path(self):
        settings = WarehouseSettings(products=[ProductDefinition(id="com.app.pro")])

        config = Config.from_settings(settings)

        assert config.config_path is None
        assert config.settings is settings
        assert config.product_identifiers == ["com.app.pro"]

    def test_reload_picks_up_changes(self, config_file):
        path = config_file(MINIMAL_YAML)
        config = Config(path)

        Path(path).write_text(MINIMAL_YAML.replace("com.example.app", "com.example.other"))
        config.reload()

        assert config.bundle_id == "com.example.other"


class TestConfigurationErrors:
    """Test invalid configuration handling."""

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError, match="not found"):
            Config(str(tmp_path / "missing.yaml"))

    def test_empty_file(self, config_file):
        with pytest.raises(ConfigurationError, match="empty"):
            Config(config_file(""))

    def test_invalid_yaml(self, config_file):
        with pytest.raises(ConfigurationError, match="parse"):
            Config(config_file("bundle_id: [unclosed"))

    def test_non_mapping_root(self, config_file):
        with pytest.raises(ConfigurationError, match="mapping"):
            Config(config_file("- a\n- b\n"))

    def test_invalid_environment(self, config_file):
        """Validation errors are reported as ConfigurationError."""
        with pytest.raises(ConfigurationError, match="validation failed"):
            Config(config_file("validation:\n  environment: staging\n"))

    def test_non_positive_timeout(self, config_file):
        with pytest.raises(ConfigurationError):
            Config(config_file("validation:\n  timeout_seconds: 0\n"))


class TestConfigSingleton:
    """Test the global configuration instance."""

    def test_get_config_returns_same_instance(self, config_file):
        path = config_file(MINIMAL_YAML)

        assert get_config(path) is get_config()

    def test_reset_config_forgets_instance(self, config_file):
        path = config_file(MINIMAL_YAML)
        first = get_config(path)

        reset_config()

        assert get_config(path) is not first

    def test_reload_config_without_instance_loads_default(self, config_file, monkeypatch):
        monkeypatch.setenv("WAREHOUSE_CONFIG", config_file(MINIMAL_YAML))

        reload_config()

        assert get_config().bundle_id == "com.example.app"
