"""Tests for configuration loading and saving."""

import pytest
import yaml

from bags.core.config import AppConfig, ConfigManager
from bags.core.errors import ConfigError


@pytest.fixture
def clean_env(monkeypatch):
    for key in ("BAGS_CURRENCY", "BAGS_THEME", "BAGS_REFRESH_INTERVAL_SECS"):
        monkeypatch.delenv(key, raising=False)
    return monkeypatch


class TestAppConfig:
    """Test value normalisation."""

    def test_defaults(self):
        config = AppConfig()
        assert config.refresh_interval_secs == 60
        assert config.currency == "usd"
        assert config.theme == "dark"

    def test_refresh_floor(self):
        assert AppConfig(refresh_interval_secs=5).refresh_interval_secs == 30

    def test_currency_lowercased(self):
        assert AppConfig(currency="EUR").currency == "eur"

    def test_non_numeric_interval(self):
        with pytest.raises(ValueError):
            AppConfig(refresh_interval_secs="soon")


class TestConfigManager:
    """Test the YAML file and environment layers."""

    def test_missing_file_written_with_defaults(self, temp_dir, clean_env):
        manager = ConfigManager(config_dir=temp_dir, data_dir=temp_dir)
        config = manager.load()

        assert config == AppConfig()
        with open(manager.config_file) as f:
            assert yaml.safe_load(f) == {
                "refresh_interval_secs": 60, "currency": "usd", "theme": "dark"}

    def test_file_values_loaded(self, temp_dir, clean_env):
        (temp_dir / "config.yaml").write_text("currency: gbp\nrefresh_interval_secs: 120\n")
        config = ConfigManager(config_dir=temp_dir, data_dir=temp_dir).load()
        assert config.currency == "gbp"
        assert config.refresh_interval_secs == 120
        assert config.theme == "dark"

    def test_unknown_keys_ignored(self, temp_dir, clean_env):
        (temp_dir / "config.yaml").write_text("colour: blue\ntheme: light\n")
        config = ConfigManager(config_dir=temp_dir, data_dir=temp_dir).load()
        assert config.theme == "light"

    def test_env_override(self, temp_dir, clean_env):
        (temp_dir / "config.yaml").write_text("currency: gbp\n")
        clean_env.setenv("BAGS_CURRENCY", "jpy")
        clean_env.setenv("BAGS_REFRESH_INTERVAL_SECS", "90")
        config = ConfigManager(config_dir=temp_dir, data_dir=temp_dir).load()
        assert config.currency == "jpy"
        assert config.refresh_interval_secs == 90

    def test_env_interval_floored(self, temp_dir, clean_env):
        clean_env.setenv("BAGS_REFRESH_INTERVAL_SECS", "10")
        config = ConfigManager(config_dir=temp_dir, data_dir=temp_dir).load()
        assert config.refresh_interval_secs == 30

    def test_invalid_yaml(self, temp_dir, clean_env):
        (temp_dir / "config.yaml").write_text("currency: [usd\n")
        with pytest.raises(ConfigError):
            ConfigManager(config_dir=temp_dir, data_dir=temp_dir).load()

    def test_non_mapping_yaml(self, temp_dir, clean_env):
        (temp_dir / "config.yaml").write_text("- usd\n- eur\n")
        with pytest.raises(ConfigError):
            ConfigManager(config_dir=temp_dir, data_dir=temp_dir).load()

    def test_invalid_value(self, temp_dir, clean_env):
        (temp_dir / "config.yaml").write_text("refresh_interval_secs: soon\n")
        with pytest.raises(ConfigError):
            ConfigManager(config_dir=temp_dir, data_dir=temp_dir).load()

    def test_config_before_load(self, temp_dir):
        with pytest.raises(ConfigError):
            ConfigManager(config_dir=temp_dir, data_dir=temp_dir).config

    def test_paths(self, config_manager, temp_dir):
        assert config_manager.config_file == temp_dir / "config" / "config.yaml"
        assert config_manager.db_path == temp_dir / "data" / "bags.db"
        assert config_manager.error_log_path == temp_dir / "config" / "errors.log"

    def test_dirs_from_env(self, temp_dir, monkeypatch):
        monkeypatch.setenv("BAGS_CONFIG_DIR", str(temp_dir / "cfg"))
        monkeypatch.setenv("BAGS_DATA_DIR", str(temp_dir / "dat"))
        manager = ConfigManager()
        assert manager.config_dir == temp_dir / "cfg"
        assert manager.data_dir == temp_dir / "dat"


class TestSet:
    """Test updating single values."""

    def test_set_and_save(self, config_manager):
        config_manager.set("currency", "EUR")
        config_manager.save()

        reloaded = ConfigManager(config_dir=config_manager.config_dir,
                                 data_dir=config_manager.data_dir).load()
        assert reloaded.currency == "eur"

    def test_set_interval_from_string(self, config_manager):
        assert config_manager.set("refresh_interval_secs", "45").refresh_interval_secs == 45

    def test_unknown_key(self, config_manager):
        with pytest.raises(ConfigError, match="Unknown config key"):
            config_manager.set("colour", "blue")

    def test_invalid_value(self, config_manager):
        with pytest.raises(ConfigError):
            config_manager.set("refresh_interval_secs", "soon")
        assert config_manager.get("refresh_interval_secs") == 60
