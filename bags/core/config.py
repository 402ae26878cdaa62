"""
Configuration file handling with YAML defaults and environment overrides.

Only non-secret settings live here (currency, theme, refresh interval). API
keys and notification settings are kept in the encrypted store instead.
"""

import logging
import os
from dataclasses import dataclass, asdict, fields
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from dotenv import load_dotenv

from .errors import ConfigError

logger = logging.getLogger(__name__)

APP_NAME = "bags"
MIN_REFRESH_SECS = 30
ENV_PREFIX = "BAGS"


@dataclass
class AppConfig:
    """Values persisted in ``config.yaml``."""

    refresh_interval_secs: int = 60
    currency: str = "usd"
    theme: str = "dark"

    def __post_init__(self):
        self.refresh_interval_secs = max(MIN_REFRESH_SECS, int(self.refresh_interval_secs))
        self.currency = str(self.currency).lower()
        self.theme = str(self.theme)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


CONFIG_KEYS = tuple(f.name for f in fields(AppConfig))


def _base_dir(env_var: str, fallback: str) -> Path:
    value = os.getenv(env_var)
    if value:
        return Path(value)
    return Path.home() / fallback


def _convert_value(value: Any) -> Any:
    """Convert an environment string to int where it looks like one."""
    if not isinstance(value, str):
        return value
    try:
        return int(value)
    except ValueError:
        return value


class ConfigManager:
    """
    Loads and saves the application configuration.

    Sources in increasing priority: built-in defaults, ``config.yaml``, then
    ``BAGS_*`` environment variables (a ``.env`` file in the working directory
    is loaded first). The refresh interval is floored at 30 seconds.
    """

    def __init__(self,
                 config_dir: Optional[Path] = None,
                 data_dir: Optional[Path] = None,
                 env_prefix: str = ENV_PREFIX):
        load_dotenv()

        self.env_prefix = env_prefix
        self.config_dir = Path(
            config_dir
            or os.getenv(f"{env_prefix}_CONFIG_DIR")
            or _base_dir("XDG_CONFIG_HOME", ".config") / APP_NAME
        )
        self.data_dir = Path(
            data_dir
            or os.getenv(f"{env_prefix}_DATA_DIR")
            or _base_dir("XDG_DATA_HOME", ".local/share") / APP_NAME
        )
        self._config: Optional[AppConfig] = None

    @property
    def config_file(self) -> Path:
        return self.config_dir / "config.yaml"

    @property
    def db_path(self) -> Path:
        return self.data_dir / "bags.db"

    @property
    def error_log_path(self) -> Path:
        return self.config_dir / "errors.log"

    @property
    def debug_log_path(self) -> Path:
        return self.data_dir / "debug.log"

    @property
    def config(self) -> AppConfig:
        if self._config is None:
            raise ConfigError("Configuration not loaded")
        return self._config

    def load(self) -> AppConfig:
        """Load configuration from all sources.

        A missing file is created with the defaults.

        Returns:
            Loaded configuration

        Raises:
            ConfigError: If the file exists but cannot be read or parsed
        """
        values: Dict[str, Any] = AppConfig().to_dict()

        if self.config_file.exists():
            values.update(self._load_yaml_config())
        else:
            self.save(AppConfig())
            logger.info(f"Wrote default configuration to {self.config_file}")

        values.update(self._env_overrides())

        try:
            self._config = AppConfig(**values)
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Invalid configuration: {e}") from e

        logger.debug(f"Loaded configuration: {self._config}")
        return self._config

    def _load_yaml_config(self) -> Dict[str, Any]:
        try:
            with open(self.config_file, 'r', encoding='utf-8') as f:
                file_config = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(f"Failed to load config from {self.config_file}: {e}") from e

        if not isinstance(file_config, dict):
            raise ConfigError(f"Config file {self.config_file} must contain a mapping")

        unknown = set(file_config) - set(CONFIG_KEYS)
        if unknown:
            logger.warning(f"Ignoring unknown config keys: {', '.join(sorted(unknown))}")

        return {k: v for k, v in file_config.items() if k in CONFIG_KEYS}

    def _env_overrides(self) -> Dict[str, Any]:
        """Collect ``BAGS_<KEY>`` overrides for known keys."""
        overrides = {}
        for key in CONFIG_KEYS:
            value = os.getenv(f"{self.env_prefix}_{key.upper()}")
            if value is not None:
                overrides[key] = _convert_value(value)
                logger.debug(f"Applied env override: {key} = {value}")
        return overrides

    def save(self, config: Optional[AppConfig] = None) -> None:
        """Write configuration to ``config.yaml``.

        Raises:
            ConfigError: If the file cannot be written
        """
        config = config or self.config
        try:
            self.config_dir.mkdir(parents=True, exist_ok=True)
            with open(self.config_file, 'w', encoding='utf-8') as f:
                yaml.safe_dump(config.to_dict(), f, default_flow_style=False, sort_keys=False)
        except OSError as e:
            raise ConfigError(f"Failed to save config: {e}") from e
        self._config = config

    def get(self, key: str, default: Any = None) -> Any:
        """Get a configuration value."""
        return getattr(self.config, key, default)

    def set(self, key: str, value: Any) -> AppConfig:
        """Set a configuration value and return the updated configuration.

        Raises:
            ConfigError: If the key is unknown or the value invalid
        """
        if key not in CONFIG_KEYS:
            raise ConfigError(f"Unknown config key '{key}' (expected one of {', '.join(CONFIG_KEYS)})")

        values = self.config.to_dict()
        values[key] = _convert_value(value)
        try:
            self._config = AppConfig(**values)
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Invalid value for {key}: {value}") from e
        return self._config
