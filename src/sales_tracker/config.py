"""YAML-backed settings for the sales tracker."""

import logging
import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Optional

import yaml

logger = logging.getLogger(__name__)

DEFAULT_DATA_DIR = "~/.sales-tracker"
CONFIG_ENV_VAR = "SALES_TRACKER_DATA_DIR"


@dataclass
class ConfigModel:
    """User settings for the sales tracker, persisted as YAML."""

    # File paths
    data_dir: str = DEFAULT_DATA_DIR
    storage_file: str = "storage.json"

    # Initial data: JSON array of tasks, file path or http(s) URL
    initial_source: Optional[str] = None
    seed_count: int = 50
    request_timeout: float = 10.0

    # Analytics
    forecast_horizon_weeks: int = 4

    # Store behavior
    activity_limit: int = 50

    # Logging and display
    log_level: str = "WARNING"
    no_color: bool = False

    def __post_init__(self):
        """Expand and create the data directory."""
        self.data_dir = os.path.expanduser(self.data_dir)
        Path(self.data_dir).mkdir(parents=True, exist_ok=True)

    def to_yaml(self) -> str:
        """Dump every field, in declaration order."""
        data = {f.name: getattr(self, f.name) for f in fields(self)}
        return yaml.safe_dump(data, default_flow_style=False, sort_keys=False)

    @classmethod
    def from_yaml(cls, yaml_str: str, **defaults) -> "ConfigModel":
        """Deserialize config from YAML, ignoring unknown keys."""
        data = yaml.safe_load(yaml_str) or {}
        if not isinstance(data, dict):
            raise ValueError("Configuration must be a YAML mapping")

        known = {f.name for f in fields(cls)}
        for key in set(data) - known:
            logger.warning(f"Ignoring unknown configuration key: {key}")
            del data[key]

        return cls(**{**defaults, **data})

    def get_config_path(self) -> Path:
        """Location of config.yaml inside the data directory."""
        return Path(self.data_dir) / "config.yaml"

    def get_storage_path(self) -> Path:
        """Location of the JSON key-value store."""
        return Path(self.data_dir) / self.storage_file


class Config:
    """Process-wide holder of the loaded ConfigModel."""

    _instance: Optional[ConfigModel] = None

    @classmethod
    def load(cls, config_path: Optional[Path] = None) -> ConfigModel:
        """Return the cached settings, reading ``config.yaml`` on first use.

        The data directory comes from ``SALES_TRACKER_DATA_DIR`` when set.
        A missing file is created with defaults; an unreadable one is
        reported and replaced by defaults in memory only.
        """
        if cls._instance is not None:
            return cls._instance

        data_dir = os.environ.get(CONFIG_ENV_VAR, DEFAULT_DATA_DIR)
        config = ConfigModel(data_dir=data_dir)
        path = config_path or config.get_config_path()

        if not path.exists():
            cls.save(config, path)
            logger.info(f"Created default configuration at {path}")
        else:
            try:
                config = ConfigModel.from_yaml(path.read_text(encoding='utf-8'), data_dir=data_dir)
                logger.debug(f"Loaded configuration from {path}")
            except (OSError, ValueError, TypeError, yaml.YAMLError) as e:
                logger.warning(f"Failed to load config from {path}: {e}. Using default configuration.")

        cls._instance = config
        return config

    @classmethod
    def save(cls, config: ConfigModel, config_path: Optional[Path] = None) -> None:
        """Write ``config`` as YAML, logging rather than raising on I/O errors."""
        path = config_path or config.get_config_path()
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(config.to_yaml(), encoding='utf-8')
            logger.debug(f"Configuration saved to {path}")
        except OSError as e:
            logger.error(f"Failed to save config to {path}: {e}")

    @classmethod
    def get(cls) -> ConfigModel:
        return cls._instance or cls.load()

    @classmethod
    def reload(cls, config_path: Optional[Path] = None) -> ConfigModel:
        """Drop the cached settings and read them again."""
        cls._instance = None
        return cls.load(config_path)


def get_config() -> ConfigModel:
    return Config.get()


def load_config(config_path: Optional[Path] = None) -> ConfigModel:
    """Load settings, optionally from an explicit YAML file."""
    return Config.load(config_path)


def save_config(config: ConfigModel, config_path: Optional[Path] = None) -> None:
    Config.save(config, config_path)


def reset_config() -> None:
    """Forget the cached settings so the next access reloads them."""
    Config._instance = None
