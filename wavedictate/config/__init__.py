"""YAML configuration and settings store for WaveDictate."""

import os
import yaml
from pathlib import Path
from typing import Dict, Any, Optional
import logging

from pydantic import ValidationError

from ..models.settings import AppSettings

logger = logging.getLogger(__name__)


class WaveDictateConfig:
    """WaveDictate configuration loader and persistent settings store."""

    def __init__(self, config_path: Optional[str] = None):
        """Initialize configuration loader.

        Args:
            config_path: Path to YAML config file. Defaults to wavedictate.yaml
                        in the current directory.
        """
        self.config_file = Path(config_path or "wavedictate.yaml")

        if not self.config_file.exists():
            raise FileNotFoundError(f"Configuration file not found: {self.config_file}")

        logger.info(f"Loading configuration from: {self.config_file}")
        self.config = self._load_config()

    def _load_config(self) -> Dict[str, Any]:
        """Load and parse YAML configuration file."""
        try:
            with open(self.config_file, 'r', encoding='utf-8') as f:
                config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in configuration file: {e}")
        except OSError as e:
            raise ValueError(f"Failed to load configuration: {e}")

        if not config:
            raise ValueError("Configuration file is empty")

        self._resolve_paths(config)

        logger.info("Configuration loaded successfully")
        return config

    def _resolve_paths(self, config: Dict[str, Any]) -> None:
        """Resolve relative paths in configuration relative to config file location."""
        config_dir = self.config_file.parent

        for section, key in (('storage', 'data_directory'),
                             ('logging', 'file_path'),
                             ('models', 'directory')):
            if section in config and key in (config[section] or {}):
                value = config[section][key]
                if not os.path.isabs(value):
                    config[section][key] = str(config_dir / value)

    def get(self, key_path: str, default: Any = None) -> Any:
        """Get configuration value using dot notation (e.g., 'transcription.language').

        Args:
            key_path: Dot-separated key path (e.g., 'settings.copy_to_clipboard')
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        keys = key_path.split('.')
        value = self.config

        for key in keys:
            if isinstance(value, dict) and key in value:
                value = value[key]
            else:
                return default

        return value

    def set(self, key_path: str, value: Any) -> None:
        """Set configuration value using dot notation.

        Args:
            key_path: Dot-separated path to config value (e.g., 'settings.llm_prompt')
            value: Value to set
        """
        keys = key_path.split('.')
        config_dict = self.config

        # Navigate to the parent dictionary
        for key in keys[:-1]:
            if not isinstance(config_dict.get(key), dict):
                config_dict[key] = {}
            config_dict = config_dict[key]

        config_dict[keys[-1]] = value
        logger.debug(f"Configuration key '{key_path}' set to: {value}")

    def save(self) -> None:
        """Write the current configuration back to the YAML file."""
        with open(self.config_file, 'w', encoding='utf-8') as f:
            yaml.safe_dump(self.config, f, default_flow_style=False, sort_keys=False)
        logger.info(f"Configuration saved to: {self.config_file}")

    def get_data_directory(self) -> str:
        """Get data directory path."""
        data_dir = self.get('storage.data_directory', 'data')
        return str(Path(data_dir).absolute())

    def get_models_directory(self) -> str:
        """Get directory holding downloaded speech models."""
        models_dir = self.get('models.directory')
        if not models_dir:
            models_dir = str(Path(self.get_data_directory()) / "models")
        return str(Path(models_dir).absolute())


def load_settings(config: WaveDictateConfig) -> AppSettings:
    """Validate the user-facing ``settings`` section.

    Invalid entries are logged and replaced by defaults so a bad shortcut
    never keeps the app from starting.
    """
    raw = config.get('settings', {}) or {}
    try:
        return AppSettings.model_validate(raw)
    except ValidationError as e:
        logger.warning(f"Invalid settings in {config.config_file}: {e}")

    # Retry with default shortcuts, the most common thing to get wrong
    without_shortcuts = {k: v for k, v in raw.items() if k != 'shortcuts'}
    try:
        settings = AppSettings.model_validate(without_shortcuts)
        logger.warning("Falling back to default shortcuts")
        return settings
    except ValidationError:
        logger.warning("Falling back to default settings")
        return AppSettings()
