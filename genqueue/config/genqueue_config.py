"""
genqueue Configuration Management

This module provides configuration management for genqueue.
"""

import copy
import logging
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from genqueue.exceptions import ConfigurationError

# Configure logging
logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path(__file__).parent / 'default_config.yaml'


class GenQueueConfig:
    """
    Manages system-wide configuration for genqueue

    This class follows the singleton pattern so the queue service and the
    document pipeline read the same settings. Defaults come from the bundled
    default_config.yaml and are overlaid by ~/.genqueue/config.yaml when it
    exists.
    """

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self):
        if not hasattr(self, 'initialized'):
            self.logger = logging.getLogger(__name__)

            self.config: Dict[str, Any] = self.load_defaults()

            self.config_file = Path.home() / '.genqueue' / 'config.yaml'
            if self.config_file.exists():
                self._load_config(self.config_file)

            self.initialized = True

    @staticmethod
    def load_defaults() -> Dict[str, Any]:
        """Load the bundled default configuration"""
        with open(DEFAULT_CONFIG_PATH, 'r') as f:
            return yaml.safe_load(f)

    @classmethod
    def from_file(cls, config_path: str) -> 'GenQueueConfig':
        """Load configuration from file on top of the defaults

        Args:
            config_path: Path to configuration file

        Returns:
            GenQueueConfig instance
        """
        instance = cls()
        instance._load_config(Path(config_path))
        return instance

    @classmethod
    def setup(cls, save: bool = False, **kwargs) -> 'GenQueueConfig':
        """
        Set up genqueue configuration

        Args:
            save: Write the result to ~/.genqueue/config.yaml
            queue: Submission queue settings (concurrency, interval, ...)
            pipeline: Document pipeline settings
            retry: Backoff settings (base_delay, max_delay)
            registry: Registry settings (stale_retry_max_age)
            provider: HTTP provider settings
            logging: Logging settings (level, format, file)
        """
        instance = cls()
        for section, values in kwargs.items():
            if section not in instance.config:
                raise ConfigurationError(f"Unknown configuration section: {section}")
            if not isinstance(values, dict):
                raise ConfigurationError(f"Configuration section {section} must be a mapping")
            instance._update_config_recursive(instance.config[section], values)

        instance._validate_config()

        if save:
            instance.config_file.parent.mkdir(parents=True, exist_ok=True)
            instance._save_config()

        instance.logger.info("genqueue configuration updated")
        return instance

    @classmethod
    def reset(cls) -> None:
        """Drop the singleton so the next instance reloads from disk"""
        cls._instance = None

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value

        Args:
            key: Configuration key (dot notation)
            default: Default value if key not found

        Returns:
            Configuration value
        """
        try:
            value = self.config
            for k in key.split('.'):
                value = value[k]
            return value
        except (KeyError, TypeError):
            return default

    def set(self, key: str, value: Any) -> None:
        """Set configuration value

        Args:
            key: Configuration key (dot notation)
            value: Configuration value
        """
        keys = key.split('.')
        config = self.config
        for k in keys[:-1]:
            if k not in config:
                config[k] = {}
            config = config[k]
        config[keys[-1]] = value

    def update(self, config: Dict[str, Any]) -> None:
        """Deep-merge new values into the configuration"""
        self._update_config_recursive(self.config, config)
        self._validate_config()

    def _load_config(self, path: Path) -> None:
        """Load configuration from a YAML file"""
        if not path.exists():
            raise ConfigurationError(f"Configuration file not found: {path}")

        try:
            with open(path, 'r') as f:
                file_config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in configuration file: {str(e)}") from e

        if file_config is None:
            raise ConfigurationError("Configuration file is empty")
        if not isinstance(file_config, dict):
            raise ConfigurationError("Configuration must be a dictionary")

        self._update_config_recursive(self.config, file_config)
        self._validate_config()
        self.logger.info(f"Configuration loaded from {path}")

    def _validate_config(self) -> None:
        """Validate configuration structure and values"""
        if not isinstance(self.config, dict):
            raise ConfigurationError("Configuration must be a dictionary")

        required_sections = ['queue', 'pipeline', 'retry', 'registry', 'provider', 'logging']
        for section in required_sections:
            if section not in self.config:
                raise ConfigurationError(f"Missing required configuration section: {section}")

        for section in ('queue', 'pipeline'):
            concurrency = self.config[section].get('concurrency')
            if not isinstance(concurrency, int) or concurrency < 1:
                raise ConfigurationError(f"{section}.concurrency must be a positive integer")
            interval = self.config[section].get('interval')
            if not isinstance(interval, (int, float)) or interval <= 0:
                raise ConfigurationError(f"{section}.interval must be positive")
            interval_cap = self.config[section].get('interval_cap')
            if interval_cap is not None and (not isinstance(interval_cap, int) or interval_cap < 1):
                raise ConfigurationError(f"{section}.interval_cap must be a positive integer or null")
            max_retries = self.config[section].get('max_retries')
            if not isinstance(max_retries, int) or max_retries < 0:
                raise ConfigurationError(f"{section}.max_retries must be a non-negative integer")

        base_delay = self.config['retry'].get('base_delay')
        if not isinstance(base_delay, (int, float)) or base_delay < 0:
            raise ConfigurationError("retry.base_delay must be a non-negative number")

        level = str(self.config['logging'].get('level', 'INFO')).upper()
        if level not in ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'):
            raise ConfigurationError(f"Unsupported logging level: {level}")

    def _save_config(self) -> None:
        """Save configuration to file"""
        try:
            with open(self.config_file, 'w') as f:
                yaml.safe_dump(self.config, f, default_flow_style=False)
            self.logger.info(f"Configuration saved to {self.config_file}")
        except OSError as e:
            self.logger.error(f"Failed to save configuration: {str(e)}")
            raise

    def _update_config_recursive(self, base: Dict[str, Any], update: Dict[str, Any]) -> None:
        """Update configuration recursively"""
        for key, value in update.items():
            if isinstance(value, dict) and key in base and isinstance(base[key], dict):
                self._update_config_recursive(base[key], value)
            else:
                base[key] = value

    def get_queue_config(self) -> Dict[str, Any]:
        """Get submission queue configuration"""
        return self.config.get('queue', {})

    def get_pipeline_config(self) -> Dict[str, Any]:
        """Get document pipeline configuration"""
        return self.config.get('pipeline', {})

    def get_retry_config(self) -> Dict[str, Any]:
        """Get retry configuration"""
        return self.config.get('retry', {})

    def get_registry_config(self) -> Dict[str, Any]:
        return self.config.get('registry', {})

    def get_provider_config(self) -> Dict[str, Any]:
        return self.config.get('provider', {})

    def get_logging_config(self) -> Dict[str, Any]:
        """Get logging configuration"""
        return self.config.get('logging', {})

    def validate(self) -> bool:
        """Validate configuration"""
        try:
            self._validate_config()
            return True
        except ConfigurationError as e:
            self.logger.error(f"Configuration validation failed: {str(e)}")
            return False

    def get_all(self) -> Dict[str, Any]:
        """Get all configuration"""
        return copy.deepcopy(self.config)
