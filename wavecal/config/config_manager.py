"""
Configuration management system for the wave calendar.
"""

import os
import yaml
from typing import Optional, Dict, Any

from pydantic import ValidationError

from .config_schema import WaveCalConfig
from wavecal.wavecal_logging import get_logger

logger = get_logger(__name__)


class ConfigManager:
    """
    Manage configuration with YAML support and validation.

    Features:
    - Load from YAML files
    - Environment variable overrides
    - Type validation with Pydantic
    """

    def __init__(self, config_file: Optional[str] = None):
        """
        Initialize configuration manager.

        Args:
            config_file: Path to YAML config file
        """
        self.config_file = config_file
        self.config: WaveCalConfig = WaveCalConfig()
        self._load_config()

    def _load_config(self):
        """Load configuration from file or defaults."""
        if self.config_file and os.path.exists(self.config_file):
            try:
                with open(self.config_file, 'r') as f:
                    config_data = yaml.safe_load(f) or {}

                self.config = WaveCalConfig(**config_data)
                logger.info(f"Loaded config from {self.config_file}")
            except (OSError, yaml.YAMLError, ValidationError, TypeError) as e:
                logger.error(f"Failed to load config from {self.config_file}: {e}")
                self.config = WaveCalConfig()
        else:
            if self.config_file:
                logger.warning(f"Config file {self.config_file} not found, using defaults")
            self.config = WaveCalConfig()
            logger.debug("Using default configuration")

    def reload(self):
        """Reload configuration from file."""
        self._load_config()

    def save(self, filepath: Optional[str] = None):
        """
        Save current configuration to file.

        Args:
            filepath: Path to save (uses self.config_file if None)
        """
        filepath = filepath or self.config_file
        if not filepath:
            raise ValueError("No filepath specified")

        with open(filepath, 'w') as f:
            yaml.safe_dump(self.to_dict(), f, default_flow_style=False, indent=2)

        logger.info(f"Saved config to {filepath}")

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get configuration value by dot-notation key.

        Args:
            key: Config key (e.g., 'simulation.viscosity')
            default: Default value if not found

        Returns:
            Configuration value
        """
        value = self.config
        for part in key.split('.'):
            if hasattr(value, part):
                value = getattr(value, part)
            else:
                return default

        return value

    def set(self, key: str, value: Any):
        """
        Set configuration value by dot-notation key.

        Assignments are validated, so an out-of-range value raises
        pydantic.ValidationError and leaves the config unchanged.

        Args:
            key: Config key (e.g., 'simulation.viscosity')
            value: New value
        """
        parts = key.split('.')
        target = self.config

        for part in parts[:-1]:
            if hasattr(target, part):
                target = getattr(target, part)
            else:
                raise KeyError(key)

        if not hasattr(target, parts[-1]):
            raise KeyError(key)

        if isinstance(target, WaveCalConfig):
            setattr(target, parts[-1], value)
        else:
            # Section models do not validate on assignment; rebuild them
            updated = target.model_validate({**target.model_dump(), parts[-1]: value})
            parent = self.config
            for part in parts[:-2]:
                parent = getattr(parent, part)
            setattr(parent, parts[-2], updated)

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary."""
        return self.config.model_dump(mode='json')


# ============================================================================
# Global Configuration Manager
# ============================================================================

_global_config_manager: Optional[ConfigManager] = None


def get_config_manager(config_file: Optional[str] = None) -> ConfigManager:
    """Get or create global configuration manager."""
    global _global_config_manager

    if _global_config_manager is None:
        _global_config_manager = ConfigManager(config_file or os.getenv('WAVECAL_CONFIG'))

    return _global_config_manager


def get_config() -> WaveCalConfig:
    """Get current configuration."""
    manager = get_config_manager()
    return manager.config
