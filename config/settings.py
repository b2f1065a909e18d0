"""Configuration management module for Feed Harvester."""

import os
from pathlib import Path
from typing import Any, Dict, Optional
import yaml
from dotenv import load_dotenv


class Config:
    """Configuration manager that loads settings from YAML and environment variables."""

    def __init__(self, config_path: Optional[str] = None):
        """
        Initialize configuration.

        Args:
            config_path: Path to config.yaml file. If None, looks in config/ directory.
        """
        # Load environment variables from .env file
        load_dotenv()

        if config_path is None:
            config_path = str(Path(__file__).parent / "config.yaml")

        self.config_path = Path(config_path)
        self._config: Dict[str, Any] = {}

        self._load_config()
        self._apply_env_overrides()

    def _load_config(self):
        """Load configuration from YAML file."""
        if not self.config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {self.config_path}")

        with open(self.config_path, 'r', encoding='utf-8') as f:
            self._config = yaml.safe_load(f) or {}

    def _apply_env_overrides(self):
        """Apply environment variable overrides to configuration."""
        base_dir_env = os.getenv('HARVESTER_BASE_DIR')
        if base_dir_env:
            self._config.setdefault('paths', {})['base_dir'] = base_dir_env

        # Anything but an explicit false-ish value keeps the browser headless
        headless_env = os.getenv('HARVESTER_HEADLESS')
        if headless_env:
            self._config.setdefault('selenium', {})['headless'] = (
                headless_env.strip().lower() not in ('0', 'false', 'no', 'off')
            )

        log_level_env = os.getenv('HARVESTER_LOG_LEVEL')
        if log_level_env:
            self._config.setdefault('logging', {})['level'] = log_level_env.upper()

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get configuration value using dot notation.

        Args:
            key: Configuration key (e.g., 'expansion.count_tolerance')
            default: Default value if key not found

        Returns:
            Configuration value or default

        Example:
            >>> config.get('selenium.headless')
            True
            >>> config.get('expansion.iteration_tolerance')
            3
        """
        keys = key.split('.')
        value = self._config

        for k in keys:
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                return default

        return value

    def get_path(self, key: str) -> Path:
        """
        Get a path configuration value as a Path object.

        Args:
            key: Configuration key (e.g., 'paths.base_dir')

        Returns:
            Path object
        """
        value = self.get(key)
        if value is None:
            raise ValueError(f"Path configuration not found: {key}")
        return Path(value)

    def get_full_path(self, path_key: str) -> Path:
        """
        Get a full path by combining base_dir with the specified path.

        Args:
            path_key: Configuration key for the path (e.g., 'paths.output_dir')

        Returns:
            Full path as Path object
        """
        base_dir = self.get_path('paths.base_dir')
        relative_path = self.get(path_key)

        if relative_path is None:
            raise ValueError(f"Path configuration not found: {path_key}")

        return base_dir / relative_path

    @property
    def sites_file(self) -> Path:
        """Path of the YAML file holding the site definitions."""
        sites_file = self.get('input_files.sites_file', 'sites.yaml')
        path = Path(sites_file)
        if not path.is_absolute():
            path = self.config_path.parent / path
        return path

    @property
    def all_config(self) -> Dict[str, Any]:
        """Get the entire configuration dictionary."""
        return self._config.copy()


# Global configuration instance
_config_instance: Optional[Config] = None


def get_config(config_path: Optional[str] = None) -> Config:
    """
    Get or create the global configuration instance.

    Args:
        config_path: Path to config file (only used on first call)

    Returns:
        Config instance
    """
    global _config_instance

    if _config_instance is None:
        _config_instance = Config(config_path)

    return _config_instance


def reload_config(config_path: Optional[str] = None):
    """
    Reload configuration from file.

    Args:
        config_path: Path to config file
    """
    global _config_instance
    _config_instance = Config(config_path)
