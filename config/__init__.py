"""Configuration package initialization."""

from .settings import Config, get_config, reload_config

__all__ = [
    'Config',
    'get_config',
    'reload_config'
]
