"""Configuration management package."""

from .config_loader import ALL_TARGET, Config, ConfigError

__all__ = [
    'ALL_TARGET',
    'Config',
    'ConfigError',
]
