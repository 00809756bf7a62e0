"""Configuration management for the ballot core."""

from .config import (
    SystemConfig, CryptoConfig, StateConfig, ConfigError, load_config, save_config,
)

__all__ = [
    'SystemConfig', 'CryptoConfig', 'StateConfig', 'ConfigError',
    'load_config', 'save_config',
]
