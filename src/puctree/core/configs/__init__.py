"""Configuration management utilities."""

from puctree.core.configs.loader import load_app_config, load_config, save_config
from puctree.core.configs.schema import (
    AppConfig,
    EngineConfig,
    LoggingConfig,
    SearchConfig,
    config_from_dict,
    config_to_dict,
)

__all__ = [
    "AppConfig",
    "EngineConfig",
    "LoggingConfig",
    "SearchConfig",
    "config_from_dict",
    "config_to_dict",
    "load_app_config",
    "load_config",
    "save_config",
]
