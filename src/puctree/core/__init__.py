"""Core utilities: configuration and logging."""

from puctree.core.configs import load_config, save_config
from puctree.core.utils.logging import setup_logging

__all__ = ["load_config", "save_config", "setup_logging"]
