"""Shared utilities for puctree."""

from puctree.core.utils.logging import setup_logging

__all__ = ["setup_logging"]
