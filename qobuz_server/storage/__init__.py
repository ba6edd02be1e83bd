"""
Storage Layer.

This package handles loading the server configuration from disk and the
environment.
"""

from .config_manager import ConfigManager

__all__ = ["ConfigManager"]
