"""
Storage Layer.

This package handles the configuration store: the INI file holding run
settings, templates, tracked items and their recorded versions.
"""

from .config_manager import ConfigStore

__all__ = ["ConfigStore"]
