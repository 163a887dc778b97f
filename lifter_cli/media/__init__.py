"""
Asset Processing Layer.

This package is responsible for downloading release assets, detecting their
container format and installing the extracted executable.
"""

from .downloader import Downloader
from .installer import Installer

__all__ = ["Downloader", "Installer"]
