"""
TerraDrift Watcher - Terraform configuration drift detection
"""

__version__ = "0.3.0"

from .core import DriftWatcher
from .errors import WatcherError

__all__ = ["DriftWatcher", "WatcherError"]
