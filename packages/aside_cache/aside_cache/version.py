"""Version information for aside-cache."""

__version__ = "0.1.0"
