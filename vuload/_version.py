"""Version information for vuload."""

__version__ = "1.0.0"
