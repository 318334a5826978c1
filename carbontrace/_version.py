"""Version information for carbontrace."""

__version__ = "0.1.0"
