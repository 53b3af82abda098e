"""Website and app generator platform."""

__version__ = "0.1.0"
