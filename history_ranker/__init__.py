"""Local personalized ranking engine for browsing-history recall."""

__version__ = "0.1.0"
