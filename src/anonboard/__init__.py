"""anonboard: an anonymous imageboard server."""

__version__ = "0.1.0"
