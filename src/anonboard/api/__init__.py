"""HTTP routes for the board."""

from .errors import register_error_handlers
from .routes import router

__all__ = ["register_error_handlers", "router"]
