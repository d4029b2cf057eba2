# src/anonboard/models/__init__.py
"""SQLAlchemy models for the anonboard relational schema."""

from .ban import BanRow
from .board import BoardRow
from .post import PostRow
from .thread import ThreadRow

__all__ = ["BanRow", "BoardRow", "PostRow", "ThreadRow"]
