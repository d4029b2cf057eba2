# src/anonboard/repositories/__init__.py
"""Implementations of the board repository port."""

from .memory import InMemoryBoardRepository
from .sql import SqlBoardRepository

__all__ = ["InMemoryBoardRepository", "SqlBoardRepository"]
