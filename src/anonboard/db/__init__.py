# src/anonboard/db/__init__.py
"""Database configuration and utilities."""

from .session import Base, create_engine_for, create_session_factory, create_tables, drop_tables

__all__ = ["Base", "create_engine_for", "create_session_factory", "create_tables", "drop_tables"]
