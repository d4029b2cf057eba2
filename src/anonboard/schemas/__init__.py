# src/anonboard/schemas/__init__.py
"""Domain entities exchanged between the pipeline and the ports."""

from .ban import Ban
from .board import Board, new_id
from .post import Post
from .thread import Thread, ThreadPreview

__all__ = ["Ban", "Board", "Post", "Thread", "ThreadPreview", "new_id"]
