# src/anonboard/schemas/thread.py
"""Thread entity and the thread+OP projection used by listings."""

import uuid
from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from .post import Post


class Thread(BaseModel):
    """A conversation anchored by exactly one OP post."""

    id: uuid.UUID
    board_id: uuid.UUID
    last_bump: datetime
    is_sticky: bool = False
    is_locked: bool = False
    metadata: dict[str, Any] = Field(default_factory=dict)


class ThreadPreview(BaseModel):
    """A thread joined with its OP post."""

    thread: Thread
    op: Post
