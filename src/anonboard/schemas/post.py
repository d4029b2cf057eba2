# src/anonboard/schemas/post.py
"""Post entity."""

import uuid
from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class Post(BaseModel):
    """A single message; `content` is already sanitized HTML."""

    id: uuid.UUID
    thread_id: uuid.UUID
    user_id_in_thread: str = Field(..., min_length=1, max_length=8)
    content: str
    media_id: str | None = Field(default=None, pattern=r"^[0-9a-f]{64}$")
    is_op: bool = False
    created_at: datetime
    metadata: dict[str, Any] = Field(default_factory=dict)
