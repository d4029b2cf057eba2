# src/anonboard/schemas/board.py
"""Board entity and id generation."""

import uuid
from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field
from uuid6 import uuid7

from anonboard.db.time import utcnow


def new_id() -> uuid.UUID:
    """Return a fresh time-ordered UUIDv7."""
    return uuid.UUID(bytes=uuid7().bytes)


class Board(BaseModel):
    """A named topical forum (e.g. /b/)."""

    id: uuid.UUID = Field(default_factory=new_id)
    slug: str = Field(..., min_length=1, max_length=32, pattern=r"^[A-Za-z0-9_-]+$")
    title: str
    description: str | None = None
    settings: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=utcnow)

    @property
    def max_file_size(self) -> int | None:
        """Board-specific upload cap in bytes, if configured."""
        value = self.settings.get("max_file_size")
        if isinstance(value, int) and not isinstance(value, bool) and value > 0:
            return value
        return None
