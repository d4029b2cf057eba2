# src/anonboard/models/post.py
"""SQLAlchemy model for posts."""

import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import JSON, Boolean, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from anonboard.db.session import Base
from anonboard.db.types import UTCDateTime, UUIDBlob


class PostRow(Base):
    """A single message inside a thread; content is stored sanitized."""

    __tablename__ = "posts"
    __table_args__ = (
        Index("idx_posts_thread", "thread_id", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUIDBlob, primary_key=True)
    thread_id: Mapped[uuid.UUID] = mapped_column(
        UUIDBlob,
        ForeignKey("threads.id", ondelete="CASCADE"),
        nullable=False,
    )
    user_id_in_thread: Mapped[str] = mapped_column(String(8), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    # SHA-256 hex of the attached media; the media store is authoritative.
    media_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    is_op: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    metadata_: Mapped[dict[str, Any]] = mapped_column("metadata", JSON, nullable=False, default=dict)
