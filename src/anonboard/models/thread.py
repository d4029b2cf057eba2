# src/anonboard/models/thread.py
"""SQLAlchemy model for threads."""

import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import JSON, Boolean, ForeignKey, Index
from sqlalchemy.orm import Mapped, mapped_column

from anonboard.db.session import Base
from anonboard.db.types import UTCDateTime, UUIDBlob


class ThreadRow(Base):
    """Conversation container; never exists without its OP post."""

    __tablename__ = "threads"
    __table_args__ = (
        Index("idx_threads_board_bump", "board_id", "is_sticky", "last_bump"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUIDBlob, primary_key=True)
    board_id: Mapped[uuid.UUID] = mapped_column(
        UUIDBlob,
        ForeignKey("boards.id", ondelete="CASCADE"),
        nullable=False,
    )
    last_bump: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    is_sticky: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_locked: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    # Column is named "metadata"; the attribute avoids DeclarativeBase.metadata.
    metadata_: Mapped[dict[str, Any]] = mapped_column("metadata", JSON, nullable=False, default=dict)
