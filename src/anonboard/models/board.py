# src/anonboard/models/board.py
"""SQLAlchemy model for boards."""

import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import JSON, Text
from sqlalchemy.orm import Mapped, mapped_column

from anonboard.db.session import Base
from anonboard.db.time import utcnow
from anonboard.db.types import UTCDateTime, UUIDBlob


class BoardRow(Base):
    """A topical forum addressed externally by its slug."""

    __tablename__ = "boards"

    id: Mapped[uuid.UUID] = mapped_column(UUIDBlob, primary_key=True)
    # Stable external key used in URLs (/b/, /g/).
    slug: Mapped[str] = mapped_column(Text, unique=True, nullable=False)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    # Board rules such as max_file_size.
    settings: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)
