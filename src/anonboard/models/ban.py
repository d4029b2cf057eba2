# src/anonboard/models/ban.py
"""SQLAlchemy model for address bans."""

import uuid
from datetime import datetime

from sqlalchemy import Text
from sqlalchemy.orm import Mapped, mapped_column

from anonboard.db.session import Base
from anonboard.db.time import utcnow
from anonboard.db.types import UTCDateTime, UUIDBlob


class BanRow(Base):
    """Moderation action against an IPv4/IPv6 address or CIDR range."""

    __tablename__ = "bans"

    id: Mapped[uuid.UUID] = mapped_column(UUIDBlob, primary_key=True)
    ip_address: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    # NULL means permanent.
    expires_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)
