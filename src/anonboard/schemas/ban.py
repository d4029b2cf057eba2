# src/anonboard/schemas/ban.py
"""Ban entity."""

import uuid
from datetime import datetime

from pydantic import BaseModel, Field

from anonboard.db.time import utcnow

from .board import new_id


class Ban(BaseModel):
    """Restriction on an address or CIDR range; `expires_at=None` is permanent."""

    id: uuid.UUID = Field(default_factory=new_id)
    ip_address: str
    reason: str
    expires_at: datetime | None = None
    created_at: datetime = Field(default_factory=utcnow)

    def is_active(self, now: datetime) -> bool:
        """Return True unless the ban has already expired at `now`."""
        return self.expires_at is None or self.expires_at > now
