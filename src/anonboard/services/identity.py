"""Pseudonymous identities, tripcodes, staff authentication and ban lookup."""

from __future__ import annotations

import asyncio
import ipaddress
import logging
import time
from collections.abc import Callable
from datetime import datetime

from anonboard.core import security
from anonboard.db.time import utcnow
from anonboard.schemas import Ban
from anonboard.services.ports import BanSource

logger = logging.getLogger(__name__)

IPNetwork = ipaddress.IPv4Network | ipaddress.IPv6Network


class BanMatcher:
    """Compiled view of a ban list answering address queries."""

    def __init__(self, bans: list[Ban]) -> None:
        self._entries: list[tuple[str, IPNetwork | None, datetime | None]] = []
        for ban in bans:
            entry = ban.ip_address.strip()
            try:
                network: IPNetwork | None = ipaddress.ip_network(entry, strict=False)
            except ValueError:
                logger.warning("Ban entry %r (ban %s) is not an address; exact match only", entry, ban.id)
                network = None
            self._entries.append((entry, network, ban.expires_at))

    def matches(self, client_addr: str, now: datetime) -> bool:
        """Return True if an unexpired entry equals or contains the address."""
        try:
            address = ipaddress.ip_address(client_addr)
        except ValueError:
            address = None
        # A dual-stack listener reports IPv4 peers as ::ffff:a.b.c.d.
        if isinstance(address, ipaddress.IPv6Address) and address.ipv4_mapped is not None:
            address = address.ipv4_mapped
        for entry, network, expires_at in self._entries:
            if expires_at is not None and expires_at <= now:
                continue
            if entry == client_addr or (address is not None and entry == str(address)):
                return True
            if address is None or network is None or address.version != network.version:
                continue
            if address in network:
                return True
        return False


class SimpleIdentityProvider:
    """Identity provider keyed by a process-lifetime session secret.

    The active ban list is fetched from `ban_source` and reused for
    `cache_seconds`; zero disables caching.
    """

    def __init__(
        self,
        session_secret: bytes,
        ban_source: BanSource,
        *,
        cache_seconds: float = 5.0,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        if not session_secret:
            raise ValueError("session secret must not be empty")
        self._session_secret = session_secret
        self._ban_source = ban_source
        self._cache_seconds = cache_seconds
        self._clock = clock
        self._matcher: BanMatcher | None = None
        self._loaded_at = 0.0
        self._refresh_lock = asyncio.Lock()

    def thread_id_for(self, client_addr: str, thread_id: str) -> str:
        """Return the poster's 8-character ID inside one thread."""
        return security.thread_scoped_id(self._session_secret, client_addr, thread_id)

    def tripcode(self, password: str) -> str:
        """Return the public tripcode for `password`."""
        return security.tripcode(password)

    def verify_moderator(self, password: str, stored_hash: str) -> bool:
        """Check a staff password against an Argon2id PHC string."""
        return security.verify_password_hash(password, stored_hash)

    def invalidate_bans(self) -> None:
        """Force the next ban query to reload the ban list."""
        self._matcher = None

    async def _current_matcher(self) -> BanMatcher:
        if self._matcher is not None and time.monotonic() - self._loaded_at < self._cache_seconds:
            return self._matcher
        async with self._refresh_lock:
            # Another waiter may have refreshed while we queued.
            if self._matcher is not None and time.monotonic() - self._loaded_at < self._cache_seconds:
                return self._matcher
            bans = await self._ban_source.list_active_bans(self._clock())
            self._matcher = BanMatcher(bans)
            self._loaded_at = time.monotonic()
            return self._matcher

    async def is_banned(self, client_addr: str) -> bool:
        """Return True if an unexpired ban covers `client_addr`."""
        matcher = await self._current_matcher()
        return matcher.matches(client_addr, self._clock())
