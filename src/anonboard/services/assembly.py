"""Startup-time selection of port implementations.

Each port has a static registry of backend factories keyed by the name
configured in settings (`REPOSITORY_BACKEND`, `MEDIA_BACKEND`,
`IDENTITY_BACKEND`).
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from anonboard.core.settings import Settings
from anonboard.repositories import InMemoryBoardRepository, SqlBoardRepository
from anonboard.services.identity import SimpleIdentityProvider
from anonboard.services.media import LocalMediaStore
from anonboard.services.ports import BoardRepository, IdentityProvider, MediaStore, Ports

logger = logging.getLogger(__name__)


def _sql_repository(settings: Settings) -> BoardRepository:
    return SqlBoardRepository.from_url(settings.database_url, echo=settings.sql_debug)


def _memory_repository(settings: Settings) -> BoardRepository:
    return InMemoryBoardRepository()


def _local_media(settings: Settings) -> MediaStore:
    return LocalMediaStore(settings.upload_root, settings.upload_url_prefix)


def _simple_identity(settings: Settings, secret: bytes, repository: BoardRepository) -> IdentityProvider:
    return SimpleIdentityProvider(secret, repository, cache_seconds=settings.ban_cache_seconds)


REPOSITORY_BACKENDS: dict[str, Callable[[Settings], BoardRepository]] = {
    "sqlalchemy": _sql_repository,
    "memory": _memory_repository,
}

MEDIA_BACKENDS: dict[str, Callable[[Settings], MediaStore]] = {
    "local": _local_media,
}

IDENTITY_BACKENDS: dict[str, Callable[[Settings, bytes, BoardRepository], IdentityProvider]] = {
    "simple": _simple_identity,
}


def _lookup(registry: dict[str, Callable], kind: str, name: str) -> Callable:
    try:
        return registry[name]
    except KeyError:
        known = ", ".join(sorted(registry))
        raise ValueError(f"unknown {kind} backend {name!r} (expected one of: {known})") from None


def build_identity(settings: Settings, ban_source: BoardRepository) -> IdentityProvider:
    """Instantiate the configured identity provider with a fresh session secret.

    Raises:
        ValueError: If the identity backend name is not registered.
    """
    make_identity = _lookup(IDENTITY_BACKENDS, "identity", settings.identity_backend)
    return make_identity(settings, settings.session_secret_bytes(), ban_source)


def build_ports(settings: Settings) -> Ports:
    """Instantiate the configured backends.

    The session secret is drawn here, once per call; the returned `Ports`
    must be kept for the lifetime of the process.

    Raises:
        ValueError: If a backend name is not registered.
    """
    make_repository = _lookup(REPOSITORY_BACKENDS, "repository", settings.repository_backend)
    make_media = _lookup(MEDIA_BACKENDS, "media", settings.media_backend)
    # Reject an unknown identity backend before any backend is built.
    _lookup(IDENTITY_BACKENDS, "identity", settings.identity_backend)

    repository = make_repository(settings)
    media = make_media(settings)
    identity = build_identity(settings, repository)
    logger.info(
        "Ports: repository=%s media=%s identity=%s",
        settings.repository_backend,
        settings.media_backend,
        settings.identity_backend,
    )
    return Ports(repository=repository, media=media, identity=identity)


async def prepare_ports(ports: Ports) -> None:
    """Create the relational schema when the repository supports it."""
    create_schema = getattr(ports.repository, "create_schema", None)
    if create_schema is not None:
        await create_schema()
