"""Administrative commands: schema creation, board provisioning and bans."""
from __future__ import annotations

import argparse
import asyncio
import getpass
import ipaddress
import logging
import sys
from collections.abc import Sequence
from datetime import timedelta

from anonboard.core.errors import BoardError, UnauthorizedError
from anonboard.core.logging import configure_logging
from anonboard.core.security import hash_password
from anonboard.core.settings import settings
from anonboard.db.time import utcnow
from anonboard.repositories import SqlBoardRepository
from anonboard.schemas import Ban, Board
from anonboard.services.assembly import build_identity

logger = logging.getLogger(__name__)


async def init_db(database_url: str) -> None:
    """Create any missing tables."""
    repository = SqlBoardRepository.from_url(database_url)
    try:
        await repository.create_schema()
    finally:
        await repository.dispose()
    print("[anonboard-admin] schema ready")


async def add_board(
    database_url: str,
    slug: str,
    title: str,
    description: str | None,
    max_file_size: int | None,
) -> Board:
    """Provision a board, creating the schema first if needed."""
    board_settings = {"max_file_size": max_file_size} if max_file_size else {}
    board = Board(slug=slug, title=title, description=description, settings=board_settings)
    repository = SqlBoardRepository.from_url(database_url)
    try:
        await repository.create_schema()
        await repository.create_board(board)
    finally:
        await repository.dispose()
    print(f"[anonboard-admin] created /{board.slug}/ ({board.id})")
    return board


async def add_ban(
    database_url: str,
    address: str,
    reason: str,
    hours: float | None,
    *,
    password: str,
    stored_hash: str,
) -> Ban:
    """Ban an address or CIDR range, permanently unless `hours` is given.

    Raises:
        UnauthorizedError: `password` does not verify against `stored_hash`.
    """
    expires_at = utcnow() + timedelta(hours=hours) if hours else None
    ban = Ban(ip_address=address, reason=reason, expires_at=expires_at)
    repository = SqlBoardRepository.from_url(database_url)
    try:
        identity = build_identity(settings, repository)
        if not identity.verify_moderator(password, stored_hash):
            logger.warning("Rejected ban of %s: moderator password mismatch", address)
            raise UnauthorizedError("invalid moderator password")
        await repository.create_schema()
        await repository.add_ban(ban)
    finally:
        await repository.dispose()
    until = expires_at.isoformat() if expires_at else "permanent"
    print(f"[anonboard-admin] banned {address} ({until})")
    return ban


def _check_ban_target(value: str) -> str:
    try:
        ipaddress.ip_network(value.strip(), strict=False)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"not an address or CIDR range: {value!r}") from exc
    return value.strip()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="anonboard-admin", description="Manage an anonboard installation")
    parser.add_argument(
        "--database-url",
        default=None,
        help="Override database URL (defaults to DATABASE_URL)",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("init-db", help="Create missing tables")

    board = commands.add_parser("add-board", help="Provision a board")
    board.add_argument("slug")
    board.add_argument("title")
    board.add_argument("--description", default=None)
    board.add_argument("--max-file-size", type=int, default=None, help="Upload cap in bytes")

    ban = commands.add_parser("ban", help="Ban an address or CIDR range (moderator password required)")
    ban.add_argument("address", type=_check_ban_target)
    ban.add_argument("--reason", required=True)
    ban.add_argument("--hours", type=float, default=None, help="Duration; permanent when omitted")
    ban.add_argument("--password", default=None, help="Moderator password (prompted when omitted)")

    hashing = commands.add_parser("hash-password", help="Print an Argon2id hash for MODERATOR_PASSWORD_HASH")
    hashing.add_argument("--password", default=None, help="Password (prompted when omitted)")
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    configure_logging(settings.log_level)
    args = build_parser().parse_args(argv)
    database_url = args.database_url or settings.database_url

    try:
        if args.command == "init-db":
            asyncio.run(init_db(database_url))
        elif args.command == "add-board":
            asyncio.run(add_board(database_url, args.slug, args.title, args.description, args.max_file_size))
        elif args.command == "ban":
            stored_hash = settings.moderator_password_hash
            if not stored_hash:
                print("[anonboard-admin] ERROR: MODERATOR_PASSWORD_HASH is not set", file=sys.stderr)
                return 2
            password = args.password if args.password is not None else getpass.getpass("Moderator password: ")
            asyncio.run(
                add_ban(
                    database_url,
                    args.address,
                    args.reason,
                    args.hours,
                    password=password,
                    stored_hash=stored_hash,
                )
            )
        elif args.command == "hash-password":
            password = args.password if args.password is not None else getpass.getpass("Password: ")
            print(hash_password(password))
    except BoardError as exc:
        print(f"[anonboard-admin] ERROR: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
