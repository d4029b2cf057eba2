"""Hashing utilities for pseudonymous identities and staff credentials."""
from __future__ import annotations

import base64
import hashlib

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError

THREAD_ID_LENGTH = 8
TRIPCODE_LENGTH = 10

_password_hasher = PasswordHasher()


def thread_scoped_id(session_secret: bytes, client_addr: str, thread_id: str) -> str:
    """Return the 8-character pseudonym of a client inside one thread.

    Args:
        session_secret: Process-lifetime secret mixed into every digest.
        client_addr: Textual client address as seen by the server.
        thread_id: Canonical string form of the thread UUID.

    Returns:
        The first eight lowercase hex characters of
        SHA-256(secret || address || thread id).
    """
    hasher = hashlib.sha256()
    hasher.update(session_secret)
    hasher.update(client_addr.encode("utf-8"))
    hasher.update(thread_id.encode("utf-8"))
    return hasher.hexdigest()[:THREAD_ID_LENGTH]


def tripcode(password: str) -> str:
    """Return the public tripcode for a password.

    Not a password hash: equal passwords always give equal tripcodes.
    """
    digest = hashlib.sha256(password.encode("utf-8")).digest()
    return "!" + base64.b64encode(digest).decode("ascii")[:TRIPCODE_LENGTH]


def split_name_and_password(raw_name: str) -> tuple[str, str | None]:
    """Split a `display#password` name field into name and tripcode password."""
    name, sep, password = raw_name.partition("#")
    if not sep or not password:
        return name.strip(), None
    return name.strip(), password


def verify_password_hash(password: str, stored_hash: str) -> bool:
    """Verify a password against an Argon2 PHC string.

    Returns:
        True on a match; False on a mismatch or any malformed hash.
    """
    try:
        return _password_hasher.verify(stored_hash, password)
    except (VerificationError, InvalidHashError):
        return False


def hash_password(password: str) -> str:
    """Return a fresh Argon2id PHC string for `password`."""
    return _password_hasher.hash(password)
