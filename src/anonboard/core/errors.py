"""Error taxonomy shared by the ports, the ingestion pipeline and the HTTP layer.

Every failure raised by a port maps into one of the `BoardError` kinds. The
HTTP boundary turns them into responses exactly once; the message shown to
users comes from `public_message`, never from the exception text.
"""

from __future__ import annotations

from enum import Enum


class BoardError(Exception):
    """Base class for all domain failures."""

    status_code: int = 500
    public_message: str = "Internal server error"


class NotFoundError(BoardError):
    """A board, thread or post does not exist."""

    status_code = 404
    public_message = "Not found"

    def __init__(self, entity: str, key: object) -> None:
        super().__init__(f"{entity} not found with ID {key}")
        self.entity = entity
        self.key = key


class ValidationError(BoardError):
    """Input violates a precondition (bad field, oversize upload, ...)."""

    status_code = 400
    public_message = "Invalid submission"

    def __init__(self, reason: str) -> None:
        super().__init__(f"validation error: {reason}")
        self.reason = reason


class UnauthorizedError(BoardError):
    """Client is banned or presented invalid staff credentials."""

    status_code = 403
    public_message = "You are banned."

    def __init__(self, reason: str) -> None:
        super().__init__(f"unauthorized: {reason}")
        self.reason = reason


class ConflictError(BoardError):
    """Write collides with existing state (duplicate slug, locked thread)."""

    status_code = 409
    public_message = "Conflict"

    def __init__(self, reason: str) -> None:
        super().__init__(f"conflict: {reason}")
        self.reason = reason


class RateLimitExceededError(BoardError):
    """Client is posting too fast."""

    status_code = 429
    public_message = "Too many requests"

    def __init__(self, reason: str) -> None:
        super().__init__(f"too many requests: {reason}")
        self.reason = reason


class InternalError(BoardError):
    """Infrastructure failure (database, filesystem, image codec)."""

    status_code = 500
    public_message = "Internal server error"

    def __init__(self, cause: str) -> None:
        super().__init__(f"internal service error: {cause}")
        self.cause = cause


class MediaErrorCode(str, Enum):
    """Cause codes carried by `MediaError`."""

    INVALID_ID = "invalid_id"
    DECODE = "decode"
    UNSUPPORTED_FORMAT = "unsupported_format"
    IO = "io"
    ENCODE = "encode"


class MediaError(RuntimeError):
    """Raised by media stores; the code tells the causes apart."""

    def __init__(self, code: MediaErrorCode, detail: str = "") -> None:
        message = f"media error ({code.value})"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)
        self.code = code
        self.detail = detail


__all__ = [
    "BoardError",
    "ConflictError",
    "InternalError",
    "MediaError",
    "MediaErrorCode",
    "NotFoundError",
    "RateLimitExceededError",
    "UnauthorizedError",
    "ValidationError",
]
