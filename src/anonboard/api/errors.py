"""Mapping of domain errors to HTTP responses."""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import PlainTextResponse

from anonboard.core.errors import BoardError, InternalError

logger = logging.getLogger(__name__)


async def board_error_handler(request: Request, exc: Exception) -> PlainTextResponse:
    """Render a `BoardError` with its status code and fixed public message."""
    if not isinstance(exc, BoardError):  # pragma: no cover - registered for BoardError only
        raise exc
    if isinstance(exc, InternalError):
        logger.error("%s %s failed: %s", request.method, request.url.path, exc, exc_info=exc)
    else:
        logger.info("%s %s rejected: %s", request.method, request.url.path, exc)
    return PlainTextResponse(exc.public_message, status_code=exc.status_code)


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(BoardError, board_error_handler)
