"""Local filesystem media store.

Uploads are content-addressed: the SHA-256 of the bytes is the media id and
the file name. Files are sharded two levels deep by hash prefix:

    <root>/ab/cd/abcd...            original
    <root>/ab/cd/thumb_abcd....webp thumbnail (max 250x250)

An original never appears at its final path without its thumbnail, so
"original exists" is a truthful dedup check.
"""

from __future__ import annotations

import asyncio
import hashlib
import io
import logging
import os
import re
import tempfile
from pathlib import Path

from PIL import Image, ImageOps, UnidentifiedImageError

from anonboard.core.errors import MediaError, MediaErrorCode

logger = logging.getLogger(__name__)

THUMBNAIL_MAX_SIDE = 250
THUMBNAIL_QUALITY = 80
# Sources above this many pixels are refused before decoding.
MAX_SOURCE_PIXELS = 25_000_000
_MEDIA_ID = re.compile(r"^[0-9a-f]{64}$")


def _shards(media_id: str) -> tuple[str, str]:
    if not _MEDIA_ID.match(media_id):
        raise MediaError(MediaErrorCode.INVALID_ID, repr(media_id))
    return media_id[0:2], media_id[2:4]


def render_thumbnail(data: bytes) -> bytes:
    """Decode an image of any supported format and return a WebP thumbnail.

    The format is sniffed from the bytes. The result fits in a
    250x250 box with the aspect ratio preserved; smaller images are not
    enlarged.

    Raises:
        MediaError: `unsupported_format`, `decode` or `encode`.
    """
    try:
        image = Image.open(io.BytesIO(data))
    except UnidentifiedImageError as exc:
        raise MediaError(MediaErrorCode.UNSUPPORTED_FORMAT, str(exc)) from exc
    except (OSError, EOFError, ValueError, Image.DecompressionBombError) as exc:
        raise MediaError(MediaErrorCode.DECODE, str(exc)) from exc

    width, height = image.size
    if width * height > MAX_SOURCE_PIXELS:
        image.close()
        raise MediaError(MediaErrorCode.DECODE, f"{width}x{height} exceeds {MAX_SOURCE_PIXELS} pixels")

    try:
        with image:
            image.load()
            image = ImageOps.exif_transpose(image)
            image.thumbnail((THUMBNAIL_MAX_SIDE, THUMBNAIL_MAX_SIDE))
            has_alpha = image.mode in ("RGBA", "LA", "PA") or (
                image.mode == "P" and "transparency" in image.info
            )
            if image.mode not in ("RGB", "RGBA"):
                image = image.convert("RGBA" if has_alpha else "RGB")
    except (OSError, EOFError, SyntaxError, ValueError, Image.DecompressionBombError) as exc:
        raise MediaError(MediaErrorCode.DECODE, str(exc)) from exc

    buffer = io.BytesIO()
    try:
        image.save(buffer, format="WEBP", quality=THUMBNAIL_QUALITY)
    except (OSError, ValueError, KeyError) as exc:
        raise MediaError(MediaErrorCode.ENCODE, str(exc)) from exc
    return buffer.getvalue()


class LocalMediaStore:
    """Media store writing under `root` and serving under `url_prefix`."""

    def __init__(self, root: str | os.PathLike[str], url_prefix: str) -> None:
        self.root = Path(root)
        self.url_prefix = url_prefix.rstrip("/")

    def path_of(self, media_id: str) -> Path:
        """Return the on-disk path of the original."""
        first, second = _shards(media_id)
        return self.root / first / second / media_id

    def thumbnail_path_of(self, media_id: str) -> Path:
        """Return the on-disk path of the thumbnail."""
        first, second = _shards(media_id)
        return self.root / first / second / f"thumb_{media_id}.webp"

    def url_of(self, media_id: str) -> str:
        first, second = _shards(media_id)
        return f"{self.url_prefix}/{first}/{second}/{media_id}"

    def thumbnail_url_of(self, media_id: str) -> str:
        first, second = _shards(media_id)
        return f"{self.url_prefix}/{first}/{second}/thumb_{media_id}.webp"

    async def save(self, data: bytes, declared_content_type: str) -> str:
        """Store `data` and return its SHA-256 hex digest.

        `declared_content_type` is advisory; decoding follows the sniffed
        format. Saving bytes that are already stored is a no-op.

        Raises:
            MediaError: On decode, encode or filesystem failures.
        """
        return await asyncio.to_thread(self._save_blocking, data, declared_content_type)

    def _save_blocking(self, data: bytes, declared_content_type: str) -> str:
        media_id = hashlib.sha256(data).hexdigest()
        target = self.path_of(media_id)
        if target.exists():
            logger.debug("Media %s already stored", media_id)
            return media_id

        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            staged = self._stage(target.parent, data)
        except OSError as exc:
            raise MediaError(MediaErrorCode.IO, str(exc)) from exc

        try:
            thumbnail = render_thumbnail(data)
            self._publish_thumbnail(media_id, thumbnail)
        except Exception:
            self._discard(staged)
            logger.warning(
                "Thumbnail for %s (declared %s) failed; upload rolled back",
                media_id,
                declared_content_type or "unknown",
            )
            raise

        # link() never replaces, so exactly one racing writer publishes.
        try:
            os.link(staged, target)
        except FileExistsError:
            logger.debug("Media %s published by a concurrent save", media_id)
        except OSError as exc:
            self._discard(staged)
            self._remove_thumbnail(media_id)
            raise MediaError(MediaErrorCode.IO, str(exc)) from exc
        else:
            logger.info("Stored media %s (%d bytes)", media_id, len(data))
        self._discard(staged)
        return media_id

    @staticmethod
    def _stage(directory: Path, data: bytes) -> Path:
        fd, name = tempfile.mkstemp(dir=directory, prefix=".upload-")
        try:
            with os.fdopen(fd, "wb") as handle:
                handle.write(data)
        except OSError:
            LocalMediaStore._discard(Path(name))
            raise
        return Path(name)

    def _publish_thumbnail(self, media_id: str, thumbnail: bytes) -> None:
        destination = self.thumbnail_path_of(media_id)
        try:
            staged = self._stage(destination.parent, thumbnail)
        except OSError as exc:
            raise MediaError(MediaErrorCode.IO, str(exc)) from exc
        try:
            os.replace(staged, destination)
        except OSError as exc:
            self._discard(staged)
            raise MediaError(MediaErrorCode.IO, str(exc)) from exc

    def _remove_thumbnail(self, media_id: str) -> None:
        destination = self.thumbnail_path_of(media_id)
        for attempt in (1, 2):
            try:
                destination.unlink(missing_ok=True)
                return
            except OSError as exc:
                logger.warning("Removing thumbnail %s failed (attempt %d): %s", destination, attempt, exc)

    @staticmethod
    def _discard(path: Path) -> None:
        try:
            path.unlink(missing_ok=True)
        except OSError as exc:
            logger.warning("Could not remove temporary file %s: %s", path, exc)
