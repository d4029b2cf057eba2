"""Tests for the content-addressed local media store."""

import asyncio
import hashlib
import io
import os

import pytest
from PIL import Image

from anonboard.core.errors import MediaError, MediaErrorCode
from anonboard.services import media
from anonboard.services.media import LocalMediaStore, render_thumbnail


def _leftover_temp_files(root) -> list[str]:
    return [name for _, _, files in os.walk(root) for name in files if name.startswith(".upload-")]


async def test_save_returns_sha256_and_writes_sharded_files(media_store, png_bytes) -> None:
    """The media id is the SHA-256 of the bytes and both files land in the shard directory."""
    data = png_bytes()
    media_id = await media_store.save(data, "image/png")

    assert media_id == hashlib.sha256(data).hexdigest()
    original = media_store.root / media_id[:2] / media_id[2:4] / media_id
    thumbnail = media_store.root / media_id[:2] / media_id[2:4] / f"thumb_{media_id}.webp"
    assert original.read_bytes() == data
    assert thumbnail.exists()
    assert media_store.path_of(media_id) == original
    assert media_store.thumbnail_path_of(media_id) == thumbnail
    assert _leftover_temp_files(media_store.root) == []


async def test_duplicate_save_does_not_rewrite(media_store, png_bytes) -> None:
    """Saving identical bytes twice returns the same id and leaves the file untouched."""
    data = png_bytes(color=(0, 128, 0))
    first = await media_store.save(data, "image/png")
    before = media_store.path_of(first).stat()

    second = await media_store.save(data, "application/octet-stream")

    after = media_store.path_of(second).stat()
    assert first == second
    assert before.st_ino == after.st_ino
    assert before.st_mtime_ns == after.st_mtime_ns


async def test_concurrent_saves_of_same_bytes(media_store, png_bytes) -> None:
    """Racing saves agree on the id and leave one intact original."""
    data = png_bytes(size=(40, 30))
    ids = await asyncio.gather(*(media_store.save(data, "image/png") for _ in range(8)))

    assert len(set(ids)) == 1
    assert media_store.path_of(ids[0]).read_bytes() == data
    assert media_store.thumbnail_path_of(ids[0]).exists()
    assert _leftover_temp_files(media_store.root) == []


async def test_losing_writer_leaves_published_original_untouched(media_store, png_bytes, monkeypatch) -> None:
    """When another save publishes first, the late writer neither replaces nor rewrites the file."""
    data = png_bytes(size=(24, 24))
    publish_thumbnail = media_store._publish_thumbnail
    winner = []

    def publish_after_rival(media_id: str, thumbnail: bytes) -> None:
        publish_thumbnail(media_id, thumbnail)
        rival = media_store.path_of(media_id)
        rival.write_bytes(data)
        winner.append(rival.stat())

    monkeypatch.setattr(media_store, "_publish_thumbnail", publish_after_rival)
    media_id = await media_store.save(data, "image/png")

    after = media_store.path_of(media_id).stat()
    assert after.st_ino == winner[0].st_ino
    assert after.st_mtime_ns == winner[0].st_mtime_ns
    assert after.st_nlink == 1
    assert _leftover_temp_files(media_store.root) == []


def test_urls_mirror_the_sharded_layout(media_store) -> None:
    media_id = hashlib.sha256(b"anything").hexdigest()
    assert media_store.url_of(media_id) == (
        f"/static/uploads/{media_id[:2]}/{media_id[2:4]}/{media_id}"
    )
    assert media_store.url_of(media_id).endswith(f"/{media_id[0:2]}/{media_id[2:4]}/{media_id}")
    assert media_store.thumbnail_url_of(media_id).endswith(
        f"/{media_id[0:2]}/{media_id[2:4]}/thumb_{media_id}.webp"
    )


def test_url_prefix_trailing_slash_is_ignored(tmp_path) -> None:
    store = LocalMediaStore(tmp_path, "/media/")
    media_id = "ab" * 32
    assert store.url_of(media_id) == f"/media/ab/ab/{media_id}"


@pytest.mark.parametrize("bad_id", ["", "abc", "G" * 64, "../" + "a" * 61, "A" * 64])
def test_malformed_ids_rejected(media_store, bad_id) -> None:
    with pytest.raises(MediaError) as excinfo:
        media_store.url_of(bad_id)
    assert excinfo.value.code is MediaErrorCode.INVALID_ID


async def test_undecodable_upload_leaves_nothing_behind(media_store) -> None:
    """A failed thumbnail rolls the original back so dedup stays truthful."""
    data = b"definitely not an image"
    with pytest.raises(MediaError) as excinfo:
        await media_store.save(data, "image/png")

    assert excinfo.value.code is MediaErrorCode.UNSUPPORTED_FORMAT
    media_id = hashlib.sha256(data).hexdigest()
    assert not media_store.path_of(media_id).exists()
    assert not media_store.thumbnail_path_of(media_id).exists()
    assert _leftover_temp_files(media_store.root) == []


async def test_truncated_image_is_a_decode_error(media_store, png_bytes) -> None:
    data = png_bytes(size=(64, 64))[:60]
    with pytest.raises(MediaError) as excinfo:
        await media_store.save(data, "image/png")
    assert excinfo.value.code is MediaErrorCode.DECODE
    assert not media_store.path_of(hashlib.sha256(data).hexdigest()).exists()


async def test_oversized_dimensions_refused_before_decode(media_store, png_bytes, monkeypatch) -> None:
    """A small file declaring too many pixels is a decode error and stores nothing."""
    monkeypatch.setattr(media, "MAX_SOURCE_PIXELS", 64 * 64 - 1)
    data = png_bytes(size=(64, 64))
    with pytest.raises(MediaError) as excinfo:
        await media_store.save(data, "image/png")
    assert excinfo.value.code is MediaErrorCode.DECODE
    assert not media_store.path_of(hashlib.sha256(data).hexdigest()).exists()
    assert _leftover_temp_files(media_store.root) == []


def test_source_pixel_cap_is_below_pillow_warning_band() -> None:
    assert media.MAX_SOURCE_PIXELS < Image.MAX_IMAGE_PIXELS


async def test_thumbnail_publish_failure_rolls_back(media_store, png_bytes, mocker) -> None:
    """An I/O error while publishing the thumbnail leaves no original at the final path."""
    data = png_bytes(size=(10, 10))
    mocker.patch.object(
        LocalMediaStore,
        "_publish_thumbnail",
        side_effect=MediaError(MediaErrorCode.IO, "disk full"),
    )
    with pytest.raises(MediaError):
        await media_store.save(data, "image/png")
    assert not media_store.path_of(hashlib.sha256(data).hexdigest()).exists()
    assert _leftover_temp_files(media_store.root) == []


def test_thumbnail_fits_box_and_keeps_aspect(png_bytes) -> None:
    thumbnail = render_thumbnail(png_bytes(size=(1000, 500)))
    with Image.open(io.BytesIO(thumbnail)) as image:
        assert image.format == "WEBP"
        assert image.size == (250, 125)


def test_small_images_are_not_enlarged(png_bytes) -> None:
    thumbnail = render_thumbnail(png_bytes(size=(2, 2)))
    with Image.open(io.BytesIO(thumbnail)) as image:
        assert image.size == (2, 2)


def test_format_is_sniffed_not_declared() -> None:
    """A GIF with palette transparency is decoded and converted for WebP."""
    buffer = io.BytesIO()
    Image.new("P", (300, 300), 0).save(buffer, format="GIF", transparency=0)
    thumbnail = render_thumbnail(buffer.getvalue())
    with Image.open(io.BytesIO(thumbnail)) as image:
        assert image.format == "WEBP"
        assert max(image.size) == 250
