"""
Image file storage.

Uploaded images live in one flat directory (IMAGES_DIR). Rows only keep the
generated filename; this module is the only place that touches the bytes.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Iterable
from uuid import uuid4

import aiofiles
from fastapi import HTTPException, UploadFile

from core import settings

ALLOWED_EXTENSIONS = {".png", ".jpg", ".jpeg", ".gif", ".webp", ".svg"}

DEFAULT_MAX_UPLOAD_BYTES = 10 * 1024 * 1024  # 10 MiB

logger = logging.getLogger(__name__)


def has_file(file: UploadFile | None) -> bool:
    """
    Browsers send an empty part for file inputs left blank; treat it as absent.
    """
    return file is not None and bool(file.filename)


def _file_ext(filename: str) -> str:
    return Path(filename).suffix.lower()


def validate_upload(file: UploadFile) -> str:
    """
    Return the normalized file extension if this upload is acceptable.
    """
    if not file.filename:
        raise HTTPException(status_code=400, detail="Missing filename.")

    ext = _file_ext(file.filename)
    if ext not in ALLOWED_EXTENSIONS:
        raise HTTPException(
            status_code=400,
            detail=f"Unsupported file type '{ext}'. Allowed: {sorted(ALLOWED_EXTENSIONS)}",
        )

    return ext


def max_upload_bytes() -> int:
    value = settings.env_int("MAX_UPLOAD_BYTES", DEFAULT_MAX_UPLOAD_BYTES)
    return value if value > 0 else DEFAULT_MAX_UPLOAD_BYTES


async def write_upload(file: UploadFile, path: Path, max_bytes: int) -> int:
    """
    Stream the upload to `path` in 1 MiB chunks, enforcing a maximum size.

    Returns the number of bytes written. On any failure the partial file is
    removed before the error propagates.
    """
    chunk_size = 1024 * 1024  # 1 MiB
    size = 0

    try:
        async with aiofiles.open(path, "wb") as out:
            while True:
                chunk = await file.read(chunk_size)
                if not chunk:
                    break
                size += len(chunk)
                if size > max_bytes:
                    raise HTTPException(
                        status_code=413,
                        detail=f"File too large. Max is {max_bytes} bytes.",
                    )
                await out.write(chunk)
    except BaseException:
        path.unlink(missing_ok=True)
        raise

    return size


def path_for(filename: str) -> Path:
    """
    Resolve a stored filename inside IMAGES_DIR.

    Only bare names are accepted; anything with a directory part is rejected
    so a row value can never point outside the image directory.
    """
    if not filename or Path(filename).name != filename or filename in {".", ".."}:
        raise ValueError(f"Invalid image filename: {filename!r}")
    return settings.images_dir() / filename


async def save_upload(file: UploadFile) -> str:
    """
    Validate and write one upload. Returns the generated filename.
    """
    ext = validate_upload(file)

    directory = settings.images_dir()
    directory.mkdir(parents=True, exist_ok=True)

    filename = f"{uuid4().hex}{ext}"
    size = await write_upload(file, directory / filename, max_bytes=max_upload_bytes())
    logger.info("image_saved filename=%s size_bytes=%s", filename, size)
    return filename


def delete_file(filename: str | None) -> bool:
    """
    Remove one stored image. Returns True when a file was actually removed.

    A missing file counts as already deleted. Other failures are logged and
    never raised to the caller.
    """
    if not filename:
        return False

    try:
        path = path_for(filename)
    except ValueError:
        logger.warning("image_delete_skipped filename=%r reason=invalid_name", filename)
        return False

    try:
        os.remove(path)
    except FileNotFoundError:
        return False
    except OSError:
        logger.exception("image_delete_failed filename=%s", filename)
        return False

    logger.info("image_deleted filename=%s", filename)
    return True


def delete_files(filenames: Iterable[str | None]) -> int:
    return sum(1 for name in filenames if delete_file(name))
