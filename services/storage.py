"""Storage service for event attachments (local disk, one bucket directory)."""

import logging
import re
import time
from pathlib import Path, PurePosixPath
from uuid import UUID

from fastapi import UploadFile

import config

logger = logging.getLogger(__name__)

MAX_STEM_LENGTH = 100
_WHITESPACE = re.compile(r"\s+")
_UNSAFE = re.compile(r"[^A-Za-z0-9_-]")


def _bucket_dir() -> Path:
    return Path(config.settings.STORAGE_DIR) / config.settings.STORAGE_BUCKET


def sanitize_filename(filename: str) -> str:
    """
    Make a filename safe for use in a storage key.

    The extension is kept, whitespace becomes "_", anything outside
    [A-Za-z0-9_-] is dropped from the stem, and the stem is truncated to
    100 characters.

    Args:
        filename: Original client filename

    Returns:
        Sanitized filename (never empty)
    """
    name = filename.replace("\\", "/").rsplit("/", 1)[-1]
    stem, dot, extension = name.rpartition(".")
    if not dot or not stem:
        stem, extension = name, ""

    stem = _UNSAFE.sub("", _WHITESPACE.sub("_", stem))[:MAX_STEM_LENGTH] or "file"
    extension = _UNSAFE.sub("", extension)
    return f"{stem}.{extension}" if extension else stem


def now_ms() -> int:
    return int(time.time() * 1000)


def generate_storage_key(
    user_id: UUID,
    task_id: str,
    filename: str,
    timestamp_ms: int | None = None,
) -> str:
    """
    Generate a storage key for an attachment.

    Args:
        user_id: Uploading user's ID
        task_id: Plan item the attachment belongs to
        filename: Original filename (will be sanitized)
        timestamp_ms: Upload time in epoch milliseconds (defaults to now)

    Returns:
        Storage key of the form "{user_id}/{task_id}/{epoch_ms}-{sanitized}"
    """
    if timestamp_ms is None:
        timestamp_ms = now_ms()
    safe_task = _UNSAFE.sub("", task_id) or "task"
    return f"{user_id}/{safe_task}/{timestamp_ms}-{sanitize_filename(filename)}"


def resolve_path(storage_key: str) -> Path:
    """
    Map a storage key to a path inside the bucket directory.

    Raises:
        ValueError: If the key is absolute or escapes the bucket
    """
    key = PurePosixPath(storage_key)
    if key.is_absolute() or ".." in key.parts:
        raise ValueError(f"Invalid storage key: {storage_key}")
    return _bucket_dir().joinpath(*key.parts)


def public_url(storage_key: str) -> str:
    base = config.settings.PUBLIC_STORAGE_BASE_URL.rstrip("/")
    return f"{base}/{config.settings.STORAGE_BUCKET}/{storage_key}"


async def save_upload(
    file: UploadFile,
    storage_key: str,
) -> int:
    """
    Save uploaded file to local disk. An existing file is never overwritten.

    Args:
        file: FastAPI UploadFile object
        storage_key: Storage key from generate_storage_key

    Returns:
        Number of bytes written

    Raises:
        FileExistsError: If the key is already taken
        OSError: If directory creation or file write fails
    """
    full_path = resolve_path(storage_key)
    full_path.parent.mkdir(parents=True, exist_ok=True)

    content = await file.read()

    with open(full_path, "xb") as f:
        bytes_written = f.write(content)

    logger.debug("Stored %s (%d bytes)", storage_key, bytes_written)
    return bytes_written


async def delete_file(storage_key: str) -> None:
    """
    Delete a file from storage. Missing files are ignored.

    Raises:
        OSError: If file deletion fails
    """
    full_path = resolve_path(storage_key)
    if full_path.exists():
        full_path.unlink()
