"""Upload validation, storage and guaranteed cleanup."""
from __future__ import annotations

import logging
import os
import re
import time
from contextlib import contextmanager
from typing import Iterator, Optional

from werkzeug.datastructures import FileStorage

from .errors import FileSystemError, ValidationError
from .models import ProcessingSettings, Upload

logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r"[^a-zA-Z0-9.-]")


def sanitize_filename(name: str) -> str:
    safe = _UNSAFE_CHARS.sub("_", os.path.basename(name or ""))
    # a bare "." or ".." would escape the uploads directory once joined
    if not safe.strip("."):
        safe = "upload"
    return safe


def upload_path(upload_dir: str, original_name: str, now_ms: Optional[int] = None) -> str:
    stamp = now_ms if now_ms is not None else int(time.time() * 1000)
    return os.path.join(upload_dir, f"{stamp}-{sanitize_filename(original_name)}")


def ensure_upload_dir(upload_dir: str) -> str:
    """Create the uploads directory tree. Errors propagate: a missing directory is fatal."""
    os.makedirs(upload_dir, exist_ok=True)
    return upload_dir


def format_size(n: int) -> str:
    """Human-readable byte count for error messages, e.g. 25 MB or 64 KB"""
    if n >= 1024 * 1024:
        return f"{round(n / (1024 * 1024), 1):g} MB"
    if n >= 1024:
        return f"{round(n / 1024, 1):g} KB"
    return f"{n} bytes"


def stream_size(file: FileStorage) -> int:
    stream = file.stream
    pos = stream.tell()
    stream.seek(0, os.SEEK_END)
    size = stream.tell()
    stream.seek(pos)
    return size


def validate_upload(file: Optional[FileStorage], prompt: str, settings: ProcessingSettings) -> int:
    """Check the request before anything touches disk. Returns the file size."""
    if file is None or not file.filename:
        raise ValidationError("No file uploaded.")
    if not prompt:
        raise ValidationError("No prompt provided.")
    if not settings.is_allowed_mime(file.mimetype):
        if settings.allow_pdf:
            raise ValidationError("Only image and PDF files are allowed.")
        raise ValidationError("Only image files are allowed.")
    size = stream_size(file)
    if size > settings.max_upload_bytes:
        raise ValidationError(f"File too large. Maximum size is {format_size(settings.max_upload_bytes)}.")
    if size == 0:
        raise ValidationError("Uploaded file is empty.")
    return size


def remove_file(path: str) -> None:
    """Delete a temp file. Already gone is fine; anything else is logged."""
    try:
        os.remove(path)
    except FileNotFoundError:
        return
    except OSError as e:
        err = FileSystemError(f"Could not delete {path}: {e}")
        logger.error("File cleanup error: %s", err)


@contextmanager
def stored_upload(file: FileStorage, size: int, settings: ProcessingSettings) -> Iterator[Upload]:
    """Write the upload to the uploads directory and remove it when the
    block exits, however it exits. This is the only place uploads are deleted."""
    path = upload_path(settings.upload_dir, file.filename)
    try:
        file.save(path)
        yield Upload(
            original_name=file.filename,
            mime_type=(file.mimetype or "").lower(),
            size=size,
            path=path,
        )
    finally:
        remove_file(path)
