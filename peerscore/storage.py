import logging
import os
import re
import time
from pathlib import Path

from fastapi import UploadFile

logger = logging.getLogger(__name__)

UPLOAD_DIR = Path(os.getenv("UPLOAD_DIR", "uploads"))
MAX_UPLOAD_BYTES = int(os.getenv("MAX_UPLOAD_BYTES", str(20 * 1024 * 1024)))  # 20 MB

_UNSAFE_CHARS_RE = re.compile(r"[^A-Za-z0-9._-]+")


class UploadError(Exception):
    """Raised when an uploaded file cannot be accepted."""


def _safe_name(filename: str) -> str:
    name = _UNSAFE_CHARS_RE.sub("_", Path(filename).name).strip("._")
    return name or "upload"


async def save_upload(upload: UploadFile) -> str:
    """Save an upload as ``<epoch millis>-<name>`` and return its public URL."""
    content = await upload.read()

    if len(content) > MAX_UPLOAD_BYTES:
        raise UploadError(f"File must be under {MAX_UPLOAD_BYTES // (1024 * 1024)} MB.")

    UPLOAD_DIR.mkdir(parents=True, exist_ok=True)
    stored_name = f"{int(time.time() * 1000)}-{_safe_name(upload.filename or '')}"
    (UPLOAD_DIR / stored_name).write_bytes(content)

    logger.info("Saved upload %s (%d bytes)", stored_name, len(content))
    return f"/uploads/{stored_name}"


def resolve_upload(file_url: str) -> Path:
    """Map a ``/uploads/...`` URL back to its path on disk."""
    return UPLOAD_DIR / Path(file_url).name
