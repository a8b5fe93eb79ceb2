"""
Storage for the optional image attached to a listing submission.

Files land flat in ``settings.uploads_dir`` under a collision-resistant
name, ``<prefix>-<time_ns>-<random><ext>``, and are referenced from the
record as ``/uploads/<name>``.
"""

import re
import secrets
import time
from pathlib import Path
from typing import Optional

from fastapi import UploadFile
from fastapi.concurrency import run_in_threadpool

from app.config import Settings
from app.core import metrics
from app.core.exceptions import StorageFault, ValidationError
from app.core.logging_config import get_logger

logger = get_logger(__name__)

UPLOADS_URL_PREFIX = "/uploads"
_EXTENSION_PATTERN = re.compile(r"\.[a-z0-9]{1,10}")

# Stored extension follows the validated content type, never the client's filename
IMAGE_EXTENSIONS = {
    "image/jpeg": ".jpg",
    "image/jpg": ".jpg",
    "image/pjpeg": ".jpg",
    "image/png": ".png",
    "image/gif": ".gif",
    "image/webp": ".webp",
}


class UploadHandler:
    """Validates and writes one uploaded image per submission."""

    def __init__(self, app_settings: Settings):
        self.uploads_dir = app_settings.uploads_dir
        self.filename_prefix = app_settings.UPLOAD_FILENAME_PREFIX
        self.max_bytes = app_settings.UPLOAD_MAX_BYTES
        self.allowed_types = {ct.lower() for ct in app_settings.UPLOAD_ALLOWED_CONTENT_TYPES}

    @staticmethod
    def has_file(upload: Optional[UploadFile]) -> bool:
        return bool(upload is not None and upload.filename)

    def extension_for(self, original_name: str, content_type: Optional[str]) -> str:
        """
        Extension of the stored file.

        With an allow-list in force the extension comes from the validated
        content type, so a ``.html`` name declared as ``image/png`` is stored
        as ``.png``. Only without an allow-list is the client's (sanitized)
        extension kept.
        """
        if self.allowed_types:
            return IMAGE_EXTENSIONS.get((content_type or "").lower(), "")
        suffix = Path(original_name).suffix.lower()
        return suffix if _EXTENSION_PATTERN.fullmatch(suffix) else ""

    def generate_filename(self, original_name: str, content_type: Optional[str] = None) -> str:
        suffix = self.extension_for(original_name, content_type)
        return f"{self.filename_prefix}-{time.time_ns()}-{secrets.randbelow(10**9)}{suffix}"

    async def read_validated(self, upload: UploadFile) -> bytes:
        """
        Read the upload body, enforcing content type and size limits.

        Raises:
            ValidationError: unsupported type, empty file or too large.
        """
        content_type = (upload.content_type or "").lower()
        if self.allowed_types and content_type not in self.allowed_types:
            raise ValidationError("Unsupported image type.", reason="image_type")

        data = await upload.read(self.max_bytes + 1)
        if not data:
            raise ValidationError("Image file is empty.", reason="image_empty")
        if len(data) > self.max_bytes:
            raise ValidationError(
                f"Image exceeds {self.max_bytes // 1024} KiB.", reason="image_too_large"
            )
        return data

    def store(self, data: bytes, original_name: str, content_type: Optional[str] = None) -> str:
        """Write ``data`` under a fresh name and return its public path."""
        filename = self.generate_filename(original_name, content_type)
        destination = self.uploads_dir / filename
        try:
            # "xb": never overwrite an existing upload
            with open(destination, "xb") as f:
                f.write(data)
        except OSError as e:
            raise StorageFault(
                "Uploaded image could not be saved.",
                operation="upload",
                detail=f"{destination}: {e}",
            ) from e

        metrics.uploads_stored_total.inc()
        logger.info("upload_stored", filename=filename, size_bytes=len(data))
        return f"{UPLOADS_URL_PREFIX}/{filename}"

    async def save(self, upload: Optional[UploadFile]) -> Optional[str]:
        """Validate and persist ``upload``; None when nothing was submitted."""
        if not self.has_file(upload):
            return None
        data = await self.read_validated(upload)
        return await run_in_threadpool(self.store, data, upload.filename, upload.content_type)

    def discard(self, image_path: Optional[str]) -> None:
        """Remove a stored upload whose listing could not be saved."""
        if not image_path or not image_path.startswith(f"{UPLOADS_URL_PREFIX}/"):
            return
        target = self.uploads_dir / Path(image_path).name
        try:
            target.unlink()
        except FileNotFoundError:
            return
        except OSError as e:
            logger.warning("upload_discard_failed", path=str(target), error=str(e))
            return
        logger.info("upload_discarded", filename=target.name)
