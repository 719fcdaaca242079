"""File validation utilities for member document uploads.

Security: Validates file content (magic bytes), enforces size limits,
and sanitizes filenames before they become part of a storage path.
"""

import re
from typing import TYPE_CHECKING

import magic
import structlog

if TYPE_CHECKING:
    from fastapi import UploadFile

from memberlink.core.errors import ValidationError

logger = structlog.get_logger()

# Maximum identity document size (5 MiB)
MAX_FILE_SIZE_BYTES = 5 * 1024 * 1024

# Chunk size for reading files (64 KB)
CHUNK_SIZE_BYTES = 64 * 1024

# Identity documents arrive as scans or phone photos
ALLOWED_MIMES: dict[str, str] = {
    "application/pdf": "PDF",
    "image/jpeg": "JPEG",
    "image/png": "PNG",
}


async def read_file_with_size_limit(
    file: "UploadFile",
    max_size: int = MAX_FILE_SIZE_BYTES,
) -> bytes:
    """Read file content with size limit to prevent DoS.

    Args:
        file: UploadFile from FastAPI.
        max_size: Maximum allowed file size in bytes.

    Returns:
        File content as bytes.

    Raises:
        ValidationError: If file exceeds size limit.
    """
    content = b""
    total_size = 0

    while True:
        chunk = await file.read(CHUNK_SIZE_BYTES)
        if not chunk:
            break
        total_size += len(chunk)
        if total_size > max_size:
            raise ValidationError(
                message=f"File must be under {max_size // (1024 * 1024)}MB",
                details=[{"field": "file", "error": "FILE_TOO_LARGE"}],
            )
        content += chunk

    return content


def validate_file_content(content: bytes, filename: str) -> str:
    """Validate file content using magic bytes (not just extension).

    Args:
        content: File binary content.
        filename: Original filename (for server-side logging).

    Returns:
        Detected MIME type.

    Raises:
        ValidationError: If file content doesn't match allowed MIME types.
    """
    detected_mime = magic.from_buffer(content, mime=True)

    if detected_mime not in ALLOWED_MIMES:
        # Log detected MIME for server-side debugging; do NOT expose to client
        logger.warning(
            "File content validation failed",
            detected_mime=detected_mime,
            filename=filename,
        )
        raise ValidationError(
            message="Invalid file type. Allowed: PDF, JPEG, PNG.",
            details=[{"field": "file", "error": "INVALID_FILE_CONTENT"}],
        )

    return detected_mime


def sanitize_filename(filename: str, max_length: int = 100) -> str:
    """Sanitize an uploaded filename for use inside a storage path.

    Path separators and anything outside a conservative character set are
    replaced, so the member cannot steer the storage location.

    Args:
        filename: Original filename from the client.
        max_length: Maximum allowed filename length.

    Returns:
        Sanitized filename.
    """
    safe = re.sub(r"[^A-Za-z0-9._-]", "_", filename)

    # No leading dots (hidden files, "..")
    safe = safe.lstrip(".")

    if len(safe) > max_length:
        # Preserve extension if present
        if "." in safe:
            name, ext = safe.rsplit(".", 1)
            ext = f".{ext}"
            safe = name[: max_length - len(ext)] + ext
        else:
            safe = safe[:max_length]

    if not safe:
        safe = "upload"

    return safe
