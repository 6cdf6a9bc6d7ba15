"""
File Upload Security.

Validation applied to every contact-list upload before it touches disk:
- File type validation (extension + magic bytes)
- File size limits
- Filename sanitization
- Path traversal prevention

Usage:
    from security.file_upload_security import validate_upload

    secure_file = await validate_upload(
        file,
        allowed_types={"csv", "xlsx"},
        max_size_bytes=10 * 1024 * 1024,
    )
"""

from __future__ import annotations

import hashlib
import logging
import os
import re
import uuid
from dataclasses import dataclass
from typing import Dict, List, Optional, Set

from fastapi import UploadFile

from security.api_errors import ValidationError

logger = logging.getLogger(__name__)


# Magic bytes (file signatures) for accepted upload types
MAGIC_BYTES: Dict[str, List[bytes]] = {
    "xlsx": [b"PK\x03\x04"],  # ZIP-based (Office Open XML)
    "xls": [b"\xd0\xcf\x11\xe0"],  # OLE2 compound document
    "csv": [],  # No magic bytes for plain text
}

READ_CHUNK_BYTES = 64 * 1024


@dataclass
class SecureUpload:
    """Result of secure file upload validation."""
    original_filename: str
    safe_filename: str
    extension: str
    size_bytes: int
    file_hash: str
    content: bytes


def sanitize_filename(filename: str) -> str:
    """
    Sanitize filename to prevent path traversal and other attacks.

    - Removes path separators
    - Removes null bytes and control characters
    - Limits length
    - Generates safe name if original is invalid
    """
    if not filename:
        return f"upload_{uuid.uuid4().hex[:8]}"

    # Remove path components (prevent traversal); handle both separators
    filename = os.path.basename(filename.replace("\\", "/"))

    filename = ''.join(c for c in filename if ord(c) >= 32)

    # Keep only alphanumeric, dots, underscores, hyphens
    safe_chars = re.sub(r'[^\w\.\-]', '_', filename)

    while ".." in safe_chars:
        safe_chars = safe_chars.replace("..", ".")

    # Don't allow hidden files (starting with .)
    safe_chars = safe_chars.lstrip(".")

    if len(safe_chars) > 200:
        name, ext = os.path.splitext(safe_chars)
        safe_chars = name[:200 - len(ext)] + ext

    if not safe_chars or safe_chars == ".":
        return f"upload_{uuid.uuid4().hex[:8]}"

    return safe_chars


def get_extension(filename: str) -> str:
    """Extract and normalize file extension."""
    if not filename:
        return ""

    _, ext = os.path.splitext(filename)
    return ext.lstrip(".").lower()


def verify_magic_bytes(content: bytes, expected_type: str) -> bool:
    """
    Verify file content matches expected type via magic bytes.

    Returns True if magic bytes match or type has no defined signature.
    """
    expected_signatures = MAGIC_BYTES.get(expected_type.lower(), [])
    if not expected_signatures:
        return True
    return any(content.startswith(signature) for signature in expected_signatures)


def compute_file_hash(content: bytes) -> str:
    """Compute SHA-256 hash of file content."""
    return hashlib.sha256(content).hexdigest()


async def validate_upload(
    file: Optional[UploadFile],
    allowed_types: Set[str],
    max_size_bytes: int,
    type_error_message: Optional[str] = None,
) -> SecureUpload:
    """
    Validate an uploaded file.

    Args:
        file: FastAPI UploadFile object (None when the field was omitted)
        allowed_types: Allowed file extensions (e.g., {"csv", "xlsx"})
        max_size_bytes: Maximum file size
        type_error_message: Message used when the extension is not allowed

    Returns:
        SecureUpload with the validated content

    Raises:
        ValidationError: If validation fails
    """
    if file is None or not file.filename:
        raise ValidationError("No file uploaded")

    original_filename = file.filename
    safe_filename = sanitize_filename(original_filename)
    extension = get_extension(safe_filename)

    if extension not in allowed_types:
        raise ValidationError(
            type_error_message
            or f"File type '{extension}' is not allowed. "
               f"Allowed types: {', '.join(sorted(allowed_types))}",
            details={"filename": original_filename, "allowed": sorted(allowed_types)},
        )

    # Read in chunks so an oversized upload is rejected without buffering all of it
    chunks = []
    size_bytes = 0
    while True:
        chunk = await file.read(READ_CHUNK_BYTES)
        if not chunk:
            break
        size_bytes += len(chunk)
        if size_bytes > max_size_bytes:
            raise ValidationError(
                f"File too large. Maximum size: {max_size_bytes // 1024} KB",
                details={"filename": original_filename},
            )
        chunks.append(chunk)
    content = b"".join(chunks)

    if size_bytes == 0:
        raise ValidationError("Empty file uploaded", details={"filename": original_filename})

    if not verify_magic_bytes(content, extension):
        logger.warning(
            f"File content mismatch: claimed {extension}, content doesn't match signature"
        )
        raise ValidationError(
            "File content does not match its extension",
            details={"filename": original_filename, "extension": extension},
        )

    logger.info(f"File validated: {safe_filename} ({size_bytes} bytes, {extension})")

    return SecureUpload(
        original_filename=original_filename,
        safe_filename=safe_filename,
        extension=extension,
        size_bytes=size_bytes,
        file_hash=compute_file_hash(content),
        content=content,
    )
