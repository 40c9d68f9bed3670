"""Metadata helpers for stored content."""

import hashlib
import mimetypes
from pathlib import Path
from typing import Final
from uuid import uuid4

# Prefix of every content object in the bucket
CONTENT_PREFIX: Final = 'content'


def calculate_checksum(data: bytes) -> str:
    """Calculate SHA256 checksum of content.

    Args:
        data: Content bytes.

    Returns:
        Hex-encoded SHA256 hash string.
    """
    return hashlib.sha256(data).hexdigest()


def generate_object_name() -> str:
    """Generate a unique storage path for a new content object.

    Names carry no owner or file information, the database row
    is the only way to reach the object.

    Returns:
        Storage path (e.g., 'content/3f2c...e1').
    """
    return f'{CONTENT_PREFIX}/{uuid4().hex}'


def guess_extension(content_type: str) -> str:
    """Guess a file extension for a MIME type.

    Args:
        content_type: MIME type, parameters allowed
            (e.g., 'text/html; charset=utf-8').

    Returns:
        Extension with dot (e.g., '.html'), empty string if unknown.
    """
    mime_type = content_type.split(';', 1)[0].strip().lower()
    return mimetypes.guess_extension(mime_type) or ''


def replace_extension(filename: str, extension: str) -> str:
    """Swap the extension of a filename.

    Example: ('report.xml', '.html') -> 'report.html'

    Args:
        filename: Original filename.
        extension: New extension with dot, may be empty.

    Returns:
        Filename with the new extension.
    """
    stem = Path(filename).stem or 'converted'
    return f'{stem}{extension}'
