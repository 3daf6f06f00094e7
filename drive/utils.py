"""Utility helper functions for the drive engine."""

import mimetypes
from datetime import datetime
from typing import Optional

from common.constants import DEFAULT_CONTENT_TYPE, ENCRYPTED_SUFFIX

EXTENSION_CONTENT_TYPES = {
    'png': 'image/png',
    'jpg': 'image/jpeg',
    'jpeg': 'image/jpeg',
    'gif': 'image/gif',
    'webp': 'image/webp',
    'svg': 'image/svg+xml',
    'mp4': 'video/mp4',
    'webm': 'video/webm',
    'mp3': 'audio/mpeg',
    'wav': 'audio/wav',
    'pdf': 'application/pdf',
    'txt': 'text/plain',
    'json': 'application/json',
}


def guess_content_type(name: Optional[str]) -> str:
    """
    Guess a MIME type from a file name's extension.

    Args:
        name: File name (may carry the encrypted suffix)

    Returns:
        MIME type, application/octet-stream when unknown
    """
    if not name:
        return DEFAULT_CONTENT_TYPE

    name = strip_encrypted_suffix(name)
    if '.' in name:
        ext = name.rsplit('.', 1)[-1].lower()
        if ext in EXTENSION_CONTENT_TYPES:
            return EXTENSION_CONTENT_TYPES[ext]

    guessed, _ = mimetypes.guess_type(name)
    return guessed or DEFAULT_CONTENT_TYPE


def encrypted_name(name: str) -> str:
    """Append the encrypted suffix once."""
    return name if name.endswith(ENCRYPTED_SUFFIX) else f"{name}{ENCRYPTED_SUFFIX}"


def strip_encrypted_suffix(name: str) -> str:
    """Drop the encrypted suffix, if present."""
    return name[: -len(ENCRYPTED_SUFFIX)] if name.endswith(ENCRYPTED_SUFFIX) else name


def looks_encrypted(name: Optional[str]) -> bool:
    """Name-only fallback used when explicit metadata is missing."""
    return bool(name) and name.endswith(ENCRYPTED_SUFFIX)


def sane_timestamp(value: Optional[datetime], now: Optional[datetime] = None) -> datetime:
    """
    Replace missing or future timestamps with now.

    Args:
        value: Timestamp from metadata
        now: Reference time (defaults to datetime.now())

    Returns:
        value if it is in the past, otherwise now
    """
    now = now or datetime.now()
    if value is None or value > now:
        return now
    return value
