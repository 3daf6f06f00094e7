"""Runtime settings for the drive engine."""

from dataclasses import dataclass
from typing import Optional

from common.constants import (
    DEFAULT_METADATA_CACHE_PATH,
    DEFAULT_OWNER,
    DEFAULT_RELAY_URL,
    DELETE_SETTLE_SECONDS,
    DOWNLOAD_BACKOFF_SECONDS,
    DOWNLOAD_MAX_ATTEMPTS,
    DOWNLOAD_TIMEOUT_SECONDS,
    METADATA_STALENESS_SECONDS,
    REQUEST_TIMEOUT_SECONDS,
    STREAM_THRESHOLD_BYTES,
    UPLOAD_SETTLE_SECONDS,
)


@dataclass(frozen=True)
class DriveSettings:
    """Everything DriveService needs to wire its components."""
    relay_url: str = DEFAULT_RELAY_URL
    auth_token: Optional[str] = None
    encryption_token: Optional[str] = None
    wallet_address: Optional[str] = None
    wallet_signature: Optional[str] = None
    owner: str = DEFAULT_OWNER
    timeout: float = REQUEST_TIMEOUT_SECONDS
    download_timeout: float = DOWNLOAD_TIMEOUT_SECONDS
    max_attempts: int = DOWNLOAD_MAX_ATTEMPTS
    retry_backoff_seconds: float = DOWNLOAD_BACKOFF_SECONDS
    stream_threshold_bytes: int = STREAM_THRESHOLD_BYTES
    metadata_staleness_seconds: float = METADATA_STALENESS_SECONDS
    metadata_cache_path: str = DEFAULT_METADATA_CACHE_PATH
    upload_settle_seconds: float = UPLOAD_SETTLE_SECONDS
    delete_settle_seconds: float = DELETE_SETTLE_SECONDS
