"""Project-wide constants (transfer thresholds, retry policy, cache windows)."""

DEFAULT_RELAY_URL: str = "http://localhost:8765"
DEFAULT_OWNER: str = "drive-user"

# Encryption
CIPHERTEXT_PREFIX: str = "SEA{"
ENCRYPTED_SUFFIX: str = ".enc"
PRIMITIVE_POLL_ATTEMPTS: int = 10
PRIMITIVE_POLL_INTERVAL_SECONDS: float = 0.1

# Transfers
STREAM_THRESHOLD_BYTES: int = 5 * 1024 * 1024  # 5 MiB
STREAM_CHUNK_SIZE_BYTES: int = 64 * 1024
DOWNLOAD_MAX_ATTEMPTS: int = 3
DOWNLOAD_BACKOFF_SECONDS: float = 1.0  # linear: backoff * attempt
DOWNLOAD_TIMEOUT_SECONDS: float = 300.0
REQUEST_TIMEOUT_SECONDS: float = 30.0
HEALTH_TIMEOUT_SECONDS: float = 5.0
LISTING_TIMEOUT_SECONDS: float = 10.0
METADATA_MAP_TIMEOUT_SECONDS: float = 15.0

# Metadata cache
METADATA_STALENESS_SECONDS: float = 5 * 60
DEFAULT_METADATA_CACHE_PATH: str = "~/.shogun-drive/metadata-cache.json"

# Relay is eventually consistent; wait before reloading after writes
UPLOAD_SETTLE_SECONDS: float = 1.0
DELETE_SETTLE_SECONDS: float = 0.5

# Directory synthesis
EMPTY_DIRECTORY_MARKER: str = ".drive-empty"
EMPTY_DIRECTORY_MARKER_CONTENT: bytes = b"This directory is empty.\n"
FORWARD_HISTORY_LIMIT: int = 256

DEFAULT_CONTENT_TYPE: str = "application/octet-stream"
