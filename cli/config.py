"""Configuration management for the Shogun Drive CLI."""

import json
import logging
import os
import shutil
import tempfile
from pathlib import Path
from typing import Optional

from common.constants import (
    DEFAULT_METADATA_CACHE_PATH,
    DEFAULT_RELAY_URL,
    DOWNLOAD_BACKOFF_SECONDS,
    DOWNLOAD_MAX_ATTEMPTS,
    DOWNLOAD_TIMEOUT_SECONDS,
    METADATA_STALENESS_SECONDS,
    REQUEST_TIMEOUT_SECONDS,
    STREAM_THRESHOLD_BYTES,
)
from drive.settings import DriveSettings

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path.home() / '.shogun-drive' / 'config.json'


class Config:
    """Manages CLI configuration stored in a JSON file."""

    DEFAULT_CONFIG = {
        "relay_url": DEFAULT_RELAY_URL,
        "timeout": REQUEST_TIMEOUT_SECONDS,
        "download_timeout": DOWNLOAD_TIMEOUT_SECONDS,
        "max_attempts": DOWNLOAD_MAX_ATTEMPTS,
        "retry_backoff_seconds": DOWNLOAD_BACKOFF_SECONDS,
        "stream_threshold_bytes": STREAM_THRESHOLD_BYTES,
        "metadata_staleness_seconds": METADATA_STALENESS_SECONDS,
        "metadata_cache_path": DEFAULT_METADATA_CACHE_PATH,
    }

    def __init__(self, config_path: Optional[Path] = None):
        """
        Initialize configuration manager.

        Args:
            config_path: Path to config JSON file (typically ~/.shogun-drive/config.json)
        """
        self.config_path = Path(config_path or DEFAULT_CONFIG_PATH)
        self.data = self._load()

    def _defaults(self) -> dict:
        config = self.DEFAULT_CONFIG.copy()
        env_relay = os.environ.get("DRIVE_RELAY_URL")
        if env_relay:
            config["relay_url"] = env_relay
        return config

    def _load(self) -> dict:
        """
        Load configuration from file, creating defaults if necessary.

        Returns:
            Configuration dictionary
        """
        try:
            self.config_path.parent.mkdir(parents=True, exist_ok=True)
        except PermissionError:
            self.config_path = Path(tempfile.gettempdir()) / '.shogun-drive' / 'config.json'
            self.config_path.parent.mkdir(parents=True, exist_ok=True)

        if self.config_path.exists():
            try:
                with open(self.config_path, 'r') as f:
                    data = json.load(f)
                if not isinstance(data, dict):
                    raise ValueError("config root is not an object")
                config = self._defaults()
                config.update(data)
                if os.environ.get("DRIVE_RELAY_URL"):
                    config["relay_url"] = os.environ["DRIVE_RELAY_URL"]
                return config
            except (ValueError, IOError) as e:
                backup_path = self.config_path.with_suffix('.json.bak')
                logger.warning(f"Corrupted config at {self.config_path}: {e}, backing up to {backup_path}")
                try:
                    shutil.copy(self.config_path, backup_path)
                except (IOError, OSError) as copy_error:
                    logger.warning(f"Failed to back up config: {copy_error}")
                return self._defaults()

        config = self._defaults()
        try:
            with open(self.config_path, 'w') as f:
                json.dump(config, f, indent=2)
        except IOError as e:
            logger.warning(f"Failed to write default config to {self.config_path}: {e}")
        return config

    def save(self) -> None:
        """Save current configuration to file."""
        try:
            with open(self.config_path, 'w') as f:
                json.dump(self.data, f, indent=2)
        except IOError as e:
            logger.warning(f"Failed to save config to {self.config_path}: {e}")

    def get_auth_token(self) -> Optional[str]:
        return self.data.get('auth_token')

    def set_auth_token(self, token: str) -> None:
        """
        Set relay auth token and save to file.

        Args:
            token: Bearer token accepted by the relay
        """
        self.data['auth_token'] = token
        self.save()

    def get_encryption_token(self) -> Optional[str]:
        return self.data.get('encryption_token')

    def set_encryption_token(self, token: str) -> None:
        self.data['encryption_token'] = token
        self.save()

    def get_relay_url(self) -> str:
        """
        Get relay base URL.

        Returns:
            Base URL string (e.g., "http://localhost:8765")
        """
        return str(self.data.get('relay_url') or DEFAULT_RELAY_URL).rstrip('/')

    def set_relay_url(self, url: str) -> None:
        self.data['relay_url'] = url.rstrip('/')
        self.save()

    def get_timeout(self) -> float:
        return float(self.data.get('timeout', REQUEST_TIMEOUT_SECONDS))

    def get_retry_config(self) -> dict:
        """
        Get download retry configuration.

        Returns:
            Dictionary with 'max_attempts' and 'retry_backoff_seconds'
        """
        return {
            'max_attempts': int(self.data.get('max_attempts', DOWNLOAD_MAX_ATTEMPTS)),
            'retry_backoff_seconds': float(self.data.get('retry_backoff_seconds', DOWNLOAD_BACKOFF_SECONDS)),
        }

    def get_drive_settings(self) -> DriveSettings:
        """Build the engine settings from the stored configuration."""
        retry = self.get_retry_config()
        return DriveSettings(
            relay_url=self.get_relay_url(),
            auth_token=self.get_auth_token(),
            encryption_token=self.get_encryption_token(),
            wallet_address=self.data.get('wallet_address'),
            wallet_signature=self.data.get('wallet_signature'),
            timeout=self.get_timeout(),
            download_timeout=float(self.data.get('download_timeout', DOWNLOAD_TIMEOUT_SECONDS)),
            max_attempts=retry['max_attempts'],
            retry_backoff_seconds=retry['retry_backoff_seconds'],
            stream_threshold_bytes=int(self.data.get('stream_threshold_bytes', STREAM_THRESHOLD_BYTES)),
            metadata_staleness_seconds=float(
                self.data.get('metadata_staleness_seconds', METADATA_STALENESS_SECONDS)
            ),
            metadata_cache_path=str(self.data.get('metadata_cache_path') or DEFAULT_METADATA_CACHE_PATH),
        )
