"""
Dual-source metadata: a local JSON cache document merged with the metadata relay.

Reads are served from the local document immediately. When the document is
older than the staleness window a single background refresh pulls the remote
map and merges it in (stale-while-revalidate).
"""

import asyncio
import json
import logging
import threading
import time
from dataclasses import replace
from pathlib import Path
from typing import Callable, Dict, Optional

from pydantic import ValidationError

from common.constants import DEFAULT_METADATA_CACHE_PATH, METADATA_STALENESS_SECONDS
from common.types import Address, MetadataRecord
from drive.exceptions import DriveException
from drive.relay.metadata_client import MetadataRelayClient
from drive.schemas import SystemHashRecord

logger = logging.getLogger(__name__)


def merge_records(local: Optional[MetadataRecord], remote: MetadataRecord) -> MetadataRecord:
    """
    Merge a remote record over the local copy.

    The remote record is authoritative for every field except the member list,
    where a non-empty local list wins.

    Args:
        local: Locally cached record (may be None)
        remote: Record fetched from the relay

    Returns:
        Merged record
    """
    if local is not None and local.members:
        return replace(remote, members=local.members)
    return remote


class LocalMetadataCache:
    """
    Thread-safe JSON cache document ``{"data": {address: record}, "timestamp": ms}``.

    Records are stored in the relay's wire format. The single timestamp covers
    the whole document and is bumped on every write.
    """

    def __init__(self, cache_path: Optional[str] = None, clock: Callable[[], float] = time.time):
        """
        Initialize the cache and load any persisted document.

        Args:
            cache_path: Path to the JSON document (default: ~/.shogun-drive/metadata-cache.json)
            clock: Time source in seconds
        """
        self._cache_path = Path(cache_path or DEFAULT_METADATA_CACHE_PATH).expanduser()
        self._clock = clock
        self._cache_lock = threading.RLock()
        self._file_lock = threading.Lock()
        self._data: Dict[Address, Dict] = {}
        self._timestamp = 0

        self._load_from_disk()

    @property
    def path(self) -> Path:
        return self._cache_path

    @property
    def timestamp(self) -> int:
        """Last write time in milliseconds, 0 if never written."""
        with self._cache_lock:
            return self._timestamp

    def age_seconds(self) -> Optional[float]:
        """Seconds since the last write, None if never written."""
        timestamp = self.timestamp
        if not timestamp:
            return None
        return self._clock() - timestamp / 1000

    def get(self, address: Address) -> Optional[MetadataRecord]:
        with self._cache_lock:
            raw = self._data.get(address)
        if raw is None:
            return None
        return self._parse(address, raw)

    def records(self) -> Dict[Address, MetadataRecord]:
        with self._cache_lock:
            raw_items = list(self._data.items())
        records = {}
        for address, raw in raw_items:
            record = self._parse(address, raw)
            if record is not None:
                records[address] = record
        return records

    def put(self, record: MetadataRecord) -> None:
        with self._cache_lock:
            self._data[record.address] = SystemHashRecord.from_domain(record).to_wire()
            self._touch()
        self._save_to_disk()

    def remove(self, address: Address) -> bool:
        with self._cache_lock:
            removed = self._data.pop(address, None) is not None
            if removed:
                self._touch()
        if removed:
            self._save_to_disk()
        return removed

    def merge_remote(self, remote: Dict[Address, MetadataRecord]) -> int:
        """
        Merge every remote record into the document under one lock.

        Args:
            remote: Records fetched from the relay

        Returns:
            Number of records merged
        """
        with self._cache_lock:
            for address, remote_record in remote.items():
                local_record = self.get(address)
                merged = merge_records(local_record, remote_record)
                self._data[address] = SystemHashRecord.from_domain(merged).to_wire()
            self._touch()
        self._save_to_disk()
        return len(remote)

    def _touch(self) -> None:
        self._timestamp = int(self._clock() * 1000)

    @staticmethod
    def _parse(address: Address, raw: Dict) -> Optional[MetadataRecord]:
        try:
            return SystemHashRecord.model_validate({**raw, 'hash': address}).to_domain()
        except (ValidationError, ValueError, TypeError) as e:
            logger.warning(f"Ignoring unreadable cached record [address={address}]: {e}")
            return None

    def _load_from_disk(self) -> bool:
        """
        Load the cache document on startup.

        Returns:
            True if load succeeded, False if the file is missing or corrupted
        """
        if not self._cache_path.exists():
            logger.debug(f"Metadata cache not found at {self._cache_path}, starting empty")
            return False

        try:
            with self._file_lock:
                with open(self._cache_path, 'r') as f:
                    document = json.load(f)

            data = document.get('data') if isinstance(document, dict) else None
            if not isinstance(data, dict):
                raise ValueError("cache document has no data map")

            with self._cache_lock:
                self._data = {k: v for k, v in data.items() if isinstance(v, dict)}
                self._timestamp = int(document.get('timestamp') or 0)

            logger.info(f"Metadata cache loaded [path={self._cache_path}, entries={len(self._data)}]")
            return True

        except (ValueError, TypeError, IOError) as e:
            logger.warning(f"Failed to load metadata cache from {self._cache_path}: {e}, starting empty")
            with self._cache_lock:
                self._data = {}
                self._timestamp = 0
            return False

    def _save_to_disk(self) -> None:
        try:
            self._cache_path.parent.mkdir(parents=True, exist_ok=True)

            with self._cache_lock:
                document = {'data': dict(self._data), 'timestamp': self._timestamp}

            with self._file_lock:
                with open(self._cache_path, 'w') as f:
                    json.dump(document, f, indent=2)

        except (IOError, OSError) as e:
            logger.warning(
                f"Failed to save metadata cache to {self._cache_path}: {e}, "
                "continuing with in-memory cache only"
            )


class MetadataStore:
    """
    Per-address metadata records with stale-while-revalidate semantics.

    Remote failures never propagate out of this class; they are logged and the
    best local value is served.
    """

    def __init__(
        self,
        relay: MetadataRelayClient,
        cache: LocalMetadataCache,
        staleness_seconds: float = METADATA_STALENESS_SECONDS,
    ):
        self.relay = relay
        self.cache = cache
        self.staleness_seconds = staleness_seconds
        self._refresh_task: Optional[asyncio.Task] = None

    def is_stale(self) -> bool:
        age = self.cache.age_seconds()
        return age is None or age > self.staleness_seconds

    def ensure_fresh(self) -> bool:
        """
        Schedule a background refresh if the document is stale.

        Returns:
            True if a refresh is running (new or already in flight)
        """
        if not self.is_stale():
            return False
        if self._refresh_task is not None and not self._refresh_task.done():
            return True

        logger.debug("Metadata cache is stale, scheduling background refresh")
        self._refresh_task = asyncio.create_task(self.refresh())
        return True

    async def get(self, address: Address) -> Optional[MetadataRecord]:
        """Return the cached record without waiting on the network."""
        self.ensure_fresh()
        return self.cache.get(address)

    async def records(self) -> Dict[Address, MetadataRecord]:
        self.ensure_fresh()
        return self.cache.records()

    async def resolve(self, address: Address) -> Optional[MetadataRecord]:
        """
        Read-through lookup: on a local miss, wait for one refresh and look again.
        """
        record = self.cache.get(address)
        if record is not None:
            self.ensure_fresh()
            return record

        if self._refresh_task is not None and not self._refresh_task.done():
            await self._refresh_task
        else:
            await self.refresh()
        return self.cache.get(address)

    async def refresh(self) -> bool:
        """
        Pull the remote map and merge it into the local document.

        Returns:
            True if the remote map was merged, False if the relay failed
        """
        try:
            remote = await self.relay.fetch_all()
        except DriveException as e:
            logger.warning(f"Metadata refresh failed, serving local cache: {e}")
            return False

        merged = self.cache.merge_remote(remote)
        logger.debug(f"Metadata cache refreshed [entries={merged}]")
        return True

    async def put(self, record: MetadataRecord) -> None:
        """Write locally, then to the relay; a relay failure is only logged."""
        self.cache.put(record)
        try:
            await self.relay.put_record(record)
        except DriveException as e:
            logger.warning(f"Failed to save metadata to relay [address={record.address}]: {e}")

    async def remove(self, address: Address) -> None:
        """Remove locally and remotely; both failures are tolerated."""
        self.cache.remove(address)
        try:
            await self.relay.delete_record(address)
        except DriveException as e:
            logger.warning(f"Failed to remove metadata from relay [address={address}]: {e}")

    async def drain(self) -> None:
        """Wait for an in-flight background refresh."""
        if self._refresh_task is not None:
            await asyncio.gather(self._refresh_task, return_exceptions=True)
