"""
DriveService: the single entry point the CLI talks to.

Wires the relay clients, the transfer pipeline, the metadata store, the
synthesizer and the navigation state together, and implements the listing,
upload, download and delete flows on top of them.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, List, Optional, Sequence, Tuple
from urllib.parse import quote

import httpx

from common.constants import DEFAULT_CONTENT_TYPE
from common.types import (
    Address,
    DirectoryMember,
    FileEntry,
    MetadataRecord,
    NavigationFrame,
    ProgressEvent,
    StatusEvent,
)
from drive.credentials import Credential, CredentialProvider
from drive.crypto_gate import CryptoGate
from drive.events import EventHub
from drive.exceptions import (
    AuthenticationFailedError,
    CredentialMissingError,
    DirectoryNotFoundError,
    DriveException,
    MemberNotFoundError,
    NetworkUnavailableError,
)
from drive.metadata_store import LocalMetadataCache, MetadataStore
from drive.navigation import NavigationState
from drive.primitives import SeaStylePrimitive
from drive.relay.metadata_client import MetadataRelayClient
from drive.relay.session import RelaySession
from drive.relay.storage_client import StorageClient
from drive.settings import DriveSettings
from drive.synthesizer import DirectorySynthesizer, NewFile
from drive.transfer import TransferPipeline
from drive.utils import (
    EXTENSION_CONTENT_TYPES,
    encrypted_name,
    looks_encrypted,
    sane_timestamp,
    strip_encrypted_suffix,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ConnectionStatus:
    """Result of a relay connectivity + authentication check."""
    connected: bool
    authenticated: bool


@dataclass
class UploadSummary:
    """Outcome of a multi-file upload; one failure does not stop the others."""
    uploaded: List[Tuple[str, Address]] = field(default_factory=list)
    failed: List[Tuple[str, str]] = field(default_factory=list)


class DriveService:
    """
    Facade over the drive engine.

    Listing and every mutation require a usable credential. Mutations wait a
    short settle delay before reloading metadata because the relay is
    eventually consistent.
    """

    def __init__(
        self,
        session: RelaySession,
        credentials: CredentialProvider,
        crypto: Optional[CryptoGate] = None,
        cache: Optional[LocalMetadataCache] = None,
        settings: Optional[DriveSettings] = None,
    ):
        """
        Initialize the service.

        Args:
            session: Relay session (owns the HTTP client)
            credentials: Credential provider shared by every component
            crypto: Encryption gate (default: gate with the built-in primitive)
            cache: Local metadata cache document
            settings: Tunables; defaults when omitted
        """
        self.settings = settings or DriveSettings()
        self.session = session
        self.credentials = credentials
        self.events = EventHub()
        self.crypto = crypto or CryptoGate(SeaStylePrimitive())

        self.storage = StorageClient(session)
        self.metadata = MetadataStore(
            MetadataRelayClient(session),
            cache or LocalMetadataCache(self.settings.metadata_cache_path),
            staleness_seconds=self.settings.metadata_staleness_seconds,
        )
        self.transfer = TransferPipeline(
            self.storage,
            self.crypto,
            credentials,
            self.events,
            stream_threshold=self.settings.stream_threshold_bytes,
            max_attempts=self.settings.max_attempts,
            backoff_seconds=self.settings.retry_backoff_seconds,
            download_timeout=self.settings.download_timeout,
        )
        self.navigation = NavigationState()
        self.synthesizer = DirectorySynthesizer(
            self.transfer,
            self.metadata,
            self.navigation,
            self.storage,
            credentials,
            self.events,
            owner=self.settings.owner,
        )

    @classmethod
    def from_settings(
        cls,
        settings: DriveSettings,
        client: Optional[httpx.AsyncClient] = None,
    ) -> "DriveService":
        """
        Build a fully wired service from settings.

        Args:
            settings: Drive settings (usually from cli.config)
            client: Optional pre-built AsyncClient (tests pass a MockTransport client)
        """
        credentials = CredentialProvider(Credential(
            bearer_token=settings.auth_token,
            wallet_address=settings.wallet_address,
            wallet_signature=settings.wallet_signature,
            encryption_token=settings.encryption_token,
        ))
        session = RelaySession(settings.relay_url, credentials, timeout=settings.timeout, client=client)
        return cls(session, credentials, settings=settings)

    async def __aenter__(self) -> "DriveService":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    def on_progress(self, callback: Callable[[ProgressEvent], None]) -> Callable[[], None]:
        return self.events.on_progress(callback)

    def on_status(self, callback: Callable[[StatusEvent], None]) -> Callable[[], None]:
        return self.events.on_status(callback)

    def _require_credential(self) -> None:
        if not self.credentials.has_usable_credential():
            raise CredentialMissingError("Auth token is required. Please set it with: login <token>")

    async def _require_connection(self) -> None:
        self.events.status('checking', 'Checking relay connection...')
        if not await self.storage.check_health():
            raise NetworkUnavailableError("Cannot connect to relay server. Please check the relay URL")

    async def check_connection(self) -> ConnectionStatus:
        """Check relay reachability and whether it accepts the credential."""
        if not self.credentials.has_usable_credential():
            return ConnectionStatus(connected=await self.storage.check_health(), authenticated=False)
        connected = await self.storage.check_health()
        authenticated = connected and await self.storage.check_authentication()
        return ConnectionStatus(connected=connected, authenticated=authenticated)

    async def list_files(self) -> List[FileEntry]:
        """
        List the root of the drive: pinned addresses joined with cached metadata.

        A stale metadata document triggers a background refresh; the listing
        never waits for it.

        Raises:
            CredentialMissingError: If no credential is configured
            NetworkUnavailableError: If the relay is unreachable
            AuthenticationFailedError: If the relay rejects the credential
        """
        self._require_credential()
        await self._require_connection()

        pins = await self.storage.list_pins()
        records = await self.metadata.records()

        entries = []
        for address, info in pins.items():
            record = records.get(address)
            pin_type = info.get('Type', 'recursive')
            if pin_type != 'direct' and record is None:
                continue
            entries.append(self._to_entry(address, info, record))

        logger.info(f"Listed files [pins={len(pins)}, listed={len(entries)}]")
        return entries

    def _to_entry(self, address: Address, pin_info: Dict, record: Optional[MetadataRecord]) -> FileEntry:
        pin_name = pin_info.get('Name') or (pin_info.get('Metadata') or {}).get('name')

        if record is None:
            encrypted = looks_encrypted(pin_name)
            name = pin_name or address
            return FileEntry(
                address=address,
                name=name,
                original_name=name,
                size=0,
                content_kind=DEFAULT_CONTENT_TYPE,
                encrypted=encrypted,
                uploaded_at=datetime.now(),
                relay_url=self._relay_url(address, None, encrypted),
            )

        name = record.display_name if record.display_name != address else (pin_name or address)
        return FileEntry(
            address=address,
            name=name,
            original_name=record.original_name or name,
            size=record.size,
            content_kind=self._listing_content_kind(record),
            encrypted=record.encrypted,
            uploaded_at=sane_timestamp(record.uploaded_at),
            relay_url=self._relay_url(address, record.relay_url, record.encrypted),
            is_directory=record.is_directory,
            members=record.to_snapshot().visible_members,
        )

    @staticmethod
    def _listing_content_kind(record: MetadataRecord) -> str:
        # encrypted blobs are stored as text/plain; show the original type instead
        if record.encrypted and record.content_kind == 'text/plain' and record.original_name:
            ext = strip_encrypted_suffix(record.original_name).rsplit('.', 1)[-1].lower()
            return EXTENSION_CONTENT_TYPES.get(ext, record.content_kind)
        return record.content_kind

    def _relay_url(self, address: Address, stored: Optional[str], encrypted: bool) -> str:
        url = stored or self.storage.content_url(address)
        secret = self.credentials.encryption_secret()
        if encrypted and secret and 'token=' not in url:
            separator = '&' if '?' in url else '?'
            url = f"{url}{separator}token={quote(secret, safe='')}"
        return url

    async def _directory_record(self, address: Address) -> MetadataRecord:
        record = await self.metadata.resolve(self.synthesizer.latest_address(address))
        if record is None or not record.is_directory:
            raise DirectoryNotFoundError(f"Directory not found: {address}")
        return record

    async def list_folder(self, address: Optional[Address] = None) -> List[DirectoryMember]:
        """
        List the visible members of a directory.

        Args:
            address: Directory address; defaults to the open folder

        Raises:
            DirectoryNotFoundError: At the root without an address, or for an unknown directory
        """
        address = address or self.navigation.current_address
        if address is None:
            raise DirectoryNotFoundError("Not inside a folder")
        record = await self._directory_record(address)
        return list(record.to_snapshot().visible_members)

    async def open_folder(self, address: Address) -> List[DirectoryMember]:
        """Enter a directory and return its members."""
        record = await self._directory_record(address)
        self.navigation.push(NavigationFrame(address=record.address, display_name=record.display_name))
        return list(record.to_snapshot().visible_members)

    def go_up(self) -> Optional[NavigationFrame]:
        return self.navigation.pop()

    def go_to(self, index: int) -> None:
        """Jump to a breadcrumb; -1 returns to the root."""
        self.navigation.pop_to(index)

    async def _settle(self, seconds: float) -> None:
        if seconds > 0:
            await asyncio.sleep(seconds)
        await self.metadata.refresh()

    async def upload_standalone(self, data: bytes, name: str, encrypt: bool = True) -> Address:
        """
        Upload one file at the drive root and record its metadata.

        Returns:
            Address of the stored blob

        Raises:
            CredentialMissingError: If no credential is configured
            NetworkUnavailableError: If the relay is unreachable
            AuthenticationFailedError: If the relay rejects the credential
            EncryptionFailedError: If encryption fails
            UploadRejectedError: If the relay refuses the upload
        """
        self._require_credential()
        await self._require_connection()
        self.events.status('checking', 'Verifying authentication...')
        if not await self.storage.check_authentication():
            raise AuthenticationFailedError("Authentication failed. Please check your auth token")

        try:
            blob = await self.transfer.upload_blob(data, name, encrypt=encrypt)
            record = MetadataRecord(
                address=blob.address,
                display_name=encrypted_name(name) if encrypt else name,
                size=blob.size,
                content_kind=blob.content_kind,
                encrypted=blob.encrypted,
                uploaded_at=datetime.now(),
                original_name=name,
                owner=self.settings.owner,
                relay_url=self.storage.content_url(blob.address),
            )
            await self.metadata.put(record)
        except DriveException as e:
            self.events.status('error', str(e))
            raise

        self.events.status('completed', 'File uploaded successfully', blob.address)
        return blob.address

    async def upload_files(self, files: Sequence[Tuple[str, bytes]], encrypt: bool = True) -> UploadSummary:
        """
        Upload several standalone files; failures are collected, not raised.

        Args:
            files: (name, bytes) pairs
            encrypt: Encrypt each file

        Returns:
            UploadSummary with (name, address) successes and (name, message) failures
        """
        summary = UploadSummary()
        for name, data in files:
            try:
                summary.uploaded.append((name, await self.upload_standalone(data, name, encrypt=encrypt)))
            except DriveException as e:
                logger.error(f"Upload failed [name={name}]: {e}")
                summary.failed.append((name, e.user_message()))

        if summary.uploaded:
            await self._settle(self.settings.upload_settle_seconds)
        return summary

    async def create_folder(
        self,
        name: str,
        files: Sequence[Tuple[str, bytes]] = (),
        encrypt: bool = False,
    ) -> Address:
        """Create a directory snapshot at the root from (relative_path, bytes) pairs."""
        self._require_credential()
        await self._require_connection()
        record = await self.synthesizer.create_directory(
            name, [NewFile(path, data) for path, data in files], encrypt=encrypt
        )
        await self._settle(self.settings.upload_settle_seconds)
        return record.address

    async def add_files(self, address: Address, files: Sequence[Tuple[str, bytes]]) -> Address:
        """
        Add files to a directory, producing a new snapshot.

        Returns:
            Address of the new snapshot
        """
        self._require_credential()
        await self._require_connection()
        record = await self.synthesizer.add_files(address, [NewFile(path, data) for path, data in files])
        await self._settle(self.settings.upload_settle_seconds)
        return record.address

    async def remove_file(self, address: Address, relative_path: str) -> Address:
        """
        Remove one file from a directory, producing a new snapshot.

        Returns:
            Address of the new snapshot
        """
        self._require_credential()
        await self._require_connection()
        record = await self.synthesizer.remove_file(address, relative_path)
        await self._settle(self.settings.delete_settle_seconds)
        return record.address

    async def download_standalone(self, address: Address, encrypted: Optional[bool] = None) -> bytes:
        """
        Download a standalone file.

        Args:
            address: Blob address
            encrypted: Override for the encrypted flag; taken from metadata when None
        """
        record = await self.metadata.get(address)
        if encrypted is None:
            encrypted = record.encrypted if record else False
        size_hint = record.size if record else 0
        return await self.transfer.download(address, encrypted=encrypted, size_hint=size_hint)

    async def download_member(self, directory_address: Address, relative_path: str) -> bytes:
        """
        Download one member of a directory.

        Raises:
            DirectoryNotFoundError: If the directory is unknown
            MemberNotFoundError: If the path is not a member
        """
        record = await self._directory_record(directory_address)
        member = next((m for m in record.members if m.relative_path == relative_path), None)
        if member is None:
            raise MemberNotFoundError(f"File not found in directory: {relative_path}")
        return await self.transfer.download_member(
            record.address,
            member.relative_path,
            encrypted=record.encrypted or member.encrypted,
            size_hint=member.size,
        )

    async def delete(self, address: Address) -> None:
        """
        Unpin a root entry (file or folder) and drop its metadata.

        Raises:
            CredentialMissingError: If no credential is configured
            DriveException: If the relay refuses the unpin
        """
        self._require_credential()
        await self.storage.unpin(address)
        await self.metadata.remove(address)
        if address in (frame.address for frame in self.navigation.breadcrumbs()):
            self.navigation.pop_to(-1)
        self.events.status('completed', 'File deleted successfully', address)
        await self._settle(self.settings.delete_settle_seconds)

    async def drain(self) -> None:
        """Wait for background cleanup and metadata refreshes."""
        await self.synthesizer.drain()
        await self.metadata.drain()

    async def close(self) -> None:
        await self.drain()
        await self.session.close()
