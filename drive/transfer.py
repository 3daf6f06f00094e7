"""Upload and download pipeline with retry, streaming and decrypt detection."""

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

import httpx

from common.constants import (
    DOWNLOAD_BACKOFF_SECONDS,
    DOWNLOAD_MAX_ATTEMPTS,
    DOWNLOAD_TIMEOUT_SECONDS,
    STREAM_CHUNK_SIZE_BYTES,
    STREAM_THRESHOLD_BYTES,
)
from common.types import Address, BlobEntry
from drive.credentials import CredentialProvider
from drive.crypto_gate import CryptoGate
from drive.events import EventHub
from drive.exceptions import (
    CredentialMissingError,
    DownloadFailedError,
    DownloadTimeoutError,
    EmptyPayloadError,
    MissingSecretError,
)
from drive.relay.session import format_error
from drive.relay.storage_client import StorageClient
from drive.utils import encrypted_name, guess_content_type

logger = logging.getLogger(__name__)

PLAINTEXT_CONTENT_TYPES = ('text/plain', 'application/json')


@dataclass(frozen=True)
class FetchedBody:
    """Raw response body plus the headers the detection logic needs."""
    data: bytes
    content_type: str


class TransferPipeline:
    """
    Moves bytes between the caller and the storage network.

    Uploads optionally encrypt through the CryptoGate; downloads retry
    transient failures, stream large payloads and decide whether the relay
    already decrypted the content.
    """

    def __init__(
        self,
        storage: StorageClient,
        crypto: CryptoGate,
        credentials: CredentialProvider,
        events: Optional[EventHub] = None,
        stream_threshold: int = STREAM_THRESHOLD_BYTES,
        max_attempts: int = DOWNLOAD_MAX_ATTEMPTS,
        backoff_seconds: float = DOWNLOAD_BACKOFF_SECONDS,
        download_timeout: float = DOWNLOAD_TIMEOUT_SECONDS,
    ):
        """
        Initialize the pipeline.

        Args:
            storage: Storage network client
            crypto: Encryption gate
            credentials: Credential provider (gate + encryption secret)
            events: Progress/status fan-out
            stream_threshold: Size at or above which downloads are streamed
            max_attempts: Total download attempts for transient failures
            backoff_seconds: Linear backoff unit (delay = unit * attempt)
            download_timeout: Hard per-attempt ceiling in seconds
        """
        self.storage = storage
        self.crypto = crypto
        self.credentials = credentials
        self.events = events or EventHub()
        self.stream_threshold = stream_threshold
        self.max_attempts = max_attempts
        self.backoff_seconds = backoff_seconds
        self.download_timeout = download_timeout

    def _require_credential(self) -> None:
        if not self.credentials.has_usable_credential():
            raise CredentialMissingError("Auth token is required. Please set it with: login <token>")

    def _require_secret(self) -> str:
        secret = self.credentials.encryption_secret()
        if not secret:
            raise MissingSecretError("Encryption token is required to encrypt or decrypt this file")
        return secret

    async def upload_blob(
        self,
        data: bytes,
        name: str,
        encrypt: bool = True,
        content_type: Optional[str] = None,
    ) -> BlobEntry:
        """
        Upload a single blob.

        Args:
            data: Raw bytes
            name: Declared file name
            encrypt: Encrypt before upload (name gains the encrypted suffix)
            content_type: MIME type; guessed from the name when omitted

        Returns:
            BlobEntry describing what was stored

        Raises:
            CredentialMissingError: If no credential is configured
            EncryptionFailedError: Propagated from the gate
            UploadRejectedError: If the relay refuses the upload
            NetworkUnavailableError: On transport failure
        """
        self._require_credential()
        content_type = content_type or guess_content_type(name)

        payload = data
        upload_name = name
        upload_type = content_type
        if encrypt:
            self.events.status('encrypting', 'Encrypting file...')
            blob = await self.crypto.encrypt_payload(data, self._require_secret(), content_type)
            payload = blob.to_bytes()
            upload_name = encrypted_name(name)
            upload_type = blob.content_type
            self.events.status('encrypting', 'File encrypted, uploading...')

        self.events.status('uploading', 'Uploading to IPFS...')
        address = await self.storage.upload_blob(payload, upload_name, upload_type)

        return BlobEntry(
            address=address,
            size=len(payload),
            content_kind=upload_type,
            encrypted=encrypt,
        )

    async def upload_batch(
        self,
        entries: Sequence[Tuple[str, bytes]],
        directory_name: str,
        encrypt: bool = False,
    ) -> Address:
        """
        Upload many files as one directory snapshot.

        Args:
            entries: Ordered (relative_path, bytes) pairs; paths are preserved exactly
            directory_name: Display name of the directory
            encrypt: Encrypt every entry independently

        Returns:
            Address of the new directory snapshot

        Raises:
            CredentialMissingError: If no credential is configured
            EncryptionFailedError: Propagated from the gate
            UploadRejectedError: If the relay refuses the upload
            NetworkUnavailableError: On transport failure
        """
        self._require_credential()
        secret = self._require_secret() if encrypt else None

        prepared = []
        for relative_path, data in entries:
            content_type = guess_content_type(relative_path)
            if encrypt:
                blob = await self.crypto.encrypt_payload(data, secret, content_type)
                prepared.append((relative_path, blob.to_bytes(), blob.content_type))
            else:
                prepared.append((relative_path, data, content_type))

        self.events.status('uploading', f"Uploading directory {directory_name}...")
        return await self.storage.upload_batch(prepared, directory_name)

    async def download(self, address: Address, encrypted: bool = False, size_hint: int = 0) -> bytes:
        """
        Download a blob by address.

        Args:
            address: Blob address
            encrypted: Whether the stored content is encrypted
            size_hint: Declared size; selects buffered vs streaming strategy

        Returns:
            Final (decrypted) bytes

        Raises:
            MissingSecretError: Encrypted content without a secret
            DownloadFailedError: Non-2xx, or transient failures on every attempt
            DownloadTimeoutError: Last attempt hit the time ceiling
            EmptyPayloadError: Zero-length result
            DecryptionFailedError: Client-side decryption failed
        """
        return await self._download(address, None, encrypted, size_hint)

    async def download_member(
        self,
        directory_address: Address,
        relative_path: str,
        encrypted: bool = False,
        size_hint: int = 0,
    ) -> bytes:
        """Download one member of a directory snapshot; same semantics as download()."""
        return await self._download(directory_address, relative_path, encrypted, size_hint)

    async def _download(
        self,
        address: Address,
        relative_path: Optional[str],
        encrypted: bool,
        size_hint: int,
    ) -> bytes:
        secret = self._require_secret() if encrypted else None
        label = f"{address}/{relative_path}" if relative_path else address

        self.events.status('downloading', 'Downloading from IPFS...', address)
        body = await self._fetch_with_retry(address, relative_path, secret, size_hint)
        data = await self._resolve_payload(body, encrypted, secret)

        if not data:
            raise EmptyPayloadError("Downloaded file is empty")

        logger.info(f"Downloaded [target={label}, size={len(data)}]")
        self.events.status('completed', 'File downloaded successfully', address)
        return data

    async def _fetch_with_retry(
        self,
        address: Address,
        relative_path: Optional[str],
        token: Optional[str],
        size_hint: int,
    ) -> FetchedBody:
        streaming = size_hint >= self.stream_threshold
        last_exception: Optional[BaseException] = None

        for attempt in range(1, self.max_attempts + 1):
            try:
                fetch = self._fetch_streaming if streaming else self._fetch_buffered
                return await asyncio.wait_for(
                    fetch(address, relative_path, token, size_hint),
                    timeout=self.download_timeout,
                )
            except (httpx.TransportError, asyncio.TimeoutError) as e:
                last_exception = e
                if attempt < self.max_attempts:
                    delay = self.backoff_seconds * attempt
                    logger.warning(
                        f"Download attempt {attempt}/{self.max_attempts} failed for {address}: "
                        f"{type(e).__name__}, retrying in {delay}s"
                    )
                    await asyncio.sleep(delay)
                else:
                    logger.error(
                        f"Download failed (max attempts exceeded) for {address}: {type(e).__name__}"
                    )

        if isinstance(last_exception, (asyncio.TimeoutError, httpx.TimeoutException)):
            raise DownloadTimeoutError("Download timeout - file too large or connection too slow")
        raise DownloadFailedError(
            f"Download failed after {self.max_attempts} attempts: {type(last_exception).__name__}"
        )

    async def _fetch_buffered(
        self,
        address: Address,
        relative_path: Optional[str],
        token: Optional[str],
        size_hint: int,
    ) -> FetchedBody:
        response = await self.storage.fetch(address, relative_path, token, timeout=self.download_timeout)
        if not response.is_success:
            raise DownloadFailedError(f"Download failed: {format_error(response)}")
        return FetchedBody(data=response.content, content_type=response.headers.get('Content-Type', ''))

    async def _fetch_streaming(
        self,
        address: Address,
        relative_path: Optional[str],
        token: Optional[str],
        size_hint: int,
    ) -> FetchedBody:
        async with self.storage.stream(address, relative_path, token, timeout=self.download_timeout) as response:
            if not response.is_success:
                await response.aread()
                raise DownloadFailedError(f"Download failed: {format_error(response)}")

            total = int(response.headers.get('Content-Length') or size_hint or 0)
            chunks = []
            loaded = 0
            async for chunk in response.aiter_bytes(chunk_size=STREAM_CHUNK_SIZE_BYTES):
                chunks.append(chunk)
                loaded += len(chunk)
                self.events.progress(loaded, total)

            return FetchedBody(data=b''.join(chunks), content_type=response.headers.get('Content-Type', ''))

    async def _resolve_payload(self, body: FetchedBody, encrypted: bool, secret: Optional[str]) -> bytes:
        """
        Decide whether the body still needs client-side decryption.

        1. binary content type ⇒ the relay already decrypted it
        2. text starting with the ciphertext prefix ⇒ decrypt locally
        3. any other text ⇒ already final
        """
        if not encrypted:
            return body.data

        content_type = body.content_type.lower()
        if content_type and not any(t in content_type for t in PLAINTEXT_CONTENT_TYPES):
            logger.debug("Relay already decrypted content, using body directly")
            return body.data

        text = body.data.decode('utf-8', errors='replace')
        if self.crypto.is_ciphertext(text):
            logger.debug("Content is still encrypted, decrypting client-side")
            self.events.status('decrypting', 'Decrypting file...')
            return await self.crypto.decrypt_payload(text, secret)

        return body.data
