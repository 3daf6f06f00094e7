"""Storage network client: blob and directory uploads, fetches, pins."""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Optional, Sequence, Tuple
from urllib.parse import quote

import httpx
from pydantic import ValidationError

from common.constants import DEFAULT_CONTENT_TYPE, HEALTH_TIMEOUT_SECONDS, LISTING_TIMEOUT_SECONDS
from common.types import Address
from drive.exceptions import (
    AuthenticationFailedError,
    DriveException,
    NetworkUnavailableError,
    UploadRejectedError,
)
from drive.relay.session import RelaySession, format_error
from drive.schemas import DirectoryUploadResponse, PinsResponse, UploadResponse

logger = logging.getLogger(__name__)

UPLOAD_PATH = '/api/v1/ipfs/upload'
UPLOAD_DIRECTORY_PATH = '/api/v1/ipfs/upload-directory'
PINS_LS_PATH = '/api/v1/ipfs/pins/ls'
PINS_RM_PATH = '/api/v1/ipfs/pins/rm'
CONTENT_PATH = '/ipfs-content'
HEALTH_PATH = '/health'


class StorageClient:
    """
    Client for the content-addressed storage network behind the relay.

    Every write returns a brand-new address; there is no update or delete
    beyond unpinning.
    """

    def __init__(self, session: RelaySession):
        self.session = session

    async def check_health(self) -> bool:
        """
        Check relay reachability.

        Returns:
            True if the relay answered 2xx within the health timeout
        """
        try:
            response = await self.session.request(
                'GET', HEALTH_PATH, authenticated=False, timeout=HEALTH_TIMEOUT_SECONDS
            )
        except NetworkUnavailableError as e:
            logger.error(f"Relay connection check failed: {e}")
            return False
        return response.is_success

    async def check_authentication(self) -> bool:
        """
        Check that the relay accepts the configured credential.

        Returns:
            True on a 2xx answer to the pin listing
        """
        if not self.session.credentials.has_usable_credential():
            return False
        try:
            response = await self.session.request('POST', PINS_LS_PATH, timeout=HEALTH_TIMEOUT_SECONDS)
        except NetworkUnavailableError as e:
            logger.error(f"Authentication check failed: {e}")
            return False
        return response.is_success

    async def list_pins(self) -> Dict[Address, Dict]:
        """
        List pinned addresses.

        Returns:
            Mapping of address to raw pin info (e.g. {"Type": "recursive"})

        Raises:
            AuthenticationFailedError: On 401
            NetworkUnavailableError: On transport failure
            DriveException: On any other error status
        """
        response = await self.session.request('POST', PINS_LS_PATH, timeout=LISTING_TIMEOUT_SECONDS)
        if response.status_code == 401:
            raise AuthenticationFailedError("Authentication failed. Please check your auth token")
        if not response.is_success:
            raise DriveException(f"Failed to get pins: {format_error(response)}")

        try:
            return PinsResponse.model_validate(response.json()).pins
        except (ValueError, ValidationError) as e:
            raise DriveException(f"Failed to get pins: invalid response ({e})") from e

    async def upload_blob(
        self,
        data: bytes,
        name: str,
        content_type: str = DEFAULT_CONTENT_TYPE,
        timeout: Optional[float] = None,
    ) -> Address:
        """
        Upload one blob.

        Args:
            data: Bytes to store
            name: File name presented to the relay
            content_type: MIME type of the uploaded bytes
            timeout: Optional request timeout override

        Returns:
            Address of the stored blob

        Raises:
            UploadRejectedError: On error status or malformed response
            NetworkUnavailableError: On transport failure
        """
        kwargs = {'files': {'file': (name, data, content_type)}}
        if timeout is not None:
            kwargs['timeout'] = timeout

        response = await self.session.request('POST', UPLOAD_PATH, **kwargs)
        if not response.is_success:
            raise UploadRejectedError(f"Upload failed: {format_error(response)}")

        try:
            result = UploadResponse.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise UploadRejectedError("Upload failed - invalid response") from e

        if not result.success or result.file is None or not result.file.hash:
            raise UploadRejectedError(result.error or "Upload failed - invalid response")

        logger.info(f"Uploaded blob [name={name}, size={len(data)}, address={result.file.hash}]")
        return result.file.hash

    async def upload_batch(
        self,
        entries: Sequence[Tuple[str, bytes, str]],
        directory_name: str,
        timeout: Optional[float] = None,
    ) -> Address:
        """
        Upload a set of files as one directory snapshot.

        Args:
            entries: (relative_path, bytes, content_type) triples; paths are sent verbatim
            directory_name: Display name of the directory
            timeout: Optional request timeout override

        Returns:
            Address of the directory snapshot

        Raises:
            UploadRejectedError: On error status or malformed response
            NetworkUnavailableError: On transport failure
        """
        files = [('files', (path, data, content_type)) for path, data, content_type in entries]
        kwargs = {'files': files, 'data': {'directoryName': directory_name}}
        if timeout is not None:
            kwargs['timeout'] = timeout

        response = await self.session.request('POST', UPLOAD_DIRECTORY_PATH, **kwargs)
        if not response.is_success:
            raise UploadRejectedError(f"Directory upload failed: {format_error(response)}")

        try:
            result = DirectoryUploadResponse.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise UploadRejectedError("Directory upload failed - invalid response") from e

        if not result.success or not result.directory_cid:
            raise UploadRejectedError(result.error or "Directory upload failed - invalid response")

        logger.info(
            f"Uploaded directory [name={directory_name}, files={len(entries)}, address={result.directory_cid}]"
        )
        return result.directory_cid

    def content_path(self, address: Address, relative_path: Optional[str] = None) -> str:
        path = f"{CONTENT_PATH}/{address}"
        if relative_path:
            path = f"{path}/{quote(relative_path.lstrip('/'), safe='/')}"
        return path

    def content_url(self, address: Address, token: Optional[str] = None) -> str:
        """Public content URL, with the decryption token when given."""
        url = self.session.url_for(self.content_path(address))
        if token:
            url = f"{url}?token={quote(token, safe='')}"
        return url

    def _fetch_request(
        self,
        address: Address,
        relative_path: Optional[str],
        token: Optional[str],
        timeout: Optional[float],
    ) -> httpx.Request:
        params = {'token': token} if token else None
        headers = {'Accept': '*/*'}
        if self.session.credentials.has_usable_credential():
            headers.update(self.session.credentials.auth_headers())
        return self.session.client.build_request(
            'GET',
            self.content_path(address, relative_path),
            params=params,
            headers=headers,
            timeout=timeout if timeout is not None else httpx.USE_CLIENT_DEFAULT,
        )

    async def fetch(
        self,
        address: Address,
        relative_path: Optional[str] = None,
        token: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> httpx.Response:
        """
        Fetch content in one buffered request.

        Transport errors are raised as-is so the caller can decide on retries.
        """
        request = self._fetch_request(address, relative_path, token, timeout)
        return await self.session.client.send(request)

    @asynccontextmanager
    async def stream(
        self,
        address: Address,
        relative_path: Optional[str] = None,
        token: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> AsyncIterator[httpx.Response]:
        """
        Open a streaming response for chunked reads.

        Transport errors are raised as-is so the caller can decide on retries.
        """
        request = self._fetch_request(address, relative_path, token, timeout)
        response = await self.session.client.send(request, stream=True)
        try:
            yield response
        finally:
            await response.aclose()

    async def unpin(self, address: Address) -> None:
        """
        Unpin an address so the storage network may garbage-collect it.

        Raises:
            DriveException: On error status
            NetworkUnavailableError: On transport failure
        """
        response = await self.session.request('POST', PINS_RM_PATH, json={'cid': address})
        if not response.is_success:
            raise DriveException(f"Delete failed: {format_error(response)}")
        logger.info(f"Unpinned [address={address}]")
