"""Shared async HTTP session for talking to the relay."""

import logging
import uuid
from typing import Dict, Optional

import httpx

from common.constants import REQUEST_TIMEOUT_SECONDS
from drive.credentials import CredentialProvider
from drive.exceptions import CredentialMissingError, NetworkUnavailableError

logger = logging.getLogger(__name__)

ERROR_MESSAGES = {
    'INVALID_TOKEN': 'Not authenticated. Please check your auth token.',
    'UNAUTHORIZED': 'Not authenticated. Please check your auth token.',
    'FILE_NOT_FOUND': 'File not found on relay.',
    'NOT_FOUND': 'Not found on relay.',
    'STORAGE_FULL': 'Storage capacity exceeded. Please delete some files.',
    'IPFS_UNAVAILABLE': 'Storage network is currently unavailable. Please try again later.',
}

STATUS_MESSAGES = {
    400: 'Bad request',
    401: 'Not authenticated',
    403: 'Access forbidden',
    404: 'Not found',
    413: 'File too large',
    500: 'Relay error',
    502: 'Bad gateway',
    503: 'Service unavailable',
    507: 'Insufficient storage',
}


class RelaySession:
    """
    Thin wrapper over httpx.AsyncClient bound to one relay base URL.

    Adds request IDs, credential headers and uniform transport error mapping.
    """

    def __init__(
        self,
        relay_url: str,
        credentials: CredentialProvider,
        timeout: float = REQUEST_TIMEOUT_SECONDS,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Initialize relay session.

        Args:
            relay_url: Relay base URL (e.g. "http://localhost:8765")
            credentials: Credential provider used for auth headers
            timeout: Default request timeout in seconds
            client: Pre-built AsyncClient (tests inject one with a MockTransport)
        """
        self.relay_url = relay_url.rstrip('/')
        self.credentials = credentials
        self.timeout = timeout
        self.client = client or httpx.AsyncClient(base_url=self.relay_url, timeout=timeout)
        logger.info(f"Initialized RelaySession [relay_url={self.relay_url}]")

    def auth_headers(self) -> Dict[str, str]:
        """
        Get credential headers.

        Raises:
            CredentialMissingError: If no usable credential is configured
        """
        if not self.credentials.has_usable_credential():
            raise CredentialMissingError("Auth token is required. Please set it with: login <token>")
        return self.credentials.auth_headers()

    def url_for(self, path: str) -> str:
        return f"{self.relay_url}{path}"

    async def request(
        self,
        method: str,
        path: str,
        authenticated: bool = True,
        **kwargs
    ) -> httpx.Response:
        """
        Send one request and map transport failures.

        Args:
            method: HTTP method
            path: Path relative to the relay URL
            authenticated: Attach credential headers
            **kwargs: Passed through to httpx

        Returns:
            HTTP response (any status)

        Raises:
            CredentialMissingError: If authenticated and no credential is set
            NetworkUnavailableError: On connection failure or timeout
        """
        request_id = str(uuid.uuid4())
        headers = dict(kwargs.pop('headers', None) or {})
        if authenticated:
            headers.update(self.auth_headers())
        headers['X-Request-ID'] = request_id

        logger.debug(f"Making request: {method} {path} [request_id={request_id}]")

        try:
            response = await self.client.request(method, path, headers=headers, **kwargs)
        except httpx.ConnectError as e:
            logger.warning(f"Connection failed: {method} {path} error={e} [request_id={request_id}]")
            raise NetworkUnavailableError("Cannot connect to relay server. Please check the relay URL") from e
        except httpx.TimeoutException as e:
            logger.warning(f"Request timed out: {method} {path} [request_id={request_id}]")
            raise NetworkUnavailableError("Request timed out. The relay server may be slow or unreachable") from e
        except httpx.TransportError as e:
            logger.warning(f"Network error: {method} {path} error={type(e).__name__} [request_id={request_id}]")
            raise NetworkUnavailableError("Network error. Please check your connection and relay URL") from e

        logger.debug(
            f"Response received: {method} {path} status={response.status_code} [request_id={request_id}]"
        )
        if response.status_code >= 400:
            logger.warning(
                f"Relay error: {method} {path} status={response.status_code} [request_id={request_id}]"
            )
        return response

    async def close(self) -> None:
        """Close the HTTP client."""
        await self.client.aclose()


def format_error(response: httpx.Response) -> str:
    """
    Map relay HTTP errors to user-friendly messages.

    Args:
        response: HTTP response object

    Returns:
        User-friendly error message
    """
    try:
        error_data = response.json()
        detail = error_data.get('error') or error_data.get('detail') or 'Unknown error'
        code = error_data.get('code', 'UNKNOWN')
    except (ValueError, AttributeError):
        detail = response.text if response.text else 'Unknown error'
        code = 'UNKNOWN'

    if code in ERROR_MESSAGES:
        return ERROR_MESSAGES[code]

    message = STATUS_MESSAGES.get(response.status_code, detail)
    if detail != 'Unknown error' and message != detail:
        message = f"{message}: {detail}"
    return f"{message} (Code: {code})" if code != 'UNKNOWN' else f"{message} ({response.status_code})"
