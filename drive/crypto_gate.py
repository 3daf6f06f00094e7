"""Gate around the encryption primitive: readiness polling and typed failures."""

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional, Union

from common.constants import (
    CIPHERTEXT_PREFIX,
    PRIMITIVE_POLL_ATTEMPTS,
    PRIMITIVE_POLL_INTERVAL_SECONDS,
)
from common.encoding import decode_from_primitive, encode_for_primitive
from drive.exceptions import (
    DecryptionFailedError,
    EncryptionFailedError,
    MissingSecretError,
    PrimitiveUnavailableError,
)
from drive.primitives import EncryptionPrimitive

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EncryptedBlob:
    """Ciphertext text as produced by the primitive."""
    ciphertext: str
    content_type: str = "text/plain"

    def to_bytes(self) -> bytes:
        return self.ciphertext.encode('utf-8')

    @property
    def size(self) -> int:
        return len(self.to_bytes())


class CryptoGate:
    """
    Wraps an encryption primitive that may be installed asynchronously.

    Callers await the primitive through a bounded polling window before any
    encrypt/decrypt call.
    """

    def __init__(
        self,
        primitive: Optional[EncryptionPrimitive] = None,
        poll_attempts: int = PRIMITIVE_POLL_ATTEMPTS,
        poll_interval: float = PRIMITIVE_POLL_INTERVAL_SECONDS,
    ):
        """
        Initialize the gate.

        Args:
            primitive: Primitive to use right away, or None to wait for install_primitive()
            poll_attempts: Readiness checks before giving up
            poll_interval: Seconds between readiness checks
        """
        self._primitive = primitive
        self.poll_attempts = poll_attempts
        self.poll_interval = poll_interval

    def install_primitive(self, primitive: EncryptionPrimitive) -> None:
        self._primitive = primitive
        logger.debug(f"Encryption primitive installed [type={type(primitive).__name__}]")

    @property
    def is_ready(self) -> bool:
        return self._primitive is not None

    @staticmethod
    def is_ciphertext(text: str) -> bool:
        """True when text still carries the primitive's ciphertext prefix."""
        return text.lstrip().startswith(CIPHERTEXT_PREFIX)

    async def _await_primitive(self) -> EncryptionPrimitive:
        if self._primitive is not None:
            return self._primitive

        for attempt in range(self.poll_attempts):
            await asyncio.sleep(self.poll_interval)
            if self._primitive is not None:
                logger.debug(f"Encryption primitive ready after {attempt + 1} poll(s)")
                return self._primitive

        raise PrimitiveUnavailableError(
            f"Encryption library not available after {self.poll_attempts} attempts"
        )

    async def encrypt_payload(
        self,
        data: bytes,
        secret: str,
        content_type: Optional[str] = None,
    ) -> EncryptedBlob:
        """
        Encrypt bytes with the given secret.

        Args:
            data: Plaintext bytes
            secret: Encryption secret
            content_type: Original content type, embedded in the data URI

        Returns:
            EncryptedBlob whose text starts with the ciphertext prefix

        Raises:
            MissingSecretError: If secret is empty
            PrimitiveUnavailableError: If the primitive never becomes ready
            EncryptionFailedError: On any primitive error
        """
        if not secret:
            raise MissingSecretError("An encryption secret is required for encryption")

        primitive = await self._await_primitive()

        try:
            ciphertext = primitive.encrypt(encode_for_primitive(data, content_type), secret)
        except Exception as e:
            raise EncryptionFailedError(f"Encryption failed: {e}") from e

        if not ciphertext:
            raise EncryptionFailedError("Encryption failed: primitive returned no ciphertext")

        return EncryptedBlob(ciphertext=ciphertext)

    async def decrypt_payload(self, blob: Union[EncryptedBlob, str, bytes], secret: str) -> bytes:
        """
        Decrypt ciphertext back to the original bytes.

        Raises:
            MissingSecretError: If secret is empty
            PrimitiveUnavailableError: If the primitive never becomes ready
            DecryptionFailedError: Wrong secret or corrupted data
        """
        if not secret:
            raise MissingSecretError("An encryption secret is required for decryption")

        if isinstance(blob, EncryptedBlob):
            text = blob.ciphertext
        elif isinstance(blob, bytes):
            text = blob.decode('utf-8', errors='replace')
        else:
            text = blob

        primitive = await self._await_primitive()

        try:
            plaintext = primitive.decrypt(text.strip(), secret)
        except Exception as e:
            raise DecryptionFailedError(f"Decryption failed: {e}") from e

        if not plaintext:
            raise DecryptionFailedError("Decryption failed - invalid secret or corrupted data")

        try:
            return decode_from_primitive(plaintext)
        except ValueError as e:
            raise DecryptionFailedError(f"Decryption failed - undecodable payload: {e}") from e
