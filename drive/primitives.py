"""
Symmetric encryption primitive producing SEA-style ciphertext text.

Ciphertext layout: ``SEA{"ct": <b64>, "iv": <b64>, "s": <b64>}`` where the key
is PBKDF2-HMAC-SHA256(secret, s) and ``ct`` is AES-256-GCM output.
"""

import json
import logging
import os
from typing import Optional, Protocol

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from common.encoding import from_base64, to_base64

logger = logging.getLogger(__name__)

SEA_TAG = "SEA"
KDF_ITERATIONS = 100_000
SALT_BYTES = 9
NONCE_BYTES = 12


class EncryptionPrimitive(Protocol):
    """Opaque text-in/text-out cipher. ``decrypt`` returns None on failure."""

    def encrypt(self, plaintext: str, secret: str) -> str:
        ...

    def decrypt(self, ciphertext: str, secret: str) -> Optional[str]:
        ...


def _derive_key(secret: str, salt: bytes) -> bytes:
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=32,
        salt=salt,
        iterations=KDF_ITERATIONS,
    )
    return kdf.derive(secret.encode('utf-8'))


class SeaStylePrimitive:
    """AES-GCM primitive whose output always starts with ``SEA{``."""

    def encrypt(self, plaintext: str, secret: str) -> str:
        salt = os.urandom(SALT_BYTES)
        nonce = os.urandom(NONCE_BYTES)
        aesgcm = AESGCM(_derive_key(secret, salt))
        ct = aesgcm.encrypt(nonce, plaintext.encode('utf-8'), None)
        body = json.dumps({"ct": to_base64(ct), "iv": to_base64(nonce), "s": to_base64(salt)})
        return f"{SEA_TAG}{body}"

    def decrypt(self, ciphertext: str, secret: str) -> Optional[str]:
        text = ciphertext.strip()
        if not text.startswith(SEA_TAG):
            return None

        try:
            body = json.loads(text[len(SEA_TAG):])
            salt = from_base64(body["s"])
            nonce = from_base64(body["iv"])
            ct = from_base64(body["ct"])
            aesgcm = AESGCM(_derive_key(secret, salt))
            return aesgcm.decrypt(nonce, ct, None).decode('utf-8')
        except InvalidTag:
            logger.debug("Ciphertext authentication failed")
            return None
        except (ValueError, KeyError, TypeError) as e:
            logger.debug(f"Malformed ciphertext: {e}")
            return None
