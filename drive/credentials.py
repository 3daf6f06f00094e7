"""Credential provider: bearer token or wallet address + signature."""

from dataclasses import dataclass, replace
from typing import Dict, Optional


@dataclass(frozen=True)
class Credential:
    """
    Credential material presented to the relay.

    Attributes:
        bearer_token: Relay auth token
        wallet_address: Wallet address (alternative to bearer token)
        wallet_signature: Signature proving ownership of wallet_address
        encryption_token: Optional dedicated encryption secret
    """
    bearer_token: Optional[str] = None
    wallet_address: Optional[str] = None
    wallet_signature: Optional[str] = None
    encryption_token: Optional[str] = None

    def is_usable(self) -> bool:
        if self.bearer_token:
            return True
        return bool(self.wallet_address and self.wallet_signature)

    @property
    def encryption_secret(self) -> Optional[str]:
        """Dedicated encryption token, falling back to the bearer token."""
        return self.encryption_token or self.bearer_token or None

    def auth_headers(self) -> Dict[str, str]:
        if self.bearer_token:
            return {'Authorization': f'Bearer {self.bearer_token}'}
        if self.wallet_address and self.wallet_signature:
            return {
                'X-User-Address': self.wallet_address,
                'X-Wallet-Signature': self.wallet_signature,
            }
        return {}


class CredentialProvider:
    """Holds the current credential; components only ask whether it is usable."""

    def __init__(self, credential: Optional[Credential] = None):
        self._credential = credential or Credential()

    @property
    def current(self) -> Credential:
        return self._credential

    def has_usable_credential(self) -> bool:
        return self._credential.is_usable()

    def encryption_secret(self) -> Optional[str]:
        return self._credential.encryption_secret

    def auth_headers(self) -> Dict[str, str]:
        return self._credential.auth_headers()

    def set_bearer_token(self, token: Optional[str]) -> None:
        self._credential = replace(self._credential, bearer_token=token or None)

    def set_encryption_token(self, token: Optional[str]) -> None:
        self._credential = replace(self._credential, encryption_token=token or None)

    def set_wallet(self, address: Optional[str], signature: Optional[str]) -> None:
        self._credential = replace(
            self._credential,
            wallet_address=address or None,
            wallet_signature=signature or None,
        )
