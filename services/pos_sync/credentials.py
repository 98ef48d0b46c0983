"""Integration credentials and the token cipher used to store them"""
import base64
import binascii
import logging
import os
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Optional, Tuple

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from db_models import POSIntegration
from settings import get_settings
from .errors import CredentialError

logger = logging.getLogger(__name__)

NONCE_BYTES = 12


class TokenCipher:
    """AES-GCM encryption of OAuth tokens, addressed by a per-token nonce"""

    def __init__(self, key: bytes):
        self._aesgcm = AESGCM(key)

    @classmethod
    def from_settings(cls) -> "TokenCipher":
        raw_key = get_settings().POS_TOKEN_ENCRYPTION_KEY
        if not raw_key:
            raise CredentialError("POS_TOKEN_ENCRYPTION_KEY is not configured")
        try:
            key = base64.urlsafe_b64decode(raw_key)
            return cls(key)
        except (binascii.Error, ValueError) as e:
            raise CredentialError(f"Invalid POS_TOKEN_ENCRYPTION_KEY: {e}")

    @staticmethod
    def new_nonce() -> str:
        return base64.urlsafe_b64encode(os.urandom(NONCE_BYTES)).decode("ascii")

    def encrypt(self, token: str, nonce: str) -> str:
        ciphertext = self._aesgcm.encrypt(base64.urlsafe_b64decode(nonce), token.encode("utf-8"), None)
        return base64.urlsafe_b64encode(ciphertext).decode("ascii")

    def decrypt(self, encrypted_token: str, nonce: str) -> str:
        try:
            plaintext = self._aesgcm.decrypt(
                base64.urlsafe_b64decode(nonce),
                base64.urlsafe_b64decode(encrypted_token),
                None
            )
        except (InvalidTag, binascii.Error, ValueError) as e:
            raise CredentialError(f"Unable to decrypt POS token: {e.__class__.__name__}")
        return plaintext.decode("utf-8")

    def seal(self, token: str) -> Tuple[str, str]:
        """Encrypt under a fresh nonce. Returns (encrypted_token, nonce)."""
        nonce = self.new_nonce()
        return self.encrypt(token, nonce), nonce


@dataclass(frozen=True)
class POSCredentials:
    """Decrypted credentials for one sync call. Never mutated in place."""

    integration_id: int
    provider: str
    access_token: str
    refresh_token: Optional[str] = None
    store_id: Optional[str] = None
    merchant_id: Optional[str] = None
    environment: str = "production"
    config: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_sandbox(self) -> bool:
        return self.environment == "sandbox"

    def with_tokens(self, access_token: str, refresh_token: Optional[str] = None) -> "POSCredentials":
        return replace(
            self,
            access_token=access_token,
            refresh_token=refresh_token or self.refresh_token
        )

    def with_merchant_id(self, merchant_id: str) -> "POSCredentials":
        return replace(self, merchant_id=merchant_id)


def _default_environment(provider: str) -> str:
    settings = get_settings()
    defaults = {
        "square": settings.SQUARE_ENVIRONMENT,
        "clover": settings.CLOVER_ENVIRONMENT,
    }
    return defaults.get(provider, "production")


def load_credentials(integration: POSIntegration, cipher: Optional[TokenCipher]) -> POSCredentials:
    """
    Build the credential value for an integration, decrypting stored tokens.

    Rows that predate token encryption still carry plaintext tokens and are
    used as-is.

    Raises:
        CredentialError: decryption failed or no access token is stored
    """
    provider = (integration.provider or "").lower()
    config = dict(integration.config or {})

    if integration.access_token_encrypted and integration.access_token_nonce:
        if cipher is None:
            raise CredentialError("Token cipher is not configured")
        access_token = cipher.decrypt(integration.access_token_encrypted, integration.access_token_nonce)

        refresh_token = None
        if integration.refresh_token_encrypted and integration.refresh_token_nonce:
            refresh_token = cipher.decrypt(integration.refresh_token_encrypted, integration.refresh_token_nonce)
        logger.info(f"Decrypted tokens for integration {integration.id}")
    elif integration.access_token:
        logger.info(f"Integration {integration.id} uses legacy plaintext tokens")
        access_token = integration.access_token
        refresh_token = integration.refresh_token
    else:
        raise CredentialError("POS integration has no valid access token")

    return POSCredentials(
        integration_id=integration.id,
        provider=provider,
        access_token=access_token,
        refresh_token=refresh_token,
        store_id=integration.store_id or config.get("shop_domain") or config.get("store_id"),
        merchant_id=integration.merchant_id or config.get("merchant_id"),
        environment=config.get("environment") or _default_environment(provider),
        config=config
    )
