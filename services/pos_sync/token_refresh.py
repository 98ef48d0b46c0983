"""
Automatic refresh of expired OAuth tokens for POS integrations.
Supports Square, Lightspeed and Clover. Shopify and Toast tokens have no
refresh flow.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional, Tuple

import httpx
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from database import safe_commit
from db_models import POSIntegration
from settings import get_settings
from .credentials import POSCredentials, TokenCipher, load_credentials
from .errors import (
    CredentialError,
    MissingStoreIdentifier,
    NoRefreshToken,
    RefreshPersistError,
    RefreshUnsupported,
    TokenRefreshError,
)

logger = logging.getLogger(__name__)

# Providers return inconsistent error shapes, so expiry is detected by
# status code or by these substrings of the error text.
AUTH_ERROR_MARKERS = (
    "unauthorized",
    "token expired",
    "invalid token",
    "authentication failed",
)

REFRESHABLE_PROVIDERS = ("square", "lightspeed", "clover")

SQUARE_TOKEN_URL = "https://connect.squareup.com/oauth2/token"
SQUARE_SANDBOX_TOKEN_URL = "https://connect.squareupsandbox.com/oauth2/token"
CLOVER_TOKEN_URL = "https://www.clover.com/oauth/token"
CLOVER_SANDBOX_TOKEN_URL = "https://sandbox.dev.clover.com/oauth/token"
LIGHTSPEED_TOKEN_URL = "https://{store_id}.retail.lightspeed.app/api/1.0/token"


def is_auth_failure(status_code: Optional[int], message: Optional[str]) -> bool:
    """HTTP 401, or error text that looks like a rejected token"""
    if status_code == 401:
        return True
    text = (message or "").lower()
    return any(marker in text for marker in AUTH_ERROR_MARKERS)


def is_token_expired_error(error: BaseException) -> bool:
    """Check if an error indicates token expiration"""
    status_code = getattr(error, "status_code", None)
    if isinstance(error, httpx.HTTPStatusError):
        status_code = error.response.status_code
    return is_auth_failure(status_code, str(error))


@dataclass(frozen=True)
class RefreshedTokens:
    access_token: str
    refresh_token: Optional[str] = None
    expires_at: Optional[datetime] = None


def _parse_expiry(data: Dict[str, Any]) -> Optional[datetime]:
    """Naive UTC expiry from expires_in (seconds) or expires_at (ISO date)"""
    expires_in = data.get("expires_in")
    if isinstance(expires_in, (int, float)) and not isinstance(expires_in, bool):
        return datetime.utcnow() + timedelta(seconds=int(expires_in))

    expires_at = data.get("expires_at")
    if isinstance(expires_at, str) and expires_at:
        try:
            parsed = datetime.fromisoformat(expires_at.replace("Z", "+00:00"))
        except ValueError:
            logger.warning(f"Ignoring unparseable token expiry: {expires_at}")
            return None
        if parsed.tzinfo:
            parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
        return parsed

    return None


class TokenRefreshManager:
    """Exchanges refresh tokens and persists the rotated, re-encrypted tokens"""

    def __init__(self, db: Session, cipher: Optional[TokenCipher]):
        self.db = db
        self.cipher = cipher
        self.settings = get_settings()

    @staticmethod
    def supports_refresh(provider: str) -> bool:
        return (provider or "").lower() in REFRESHABLE_PROVIDERS

    def build_token_request(self, credentials: POSCredentials) -> Tuple[str, Dict[str, str], bool]:
        """
        Token endpoint and payload for a provider.

        Returns:
            (url, payload, form_encoded)
        """
        provider = credentials.provider
        if provider == "shopify":
            raise RefreshUnsupported("Shopify tokens do not expire and cannot be refreshed")
        if provider == "toast":
            raise RefreshUnsupported("Toast does not support refresh tokens")
        if provider not in REFRESHABLE_PROVIDERS:
            raise RefreshUnsupported(f"Token refresh not supported for provider: {provider}")

        if not credentials.refresh_token:
            raise NoRefreshToken(f"No refresh token available for {provider} integration")

        if provider == "square":
            client_id = self.settings.SQUARE_APP_ID or ""
            sandbox = credentials.is_sandbox or "sandbox" in client_id
            url = SQUARE_SANDBOX_TOKEN_URL if sandbox else SQUARE_TOKEN_URL
            client_secret = self.settings.SQUARE_APP_SECRET or ""
            form_encoded = False
        elif provider == "clover":
            url = CLOVER_SANDBOX_TOKEN_URL if credentials.is_sandbox else CLOVER_TOKEN_URL
            client_id = self.settings.CLOVER_APP_ID or ""
            client_secret = self.settings.CLOVER_APP_SECRET or ""
            form_encoded = False
        else:
            if not credentials.store_id:
                raise MissingStoreIdentifier("Lightspeed store_id required for token refresh")
            url = LIGHTSPEED_TOKEN_URL.format(store_id=credentials.store_id)
            client_id = self.settings.LIGHTSPEED_CLIENT_ID or ""
            client_secret = self.settings.LIGHTSPEED_CLIENT_SECRET or ""
            form_encoded = True

        payload = {
            "client_id": client_id,
            "client_secret": client_secret,
            "grant_type": "refresh_token",
            "refresh_token": credentials.refresh_token,
        }
        return url, payload, form_encoded

    async def _request_tokens(self, provider: str, url: str, payload: Dict[str, str], form_encoded: bool) -> Dict[str, Any]:
        logger.info(f"Requesting {provider} token refresh from {url}")
        try:
            async with httpx.AsyncClient() as client:
                if form_encoded:
                    response = await client.post(
                        url,
                        data=payload,
                        headers={"Content-Type": "application/x-www-form-urlencoded"},
                        timeout=self.settings.POS_HTTP_TIMEOUT_SECONDS
                    )
                else:
                    response = await client.post(
                        url,
                        json=payload,
                        headers={"Content-Type": "application/json"},
                        timeout=self.settings.POS_HTTP_TIMEOUT_SECONDS
                    )
        except httpx.HTTPError as e:
            raise TokenRefreshError(f"Token refresh request failed: {e}")

        if not response.is_success:
            logger.error(f"Token refresh failed for {provider}: {response.status_code} {response.text}")
            raise TokenRefreshError(f"Token refresh failed: {response.status_code} - {response.text}")

        try:
            data = response.json()
        except ValueError:
            raise TokenRefreshError("Token refresh response was not JSON")

        if not isinstance(data, dict) or not data.get("access_token"):
            raise TokenRefreshError("Token refresh response did not include an access token")
        return data

    def _persist(self, integration: POSIntegration, tokens: RefreshedTokens) -> None:
        encrypted_access, access_nonce = self.cipher.seal(tokens.access_token)
        integration.access_token_encrypted = encrypted_access
        integration.access_token_nonce = access_nonce

        if tokens.refresh_token:
            encrypted_refresh, refresh_nonce = self.cipher.seal(tokens.refresh_token)
            integration.refresh_token_encrypted = encrypted_refresh
            integration.refresh_token_nonce = refresh_nonce

        # Row is now fully encrypted; drop any legacy plaintext copies
        integration.access_token = None
        integration.refresh_token = None
        integration.token_expires_at = tokens.expires_at

        try:
            safe_commit(self.db)
        except SQLAlchemyError as e:
            raise RefreshPersistError(f"Failed to save refreshed tokens: {e}")

    async def refresh(
        self,
        integration: POSIntegration,
        credentials: Optional[POSCredentials] = None
    ) -> RefreshedTokens:
        """
        Refresh an integration's access token and store the rotated tokens.

        Returns only after the new tokens are committed.

        Raises:
            RefreshUnsupported, NoRefreshToken, MissingStoreIdentifier,
            TokenRefreshError, RefreshPersistError, CredentialError
        """
        if credentials is None:
            credentials = load_credentials(integration, self.cipher)

        url, payload, form_encoded = self.build_token_request(credentials)
        if self.cipher is None:
            raise CredentialError("Token cipher is not configured; refreshed tokens cannot be stored")

        data = await self._request_tokens(credentials.provider, url, payload, form_encoded)
        tokens = RefreshedTokens(
            access_token=data["access_token"],
            refresh_token=data.get("refresh_token"),
            expires_at=_parse_expiry(data)
        )

        self._persist(integration, tokens)
        logger.info(f"Refreshed {credentials.provider} token for integration {integration.id}")
        return tokens
