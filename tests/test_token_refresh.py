from datetime import datetime

import httpx
import pytest
import respx

from services.pos_sync.credentials import POSCredentials
from services.pos_sync.errors import (
    MissingStoreIdentifier,
    NoRefreshToken,
    ProviderAPIError,
    RefreshUnsupported,
    TokenRefreshError,
)
from services.pos_sync.token_refresh import TokenRefreshManager, _parse_expiry, is_auth_failure, is_token_expired_error


def credentials_for(provider, refresh_token="refresh-1", **fields):
    return POSCredentials(integration_id=1, provider=provider, access_token="access-1", refresh_token=refresh_token, **fields)


@pytest.mark.parametrize("status_code,message,expected", [
    (401, "", True),
    (403, "Token expired for merchant", True),
    (400, "UNAUTHORIZED request", True),
    (500, "Internal error", False),
    (None, None, False),
])
def test_is_auth_failure(status_code, message, expected):
    assert is_auth_failure(status_code, message) is expected


def test_is_token_expired_error():
    assert is_token_expired_error(ProviderAPIError("boom", status_code=401)) is True
    assert is_token_expired_error(ValueError("invalid token supplied")) is True
    assert is_token_expired_error(ValueError("bad price")) is False


def test_token_requests_per_provider(db, cipher):
    manager = TokenRefreshManager(db, cipher)

    url, payload, form_encoded = manager.build_token_request(credentials_for("square"))
    assert url == "https://connect.squareup.com/oauth2/token"
    assert payload["grant_type"] == "refresh_token"
    assert payload["refresh_token"] == "refresh-1"
    assert form_encoded is False

    url, _, _ = manager.build_token_request(credentials_for("square", environment="sandbox"))
    assert url == "https://connect.squareupsandbox.com/oauth2/token"

    url, _, form_encoded = manager.build_token_request(credentials_for("clover"))
    assert url == "https://www.clover.com/oauth/token"
    assert form_encoded is False

    url, _, form_encoded = manager.build_token_request(credentials_for("lightspeed", store_id="shop"))
    assert url == "https://shop.retail.lightspeed.app/api/1.0/token"
    assert form_encoded is True


@pytest.mark.parametrize("credentials,error", [
    (credentials_for("shopify"), RefreshUnsupported),
    (credentials_for("toast"), RefreshUnsupported),
    (credentials_for("vend"), RefreshUnsupported),
    (credentials_for("square", refresh_token=None), NoRefreshToken),
    (credentials_for("lightspeed"), MissingStoreIdentifier),
])
def test_token_request_rejections(db, cipher, credentials, error):
    with pytest.raises(error):
        TokenRefreshManager(db, cipher).build_token_request(credentials)


def test_supports_refresh():
    assert TokenRefreshManager.supports_refresh("Square") is True
    assert TokenRefreshManager.supports_refresh("shopify") is False


def test_parse_expiry():
    assert _parse_expiry({"expires_at": "2026-12-01T05:00:00+02:00"}) == datetime(2026, 12, 1, 3, 0)
    assert _parse_expiry({"expires_at": "soon"}) is None
    assert _parse_expiry({}) is None
    assert _parse_expiry({"expires_in": 60}) > datetime.utcnow()


@pytest.mark.asyncio
async def test_refresh_response_without_access_token(db, cipher, make_integration):
    integration = make_integration("clover")

    with respx.mock() as respx_mock:
        respx_mock.post("https://www.clover.com/oauth/token").mock(
            return_value=httpx.Response(200, json={"token_type": "bearer"})
        )
        with pytest.raises(TokenRefreshError):
            await TokenRefreshManager(db, cipher).refresh(integration)

    db.refresh(integration)
    assert cipher.decrypt(integration.access_token_encrypted, integration.access_token_nonce) == "access-1"


@pytest.mark.asyncio
async def test_refresh_clears_legacy_plaintext(db, cipher, make_integration):
    integration = make_integration("clover", access_token=None, refresh_token=None)
    integration.access_token = "plain-access"
    integration.refresh_token = "plain-refresh"
    db.commit()

    with respx.mock() as respx_mock:
        route = respx_mock.post("https://www.clover.com/oauth/token").mock(
            return_value=httpx.Response(200, json={"access_token": "access-2", "refresh_token": "refresh-2"})
        )
        tokens = await TokenRefreshManager(db, cipher).refresh(integration)

    assert b'"refresh_token":"plain-refresh"' in route.calls[0].request.content.replace(b" ", b"")
    assert tokens.expires_at is None

    db.refresh(integration)
    assert integration.access_token is None
    assert integration.refresh_token is None
    assert cipher.decrypt(integration.refresh_token_encrypted, integration.refresh_token_nonce) == "refresh-2"
