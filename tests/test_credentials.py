import base64

import pytest

from db_models import POSIntegration
from services.pos_sync.credentials import TokenCipher, load_credentials
from services.pos_sync.errors import CredentialError


def test_seal_then_decrypt(cipher):
    encrypted, nonce = cipher.seal("sq0atp-secret")

    assert encrypted != "sq0atp-secret"
    assert cipher.decrypt(encrypted, nonce) == "sq0atp-secret"


def test_decrypt_with_wrong_key_fails(cipher):
    encrypted, nonce = cipher.seal("sq0atp-secret")
    other = TokenCipher(base64.urlsafe_b64decode(base64.urlsafe_b64encode(b"z" * 32)))

    with pytest.raises(CredentialError):
        other.decrypt(encrypted, nonce)


def test_decrypt_garbage_fails(cipher):
    with pytest.raises(CredentialError):
        cipher.decrypt("not-base64!!", cipher.new_nonce())


def test_load_credentials_decrypts_tokens(make_integration, cipher):
    integration = make_integration(
        "shopify",
        store_id=None,
        config={"shop_domain": "demo.myshopify.com", "environment": "sandbox"}
    )

    credentials = load_credentials(integration, cipher)

    assert credentials.access_token == "access-1"
    assert credentials.refresh_token == "refresh-1"
    assert credentials.store_id == "demo.myshopify.com"
    assert credentials.is_sandbox is True


def test_load_credentials_legacy_plaintext(db, user, cipher):
    integration = POSIntegration(
        user_id=user.id, provider="Square", access_token="plain-access", refresh_token="plain-refresh"
    )
    db.add(integration)
    db.commit()

    credentials = load_credentials(integration, cipher)

    assert credentials.provider == "square"
    assert credentials.access_token == "plain-access"
    assert credentials.refresh_token == "plain-refresh"
    assert credentials.environment == "production"


def test_load_credentials_without_any_token(db, user, cipher):
    integration = POSIntegration(user_id=user.id, provider="square")
    db.add(integration)
    db.commit()

    with pytest.raises(CredentialError):
        load_credentials(integration, cipher)


def test_with_tokens_keeps_old_refresh_token(make_integration, cipher):
    credentials = load_credentials(make_integration("square"), cipher)

    rotated = credentials.with_tokens("access-2")

    assert rotated.access_token == "access-2"
    assert rotated.refresh_token == "refresh-1"
    assert credentials.access_token == "access-1"
