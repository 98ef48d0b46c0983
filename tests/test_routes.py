from datetime import datetime

import pytest
from fastapi.testclient import TestClient
from jose import jwt

from auth import get_current_user
from database import get_db
from db_models import SyncProgress
from main import app
from routers.pos_sync import get_sync_service
from services.pos_sync.base import SyncResult
from services.pos_sync.errors import (
    CredentialError,
    IntegrationNotFound,
    NoRefreshToken,
    ProviderUnsupported,
    RefreshPersistError,
    RefreshUnsupported,
    TokenRefreshError,
)
from services.pos_sync.token_refresh import RefreshedTokens
from settings import get_settings


class FakeSyncService:
    """Stands in for ProductSyncService; returns or raises what the test sets"""

    def __init__(self):
        self.outcome = SyncResult(success=True, message="Products synced successfully", synced=2, progress_id=7)
        self.calls = []

    async def sync_products(self, integration_id, user):
        self.calls.append((integration_id, user.id))
        if isinstance(self.outcome, Exception):
            raise self.outcome
        return self.outcome

    async def refresh_token(self, integration_id, user):
        self.calls.append((integration_id, user.id))
        if isinstance(self.outcome, Exception):
            raise self.outcome
        return self.outcome


@pytest.fixture
def fake_service():
    return FakeSyncService()


@pytest.fixture
def client(db, user, fake_service):
    app.dependency_overrides[get_db] = lambda: db
    app.dependency_overrides[get_current_user] = lambda: user
    app.dependency_overrides[get_sync_service] = lambda: fake_service
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_health():
    response = TestClient(app).get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_product_sync_requires_bearer_token(db):
    app.dependency_overrides[get_db] = lambda: db
    try:
        response = TestClient(app).post("/api/pos/product-sync", json={"pos_integration_id": 1})
    finally:
        app.dependency_overrides.clear()

    assert response.status_code == 401


def test_product_sync_accepts_valid_bearer_token(db, user, fake_service):
    settings = get_settings()
    token = jwt.encode({"sub": str(user.id)}, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)
    app.dependency_overrides[get_db] = lambda: db
    app.dependency_overrides[get_sync_service] = lambda: fake_service
    try:
        response = TestClient(app).post(
            "/api/pos/product-sync",
            json={"pos_integration_id": 3},
            headers={"Authorization": f"Bearer {token}"}
        )
    finally:
        app.dependency_overrides.clear()

    assert response.status_code == 200
    assert fake_service.calls == [(3, user.id)]


def test_product_sync_success(client):
    response = client.post("/api/pos/product-sync", json={"pos_integration_id": 3})

    assert response.status_code == 200
    assert response.json() == {
        "success": True,
        "message": "Products synced successfully",
        "synced": 2,
        "skipped": 0,
        "progress_id": 7,
    }


def test_product_sync_missing_integration_id(client, fake_service):
    response = client.post("/api/pos/product-sync", json={})

    assert response.status_code == 400
    assert response.json() == {"success": False, "message": "pos_integration_id is required"}
    assert fake_service.calls == []


def test_product_sync_malformed_body(client):
    response = client.post("/api/pos/product-sync", json={"pos_integration_id": "not-a-number"})

    assert response.status_code == 400
    assert response.json()["success"] is False


def test_product_sync_failed_result(client, fake_service):
    fake_service.outcome = SyncResult(success=False, error="Toast product sync not yet implemented", progress_id=9)

    response = client.post("/api/pos/product-sync", json={"pos_integration_id": 3})

    assert response.status_code == 400
    assert response.json() == {"success": False, "error": "Toast product sync not yet implemented", "progress_id": 9}


@pytest.mark.parametrize("error,status_code", [
    (IntegrationNotFound("Integration 3 not found"), 404),
    (ProviderUnsupported("Product sync not implemented for provider: vend"), 400),
    (CredentialError("Unable to decrypt POS token: InvalidTag"), 500),
    (TokenRefreshError("Token expired and refresh failed: 400"), 500),
])
def test_product_sync_error_status(client, fake_service, error, status_code):
    fake_service.outcome = error

    response = client.post("/api/pos/product-sync", json={"pos_integration_id": 3})

    assert response.status_code == status_code
    assert response.json()["success"] is False


def test_decrypt_failure_message_is_generic(client, fake_service):
    fake_service.outcome = CredentialError("Unable to decrypt POS token: InvalidTag")

    response = client.post("/api/pos/product-sync", json={"pos_integration_id": 3})

    assert response.json()["message"] == "Unable to decrypt POS access token"


def test_refresh_token_success(client, fake_service):
    fake_service.outcome = RefreshedTokens(access_token="new", expires_at=datetime(2026, 12, 1))

    response = client.post("/api/pos/integrations/3/refresh-token")

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["expires_at"].startswith("2026-12-01")
    assert "new" not in body.values()


@pytest.mark.parametrize("error,status_code", [
    (RefreshUnsupported("Shopify tokens do not expire and cannot be refreshed"), 400),
    (NoRefreshToken("No refresh token available for square integration"), 400),
    (IntegrationNotFound("Integration 3 not found"), 404),
    (RefreshPersistError("Failed to save refreshed tokens"), 500),
    (TokenRefreshError("Token refresh failed: 400 - invalid_grant"), 502),
])
def test_refresh_token_error_status(client, fake_service, error, status_code):
    fake_service.outcome = error

    response = client.post("/api/pos/integrations/3/refresh-token")

    assert response.status_code == status_code


def test_sync_progress_owned_by_caller(client, db, user, make_integration):
    integration = make_integration("square")
    progress = SyncProgress(pos_integration_id=integration.id, user_id=user.id, status="in_progress", total_items=5,
                            processed_items=2, synced_items=2, skipped_items=0, error_items=0)
    db.add(progress)
    db.commit()

    response = client.get(f"/api/pos/sync-progress/{progress.id}")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "in_progress"
    assert body["total_items"] == 5
    assert body["processed_items"] == 2


def test_sync_progress_of_other_user_is_hidden(client, db, other_user, make_integration):
    integration = make_integration("square", owner=other_user)
    progress = SyncProgress(pos_integration_id=integration.id, user_id=other_user.id, status="completed")
    db.add(progress)
    db.commit()

    response = client.get(f"/api/pos/sync-progress/{progress.id}")

    assert response.status_code == 404


def test_providers(client):
    response = client.get("/api/pos/providers")

    assert response.status_code == 200
    providers = {p["id"]: p for p in response.json()}
    assert set(providers) == {"square", "shopify", "clover", "lightspeed", "toast"}
    assert providers["square"]["supports_token_refresh"] is True
    assert providers["shopify"]["supports_token_refresh"] is False
