import base64
import os

# Must be set before settings are first loaded
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["POS_TOKEN_ENCRYPTION_KEY"] = base64.urlsafe_b64encode(b"k" * 32).decode("ascii")
os.environ["SYNC_ENABLED"] = "false"
os.environ["JWT_SECRET_KEY"] = "test-secret"

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from database import Base, seed_categories
from db_models import User, POSIntegration, ProductCategory
from services.pos_sync.credentials import TokenCipher


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    db = factory()
    seed_categories(db)
    db.close()
    return factory


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def cipher():
    return TokenCipher.from_settings()


@pytest.fixture
def user(db):
    user = User(email="merchant@example.com", name="Test Merchant", is_active=True)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def other_user(db):
    user = User(email="someone@example.com", name="Someone Else", is_active=True)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def make_integration(db, user, cipher):
    """Factory for integrations with encrypted tokens"""

    def _make(provider, access_token="access-1", refresh_token="refresh-1", owner=None, **fields):
        integration = POSIntegration(user_id=(owner or user).id, provider=provider, status="active", **fields)
        if access_token:
            integration.access_token_encrypted, integration.access_token_nonce = cipher.seal(access_token)
        if refresh_token:
            integration.refresh_token_encrypted, integration.refresh_token_nonce = cipher.seal(refresh_token)
        db.add(integration)
        db.commit()
        db.refresh(integration)
        return integration

    return _make


@pytest.fixture
def category_ids(db):
    return {slug: category_id for slug, category_id in db.query(ProductCategory.slug, ProductCategory.id).all()}
