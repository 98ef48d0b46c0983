# db_models.py
from sqlalchemy import (
    Column, Integer, String, Boolean, DateTime, Text, ForeignKey, Numeric, JSON, UniqueConstraint,
    Index, text
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from database import Base


class User(Base):
    """Merchant account, as known to the identity service"""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, nullable=False, index=True)
    name = Column(String, nullable=False)
    created_at = Column(DateTime, default=func.now())
    is_active = Column(Boolean, default=True)

    integrations = relationship("POSIntegration", back_populates="user", cascade="all, delete-orphan")


class POSIntegration(Base):
    """OAuth connection to a merchant's point-of-sale provider"""
    __tablename__ = "pos_integrations"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    provider = Column(String, nullable=False)  # 'square', 'shopify', 'clover', 'lightspeed', 'toast'

    # Encrypted OAuth tokens, one nonce per ciphertext
    access_token_encrypted = Column(Text, nullable=True)
    access_token_nonce = Column(String, nullable=True)
    refresh_token_encrypted = Column(Text, nullable=True)
    refresh_token_nonce = Column(String, nullable=True)
    token_expires_at = Column(DateTime, nullable=True)

    # Legacy plaintext tokens (rows connected before encryption was introduced)
    access_token = Column(Text, nullable=True)
    refresh_token = Column(Text, nullable=True)

    # Provider-specific identifiers
    store_id = Column(String, nullable=True)  # Shopify shop domain, Lightspeed domain prefix
    merchant_id = Column(String, nullable=True)  # Clover/Square merchant ID
    config = Column(JSON, nullable=True)  # {"environment": "sandbox", "shop_domain": ...}

    # Connection status
    status = Column(String, default="active")  # active, inactive, error
    last_sync_at = Column(DateTime, nullable=True)
    last_error = Column(Text, nullable=True)

    created_at = Column(DateTime, default=func.now())
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())

    user = relationship("User", back_populates="integrations")
    sync_progress = relationship("SyncProgress", back_populates="integration", cascade="all, delete-orphan")


class ProductCategory(Base):
    """Static category reference data. The 'other' row always exists."""
    __tablename__ = "product_categories"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    slug = Column(String, unique=True, nullable=False, index=True)
    is_restricted = Column(Boolean, default=False)
    restriction_reason = Column(Text, nullable=True)


class Product(Base):
    """Canonical product synced from a POS catalog item or variant"""
    __tablename__ = "products"
    __table_args__ = (
        UniqueConstraint(
            "pos_integration_id", "external_product_id", "external_variant_id",
            name="uq_products_integration_external"
        ),
        # NULLs are distinct under the constraint above
        Index(
            "uq_products_integration_external_no_variant",
            "pos_integration_id", "external_product_id",
            unique=True,
            sqlite_where=text("external_variant_id IS NULL"),
            postgresql_where=text("external_variant_id IS NULL")
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    merchant_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    pos_integration_id = Column(Integer, ForeignKey("pos_integrations.id", ondelete="CASCADE"), nullable=False)

    external_product_id = Column(String, nullable=False)
    external_variant_id = Column(String, nullable=True)

    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    category_id = Column(Integer, ForeignKey("product_categories.id"), nullable=True)
    price = Column(Numeric(12, 2), nullable=False, default=0)
    currency = Column(String(3), nullable=False, default="USD")
    stock_quantity = Column(Integer, default=0)
    sku = Column(String, nullable=True)
    barcode = Column(String, nullable=True)
    upc = Column(String, nullable=True)
    barter_enabled = Column(Boolean, default=True)
    image_url = Column(String, nullable=True)
    images = Column(JSON, nullable=True)
    is_active = Column(Boolean, default=True)

    sync_status = Column(String, default="synced")
    last_synced_at = Column(DateTime, nullable=True)
    extra_metadata = Column("metadata", JSON, nullable=True)  # provider-specific fields

    created_at = Column(DateTime, default=func.now())
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())

    category = relationship("ProductCategory")


class SyncProgress(Base):
    """Incrementally updated status of one product sync run"""
    __tablename__ = "product_sync_progress"

    id = Column(Integer, primary_key=True, index=True)
    pos_integration_id = Column(Integer, ForeignKey("pos_integrations.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=True)
    status = Column(String, nullable=False, default="in_progress")  # in_progress, completed, failed

    total_items = Column(Integer, default=0)
    processed_items = Column(Integer, default=0)
    synced_items = Column(Integer, default=0)
    skipped_items = Column(Integer, default=0)
    error_items = Column(Integer, default=0)

    current_item_name = Column(String, nullable=True)
    current_step = Column(String, nullable=True)
    error = Column(Text, nullable=True)

    started_at = Column(DateTime, default=func.now())
    completed_at = Column(DateTime, nullable=True)

    integration = relationship("POSIntegration", back_populates="sync_progress")
