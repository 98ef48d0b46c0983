"""Canonical product records and their keyed upsert"""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional, Union

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from database import safe_commit
from db_models import Product

logger = logging.getLogger(__name__)

# JSON-compatible value stored in the open metadata bag
MetadataValue = Union[None, bool, int, float, str, List["MetadataValue"], Dict[str, "MetadataValue"]]


@dataclass
class ProductRecord:
    """One catalog item (or item variant) normalized into the canonical schema"""

    external_product_id: str
    external_variant_id: Optional[str]
    name: str
    price: Decimal
    currency: str = "USD"
    description: Optional[str] = None
    category_name: Optional[str] = None
    stock_quantity: int = 0
    sku: Optional[str] = None
    barcode: Optional[str] = None
    upc: Optional[str] = None
    image_url: Optional[str] = None
    images: List[str] = field(default_factory=list)
    is_active: bool = True
    barter_allowed: bool = True
    metadata: Dict[str, MetadataValue] = field(default_factory=dict)

    def __post_init__(self):
        if not self.external_product_id:
            raise ValueError("Product has no external id")
        if not self.name or not str(self.name).strip():
            raise ValueError("Product has no name")
        if self.price < 0:
            raise ValueError(f"Negative price: {self.price}")


class ProductStore:
    """Insert-or-update keyed on (integration, external product id, external variant id)"""

    def __init__(self, db: Session):
        self.db = db

    def find(
        self,
        integration_id: int,
        external_product_id: str,
        external_variant_id: Optional[str]
    ) -> Optional[Product]:
        return self.db.query(Product).filter(
            Product.pos_integration_id == integration_id,
            Product.external_product_id == external_product_id,
            Product.external_variant_id == external_variant_id
        ).first()

    def upsert(
        self,
        integration_id: int,
        merchant_id: int,
        record: ProductRecord,
        category_id: int,
        barter_enabled: bool,
        metadata: Dict[str, MetadataValue]
    ) -> bool:
        """
        Write one canonical product. Returns True when a new row was inserted.

        Raises:
            SQLAlchemyError: the write failed; the session has been rolled back
        """
        values: Dict[str, Any] = {
            "merchant_id": merchant_id,
            "pos_integration_id": integration_id,
            "external_product_id": record.external_product_id,
            "external_variant_id": record.external_variant_id,
            "name": record.name,
            "description": record.description,
            "category_id": category_id,
            "price": record.price,
            "currency": record.currency,
            "stock_quantity": record.stock_quantity,
            "sku": record.sku,
            "barcode": record.barcode,
            "upc": record.upc,
            "barter_enabled": barter_enabled,
            "image_url": record.image_url,
            "images": list(record.images),
            "is_active": record.is_active,
            "sync_status": "synced",
            "last_synced_at": datetime.utcnow(),
            "extra_metadata": metadata,
        }

        existing = self.find(integration_id, record.external_product_id, record.external_variant_id)
        if existing:
            self._update(existing, values)
            created = False
        else:
            try:
                self.db.add(Product(**values))
                safe_commit(self.db)
                created = True
            except IntegrityError:
                # Another sync inserted the same key first; update its row instead
                logger.info(
                    f"Product {record.external_product_id}/{record.external_variant_id} "
                    f"was inserted concurrently, updating it"
                )
                existing = self.find(integration_id, record.external_product_id, record.external_variant_id)
                if existing is None:
                    raise
                self._update(existing, values)
                created = False

        logger.debug(
            f"{'Inserted' if created else 'Updated'} product "
            f"{record.external_product_id}/{record.external_variant_id}: {record.name}"
        )
        return created

    def _update(self, product: Product, values: Dict[str, Any]) -> None:
        for name, value in values.items():
            setattr(product, name, value)
        safe_commit(self.db)

