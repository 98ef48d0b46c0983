"""Clover POS inventory sync"""
import logging
from typing import Dict, List, Any, Optional

from sqlalchemy.exc import SQLAlchemyError

from database import safe_commit
from .base import BasePOSProvider, cents_to_decimal
from .credentials import POSCredentials
from .errors import ProviderAPIError
from .product_store import ProductRecord

logger = logging.getLogger(__name__)


class CloverProvider(BasePOSProvider):
    """Clover inventory items, one product per item, prices in cents"""

    PROVIDER_NAME = "clover"
    DISPLAY_NAME = "Clover"
    SUPPORTS_TOKEN_REFRESH = True

    BASE_URL = "https://api.clover.com/v3"
    SANDBOX_BASE_URL = "https://apisandbox.dev.clover.com/v3"
    PAGE_SIZE = 100

    def _get_base_url(self, credentials: POSCredentials) -> str:
        if credentials.is_sandbox:
            return self.SANDBOX_BASE_URL
        return self.BASE_URL

    async def prepare(self, credentials: POSCredentials) -> POSCredentials:
        """Look up the merchant id once and remember it on the integration"""
        if credentials.merchant_id:
            return credentials
        if self.integration.merchant_id:
            return credentials.with_merchant_id(self.integration.merchant_id)

        logger.info(f"Fetching Clover merchant id for integration {credentials.integration_id}")
        data = await self._get_json(credentials, f"{self._get_base_url(credentials)}/merchants/me")
        merchant_id = data.get("id")
        if not merchant_id:
            raise ProviderAPIError("Clover merchant info did not include an id", provider=self.PROVIDER_NAME)

        try:
            self.integration.merchant_id = merchant_id
            safe_commit(self.db)
        except SQLAlchemyError as e:
            logger.warning(f"Could not store Clover merchant id {merchant_id}: {e}")

        return credentials.with_merchant_id(merchant_id)

    async def fetch_catalog(self, credentials: POSCredentials) -> List[Dict[str, Any]]:
        """Fetch inventory items from Clover"""
        items = []
        offset = 0

        while True:
            params = {
                "offset": offset,
                "limit": self.PAGE_SIZE,
                "expand": "categories,itemStock,tags"
            }

            data = await self._get_json(
                credentials,
                f"{self._get_base_url(credentials)}/merchants/{credentials.merchant_id}/items",
                params=params
            )

            elements = data.get("elements", [])
            items.extend(elements)

            if len(elements) < self.PAGE_SIZE:
                break
            offset += self.PAGE_SIZE

        return items

    def build_record(
        self,
        item: Dict[str, Any],
        variant: Optional[Dict[str, Any]],
        credentials: POSCredentials
    ) -> ProductRecord:
        categories = (item.get("categories") or {}).get("elements") or []
        tags = (item.get("tags") or {}).get("elements") or []
        stock = item.get("itemStock") or {}
        hidden = bool(item.get("hidden", False))
        code = item.get("code") or None

        return ProductRecord(
            external_product_id=item.get("id"),
            external_variant_id=None,
            name=item.get("name"),
            description=item.get("alternateName") or None,
            category_name=categories[0].get("name") if categories else None,
            price=cents_to_decimal(item.get("price")),
            stock_quantity=int(stock.get("quantity") or 0),
            sku=item.get("sku") or None,
            barcode=code,
            upc=code,
            is_active=not hidden and item.get("available", True) is not False,
            barter_allowed=not hidden,
            metadata={
                "clover_item_id": item.get("id"),
                "clover_modified_time": item.get("modifiedTime"),
                "clover_price_type": item.get("priceType"),
                "clover_unit_name": item.get("unitName"),
                "clover_is_revenue": item.get("isRevenue"),
                "clover_tags": [tag.get("name") for tag in tags],
                "clover_categories": [category.get("name") for category in categories],
                "cost": str(cents_to_decimal(item["cost"])) if item.get("cost") is not None else None,
            }
        )
