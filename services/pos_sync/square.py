"""Square POS catalog sync"""
from typing import Dict, List, Any, Optional

from settings import get_settings
from .base import BasePOSProvider, cents_to_decimal
from .credentials import POSCredentials
from .product_store import ProductRecord


class SquareProvider(BasePOSProvider):
    """Square Catalog API: items with variations, prices in cents"""

    PROVIDER_NAME = "square"
    DISPLAY_NAME = "Square"
    SUPPORTS_TOKEN_REFRESH = True

    BASE_URL = "https://connect.squareup.com/v2"
    SANDBOX_BASE_URL = "https://connect.squareupsandbox.com/v2"

    def _get_base_url(self, credentials: POSCredentials) -> str:
        """Get base URL based on environment"""
        if credentials.is_sandbox:
            return self.SANDBOX_BASE_URL
        return self.BASE_URL

    def _get_headers(self, credentials: POSCredentials) -> Dict[str, str]:
        headers = super()._get_headers(credentials)
        headers["Square-Version"] = get_settings().SQUARE_API_VERSION
        return headers

    async def fetch_catalog(self, credentials: POSCredentials) -> List[Dict[str, Any]]:
        """Fetch catalog items from Square, following the cursor"""
        items = []
        cursor = None

        while True:
            params = {"types": "ITEM"}
            if cursor:
                params["cursor"] = cursor

            data = await self._get_json(
                credentials,
                f"{self._get_base_url(credentials)}/catalog/list",
                params=params
            )

            items.extend(obj for obj in data.get("objects", []) if obj.get("type", "ITEM") == "ITEM")

            cursor = data.get("cursor")
            if not cursor:
                break

        return items

    def item_name(self, item: Dict[str, Any]) -> str:
        return (item.get("item_data") or {}).get("name") or "Unknown product"

    def get_variants(self, item: Dict[str, Any]) -> List[Dict[str, Any]]:
        return (item.get("item_data") or {}).get("variations") or []

    def build_record(
        self,
        item: Dict[str, Any],
        variant: Optional[Dict[str, Any]],
        credentials: POSCredentials
    ) -> ProductRecord:
        item_data = item.get("item_data") or {}
        variation_data = (variant or {}).get("item_variation_data") or {}

        variation_id = variant.get("id") if variant else None
        name = item_data.get("name")
        if variation_id:
            name = self.compose_name(name, variation_data.get("name") or "Default")

        # Square prices are in the smallest currency unit
        price_money = variation_data.get("price_money") or {}
        upc = variation_data.get("upc")

        return ProductRecord(
            external_product_id=item.get("id"),
            external_variant_id=variation_id,
            name=name,
            description=item_data.get("description"),
            category_name=item_data.get("category_name") or item_data.get("product_type"),
            price=cents_to_decimal(price_money.get("amount")),
            currency=price_money.get("currency") or "USD",
            # Catalog API does not expose inventory counts
            stock_quantity=0,
            sku=variation_data.get("sku"),
            barcode=upc,
            upc=upc,
            is_active=not item.get("is_deleted", False),
            metadata={
                "square_version": item.get("version"),
                "square_category_id": item_data.get("category_id"),
                "square_tax_ids": item_data.get("tax_ids"),
                "square_image_ids": item_data.get("image_ids"),
            }
        )
