"""Lightspeed Retail (X-Series) product sync"""
from typing import Dict, List, Any, Optional

from .base import BasePOSProvider, parse_decimal_price
from .credentials import POSCredentials
from .errors import MissingStoreIdentifier, ProviderAPIError
from .product_store import ProductRecord


def _stock_count(value: Any) -> int:
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return 0


class LightspeedProvider(BasePOSProvider):
    """Lightspeed X-Series API: page-numbered products with variants, decimal prices"""

    PROVIDER_NAME = "lightspeed"
    DISPLAY_NAME = "Lightspeed"
    SUPPORTS_TOKEN_REFRESH = True
    PAGE_SIZE = 200  # X-Series max per page

    def _get_headers(self, credentials: POSCredentials) -> Dict[str, str]:
        headers = super()._get_headers(credentials)
        headers["Accept"] = "application/json"
        return headers

    def _get_base_url(self, credentials: POSCredentials) -> str:
        if not credentials.store_id:
            raise MissingStoreIdentifier("Lightspeed store ID not configured")
        return f"https://{credentials.store_id}.retail.lightspeed.app/api/2.0"

    async def fetch_catalog(self, credentials: POSCredentials) -> List[Dict[str, Any]]:
        """Fetch every page of products"""
        products = []
        url = f"{self._get_base_url(credentials)}/products"
        page = 1

        while True:
            response = await self._make_request(
                credentials,
                "GET",
                url,
                params={"page_size": self.PAGE_SIZE, "page": page}
            )

            content_type = response.headers.get("content-type", "")
            if "application/json" not in content_type:
                raise ProviderAPIError(
                    f"Lightspeed API returned non-JSON response: {content_type or 'no content type'}",
                    provider=self.PROVIDER_NAME,
                    status_code=response.status_code
                )

            data = self._parse_json(response)
            products.extend(data.get("data") or [])

            pagination = data.get("pagination") or {}
            current = pagination.get("page") or page
            pages = pagination.get("pages") or current
            if current >= pages:
                break
            page = current + 1

        return products

    def get_variants(self, item: Dict[str, Any]) -> List[Dict[str, Any]]:
        return item.get("variants") or []

    def build_record(
        self,
        item: Dict[str, Any],
        variant: Optional[Dict[str, Any]],
        credentials: POSCredentials
    ) -> ProductRecord:
        product = item
        variant_data = variant or {}
        variant_id = str(variant["id"]) if variant and variant.get("id") is not None else None

        name = product.get("name")
        if variant:
            name = self.compose_name(name, variant.get("name") or variant.get("sku"))

        brand = (product.get("brand") or {}).get("name")
        product_type = (product.get("product_type") or {}).get("name")

        retail_price = variant_data.get("retail_price") or product.get("retail_price")
        inventory = variant_data.get("inventory") or product.get("inventory") or []
        barcode = variant_data.get("barcode") or product.get("barcode") or None

        images = product.get("images") or []
        if not isinstance(images, list):
            images = [images]
        image_urls = [image.get("url") if isinstance(image, dict) else image for image in images]

        return ProductRecord(
            external_product_id=str(product["id"]) if product.get("id") is not None else None,
            external_variant_id=variant_id,
            name=name,
            description=product.get("description") or None,
            category_name=brand or product_type,
            price=parse_decimal_price(retail_price),
            stock_quantity=sum(_stock_count(record.get("count")) for record in inventory),
            sku=variant_data.get("sku") or product.get("sku") or None,
            barcode=barcode,
            upc=barcode,
            image_url=variant_data.get("image_url") or product.get("image_url") or None,
            images=[url for url in image_urls if url],
            is_active=product.get("active") is not False,
            metadata={
                "lightspeed_product_id": product.get("id"),
                "lightspeed_variant_id": variant_data.get("id"),
                "lightspeed_brand": brand,
                "lightspeed_product_type": product_type,
                "lightspeed_supplier": (product.get("supplier") or {}).get("name"),
                "supply_price": variant_data.get("supply_price") or product.get("supply_price"),
                "has_variants": bool(product.get("variants")),
            }
        )
