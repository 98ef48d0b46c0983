"""Shopify product catalog sync"""
import re
from typing import Dict, List, Any, Optional

from settings import get_settings
from .base import BasePOSProvider, parse_decimal_price
from .credentials import POSCredentials
from .errors import MissingStoreIdentifier
from .product_store import ProductRecord

HTML_TAG_RE = re.compile(r"<[^>]*>")
NEXT_LINK_RE = re.compile(r'<([^>]+)>\s*;\s*rel="?next"?')


def parse_next_link(link_header: Optional[str]) -> Optional[str]:
    """Extract the rel="next" URL from a Link header"""
    if not link_header:
        return None
    for link in link_header.split(","):
        match = NEXT_LINK_RE.search(link)
        if match:
            return match.group(1)
    return None


class ShopifyProvider(BasePOSProvider):
    """Shopify Admin REST API: products with variants, decimal string prices"""

    PROVIDER_NAME = "shopify"
    DISPLAY_NAME = "Shopify"
    NO_VARIANT_LABEL = "Default Title"
    PAGE_SIZE = 250

    def _get_headers(self, credentials: POSCredentials) -> Dict[str, str]:
        """Get Shopify-specific headers"""
        return {
            "X-Shopify-Access-Token": credentials.access_token,
            "Content-Type": "application/json"
        }

    def _get_base_url(self, credentials: POSCredentials) -> str:
        if not credentials.store_id:
            raise MissingStoreIdentifier("Shopify shop domain not configured")
        return f"https://{credentials.store_id}/admin/api/{get_settings().SHOPIFY_API_VERSION}"

    async def fetch_catalog(self, credentials: POSCredentials) -> List[Dict[str, Any]]:
        """Fetch products from Shopify, following Link header cursors"""
        products = []
        url = f"{self._get_base_url(credentials)}/products.json"
        params: Optional[Dict[str, Any]] = {"limit": self.PAGE_SIZE}

        while url:
            response = await self._make_request(credentials, "GET", url, params=params)
            page = self._parse_json(response).get("products", [])
            products.extend(page)

            # The next link already carries limit and page_info
            url = parse_next_link(response.headers.get("Link"))
            params = None

        return products

    def item_name(self, item: Dict[str, Any]) -> str:
        return item.get("title") or "Unknown product"

    def get_variants(self, item: Dict[str, Any]) -> List[Dict[str, Any]]:
        return item.get("variants") or []

    def _image_url(self, product: Dict[str, Any], variant: Optional[Dict[str, Any]]) -> Optional[str]:
        images = product.get("images") or []
        if variant and variant.get("image_id"):
            for image in images:
                if image.get("id") == variant["image_id"]:
                    return image.get("src")
            return None
        if product.get("image"):
            return product["image"].get("src")
        return images[0].get("src") if images else None

    def build_record(
        self,
        item: Dict[str, Any],
        variant: Optional[Dict[str, Any]],
        credentials: POSCredentials
    ) -> ProductRecord:
        product = item
        variant_id = str(variant["id"]) if variant and variant.get("id") is not None else None

        name = product.get("title")
        if variant_id:
            name = self.compose_name(name, variant.get("title"))

        body_html = product.get("body_html")
        description = HTML_TAG_RE.sub("", body_html).strip() if body_html else None

        if variant and variant.get("price") is not None:
            price = parse_decimal_price(variant["price"])
        else:
            variants = product.get("variants") or []
            price = parse_decimal_price(variants[0].get("price") if variants else None)

        barcode = (variant or {}).get("barcode") or None

        return ProductRecord(
            external_product_id=str(product["id"]) if product.get("id") is not None else None,
            external_variant_id=variant_id,
            name=name,
            description=description or None,
            category_name=product.get("product_type") or None,
            price=price,
            currency=product.get("currency") or "USD",
            stock_quantity=int((variant or {}).get("inventory_quantity") or 0),
            sku=(variant or {}).get("sku") or None,
            barcode=barcode,
            upc=barcode,
            image_url=self._image_url(product, variant),
            images=[image["src"] for image in product.get("images") or [] if image.get("src")],
            is_active=product.get("status", "active") == "active",
            metadata={
                "shopify_product_id": product.get("id"),
                "shopify_variant_id": (variant or {}).get("id"),
                "shopify_handle": product.get("handle"),
                "shopify_tags": product.get("tags"),
                "shopify_vendor": product.get("vendor"),
                "inventory_management": (variant or {}).get("inventory_management"),
                "weight": (variant or {}).get("weight"),
                "weight_unit": (variant or {}).get("weight_unit"),
            }
        )
