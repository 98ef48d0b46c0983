"""Base class for all POS product sync providers"""
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional

import httpx
from sqlalchemy.orm import Session

from db_models import POSIntegration
from settings import get_settings
from .category_mapper import CategoryMapper
from .credentials import POSCredentials
from .errors import AuthExpired, ConfigurationError, ProviderAPIError
from .product_store import ProductRecord, ProductStore
from .progress import ProgressTracker
from .token_refresh import is_auth_failure

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")


def cents_to_decimal(amount: Any) -> Decimal:
    """Convert an integer amount in the smallest currency unit to a decimal price"""
    if amount is None:
        return Decimal("0.00")
    if isinstance(amount, bool) or not isinstance(amount, (int, str)):
        raise ValueError(f"Invalid price amount: {amount!r}")
    return (Decimal(int(amount)) / 100).quantize(CENT)


def parse_decimal_price(value: Any) -> Decimal:
    """Convert a decimal string (or number) price to a decimal"""
    if value is None or value == "":
        return Decimal("0.00")
    try:
        price = Decimal(str(value))
    except InvalidOperation:
        raise ValueError(f"Invalid price: {value!r}")
    if not price.is_finite():
        raise ValueError(f"Invalid price: {value!r}")
    return price.quantize(CENT)


@dataclass
class SyncResult:
    """Outcome of one provider sync run"""

    success: bool
    message: Optional[str] = None
    synced: int = 0
    skipped: int = 0
    errors: List[str] = field(default_factory=list)
    error: Optional[str] = None
    progress_id: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"success": self.success}
        if self.message:
            data["message"] = self.message
        if self.success:
            data["synced"] = self.synced
            data["skipped"] = self.skipped
        if self.errors:
            data["errors"] = list(self.errors)
        if self.error:
            data["error"] = self.error
        if self.progress_id is not None:
            data["progress_id"] = self.progress_id
        return data


@dataclass
class CatalogEntry:
    """One unit of sync work: an item, or one variant of an item"""

    item: Dict[str, Any]
    variant: Optional[Dict[str, Any]] = None
    error: Optional[Exception] = None


class BasePOSProvider(ABC):
    """Abstract base class for all POS product sync providers"""

    PROVIDER_NAME: str = ""
    DISPLAY_NAME: str = ""
    # Variant label meaning "this item has no real variants"
    NO_VARIANT_LABEL: Optional[str] = None
    SUPPORTS_TOKEN_REFRESH: bool = False

    def __init__(
        self,
        integration: POSIntegration,
        db: Session,
        category_mapper: Optional[CategoryMapper] = None,
        product_store: Optional[ProductStore] = None,
        progress: Optional[ProgressTracker] = None
    ):
        self.integration = integration
        self.db = db
        self.categories = category_mapper or CategoryMapper(db)
        self.products = product_store or ProductStore(db)
        self.progress = progress or ProgressTracker(db)
        self.timeout = get_settings().POS_HTTP_TIMEOUT_SECONDS

    def _get_headers(self, credentials: POSCredentials) -> Dict[str, str]:
        """Get default headers for API requests"""
        return {
            "Authorization": f"Bearer {credentials.access_token}",
            "Content-Type": "application/json"
        }

    async def _make_request(
        self,
        credentials: POSCredentials,
        method: str,
        url: str,
        headers: Optional[Dict] = None,
        json: Optional[Dict] = None,
        params: Optional[Dict] = None
    ) -> httpx.Response:
        """
        Make HTTP request to provider API

        Raises:
            AuthExpired: the provider rejected the access token
            ProviderAPIError: any other non-2xx response or transport failure
        """
        request_headers = self._get_headers(credentials)
        if headers:
            request_headers.update(headers)

        try:
            async with httpx.AsyncClient() as client:
                response = await client.request(
                    method=method,
                    url=url,
                    headers=request_headers,
                    json=json,
                    params=params,
                    timeout=self.timeout
                )
        except httpx.HTTPError as e:
            raise ProviderAPIError(
                f"{self.DISPLAY_NAME} request failed: {e.__class__.__name__}: {e}",
                provider=self.PROVIDER_NAME
            )

        if response.is_success:
            return response

        message = f"{self.DISPLAY_NAME} API error: {response.status_code} - {response.text}"
        logger.error(message)
        if is_auth_failure(response.status_code, message):
            raise AuthExpired(message, provider=self.PROVIDER_NAME, status_code=response.status_code)
        raise ProviderAPIError(message, provider=self.PROVIDER_NAME, status_code=response.status_code)

    async def _get_json(
        self,
        credentials: POSCredentials,
        url: str,
        params: Optional[Dict] = None
    ) -> Dict[str, Any]:
        response = await self._make_request(credentials, "GET", url, params=params)
        return self._parse_json(response)

    def _parse_json(self, response: httpx.Response) -> Dict[str, Any]:
        try:
            return response.json()
        except ValueError:
            raise ProviderAPIError(
                f"{self.DISPLAY_NAME} API returned invalid JSON",
                provider=self.PROVIDER_NAME,
                status_code=response.status_code
            )

    async def prepare(self, credentials: POSCredentials) -> POSCredentials:
        """Resolve provider prerequisites before fetching. Returns the credentials to use."""
        return credentials

    @abstractmethod
    async def fetch_catalog(self, credentials: POSCredentials) -> List[Dict[str, Any]]:
        """Fetch every raw catalog item, following the provider's pagination to the end"""
        pass

    def get_variants(self, item: Dict[str, Any]) -> List[Dict[str, Any]]:
        """Variants to sync as separate products. Empty means sync the item itself."""
        return []

    @abstractmethod
    def build_record(
        self,
        item: Dict[str, Any],
        variant: Optional[Dict[str, Any]],
        credentials: POSCredentials
    ) -> ProductRecord:
        """Normalize one item or item variant into a canonical record"""
        pass

    def item_name(self, item: Dict[str, Any]) -> str:
        return item.get("name") or "Unknown product"

    def compose_name(self, base_name: Optional[str], variant_label: Optional[str]) -> Optional[str]:
        # Nameless items stay nameless
        if base_name and variant_label and variant_label != self.NO_VARIANT_LABEL:
            return f"{base_name} - {variant_label}"
        return base_name

    def _expand(self, items: List[Dict[str, Any]]) -> List[CatalogEntry]:
        entries = []
        for item in items:
            try:
                variants = self.get_variants(item)
            except Exception as e:
                entries.append(CatalogEntry(item=item, error=e))
                continue
            if variants:
                entries.extend(CatalogEntry(item=item, variant=variant) for variant in variants)
            else:
                entries.append(CatalogEntry(item=item))
        return entries

    def _store(self, record: ProductRecord, merchant_id: int, credentials: POSCredentials) -> None:
        mapping = self.categories.map(record.category_name, record.name, record.description)

        metadata = dict(record.metadata)
        metadata["is_restricted"] = mapping.is_restricted
        metadata["restriction_reason"] = mapping.restriction_reason
        metadata["matched_category"] = mapping.matched_label

        self.products.upsert(
            integration_id=credentials.integration_id,
            merchant_id=merchant_id,
            record=record,
            category_id=mapping.category_id,
            barter_enabled=record.barter_allowed and not mapping.is_restricted,
            metadata=metadata
        )

    async def sync(
        self,
        credentials: POSCredentials,
        merchant_id: int,
        progress_id: Optional[int] = None
    ) -> SyncResult:
        """
        Fetch, normalize and upsert the whole catalog.

        A failure on a single item is recorded in the result's errors and
        counted as skipped; the remaining items are still processed.

        Raises:
            AuthExpired: the provider rejected the access token
            ConfigurationError: the integration cannot be synced as configured
        """
        logger.info(f"Syncing {self.DISPLAY_NAME} products for integration {credentials.integration_id}")

        try:
            credentials = await self.prepare(credentials)
            raw_items = await self.fetch_catalog(credentials)
        except ProviderAPIError as e:
            logger.error(f"{self.DISPLAY_NAME} sync error: {e}")
            return SyncResult(success=False, error=str(e))

        logger.info(f"Found {len(raw_items)} items in {self.DISPLAY_NAME} catalog")
        if not raw_items:
            return SyncResult(success=True, message=f"No products found in {self.DISPLAY_NAME} catalog")

        entries = self._expand(raw_items)
        total = len(entries)
        self.progress.update(
            progress_id,
            total_items=total,
            current_step=f"Syncing {total} products from {self.DISPLAY_NAME}..."
        )

        synced = 0
        skipped = 0
        processed = 0
        errors: List[str] = []

        for entry in entries:
            item_id = str(entry.item.get("id", "unknown"))
            try:
                if entry.error:
                    raise entry.error
                record = self.build_record(entry.item, entry.variant, credentials)
                self._store(record, merchant_id, credentials)
                synced += 1
            except (AuthExpired, ConfigurationError):
                raise
            except Exception as e:
                logger.warning(f"Error syncing {self.DISPLAY_NAME} item {item_id}: {e}")
                errors.append(f"{item_id}: {e}")
                skipped += 1

            processed += 1
            self.progress.update(
                progress_id,
                processed_items=processed,
                synced_items=synced,
                skipped_items=skipped,
                error_items=len(errors),
                current_item_name=self.item_name(entry.item),
                current_step=f"Processing product {processed}/{total}..."
            )

        logger.info(f"{self.DISPLAY_NAME} sync complete! Synced: {synced}, Skipped: {skipped}")
        return SyncResult(
            success=True,
            message="Products synced successfully",
            synced=synced,
            skipped=skipped,
            errors=errors
        )
