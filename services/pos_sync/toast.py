"""Toast POS menu sync (not yet available)"""
import logging
from typing import Dict, List, Any, Optional

from .base import BasePOSProvider, SyncResult
from .credentials import POSCredentials
from .product_store import ProductRecord

logger = logging.getLogger(__name__)

NOT_IMPLEMENTED_MESSAGE = "Toast product sync not yet implemented"


class ToastProvider(BasePOSProvider):
    """
    Placeholder for Toast menu items.

    Makes no network calls and always reports failure so the caller can
    tell it apart from an empty catalog.
    """

    PROVIDER_NAME = "toast"
    DISPLAY_NAME = "Toast"

    # TODO: fetch menu items from /menus/v2/menus and map menu item groups to categories
    async def fetch_catalog(self, credentials: POSCredentials) -> List[Dict[str, Any]]:
        raise NotImplementedError(NOT_IMPLEMENTED_MESSAGE)

    def build_record(
        self,
        item: Dict[str, Any],
        variant: Optional[Dict[str, Any]],
        credentials: POSCredentials
    ) -> ProductRecord:
        raise NotImplementedError(NOT_IMPLEMENTED_MESSAGE)

    async def sync(
        self,
        credentials: POSCredentials,
        merchant_id: int,
        progress_id: Optional[int] = None
    ) -> SyncResult:
        logger.info(f"Toast sync requested for integration {credentials.integration_id}")
        return SyncResult(success=False, error=NOT_IMPLEMENTED_MESSAGE)
