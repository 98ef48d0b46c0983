# Product catalog synchronization for POS providers
from .base import BasePOSProvider, SyncResult
from .category_mapper import CategoryMapper, CategoryMapping
from .credentials import POSCredentials, TokenCipher, load_credentials
from .progress import ProgressTracker
from .product_store import ProductRecord, ProductStore
from .registry import get_provider_class, list_providers
from .square import SquareProvider
from .shopify import ShopifyProvider
from .clover import CloverProvider
from .lightspeed import LightspeedProvider
from .toast import ToastProvider
from .sync_service import ProductSyncService
from .token_refresh import TokenRefreshManager, is_token_expired_error

__all__ = [
    "BasePOSProvider",
    "SyncResult",
    "CategoryMapper",
    "CategoryMapping",
    "POSCredentials",
    "TokenCipher",
    "load_credentials",
    "ProgressTracker",
    "ProductRecord",
    "ProductStore",
    "SquareProvider",
    "ShopifyProvider",
    "CloverProvider",
    "LightspeedProvider",
    "ToastProvider",
    "ProductSyncService",
    "TokenRefreshManager",
    "get_provider_class",
    "list_providers",
    "is_token_expired_error",
]
