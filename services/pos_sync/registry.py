"""Provider name to sync adapter lookup"""
from typing import Dict, List, Type

from .base import BasePOSProvider
from .clover import CloverProvider
from .errors import ProviderUnsupported
from .lightspeed import LightspeedProvider
from .shopify import ShopifyProvider
from .square import SquareProvider
from .toast import ToastProvider

PROVIDERS: Dict[str, Type[BasePOSProvider]] = {
    provider.PROVIDER_NAME: provider
    for provider in (
        SquareProvider,
        ShopifyProvider,
        CloverProvider,
        LightspeedProvider,
        ToastProvider,
    )
}


def get_provider_class(provider: str) -> Type[BasePOSProvider]:
    """Get sync adapter class by provider name"""
    provider_class = PROVIDERS.get((provider or "").lower())
    if provider_class is None:
        raise ProviderUnsupported(f"Product sync not implemented for provider: {provider}")
    return provider_class


def list_providers() -> List[Dict[str, object]]:
    return [
        {
            "id": name,
            "name": provider_class.DISPLAY_NAME,
            "supports_token_refresh": provider_class.SUPPORTS_TOKEN_REFRESH,
        }
        for name, provider_class in PROVIDERS.items()
    ]
