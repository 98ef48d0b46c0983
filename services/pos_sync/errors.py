"""Exception taxonomy for POS product synchronization"""
from typing import Optional


class POSSyncError(Exception):
    """Base class for all product sync errors"""


class Unauthenticated(POSSyncError):
    """Caller identity missing, invalid or inactive"""


class IntegrationNotFound(POSSyncError):
    """No active integration owned by the caller"""


class CredentialError(POSSyncError):
    """Integration credentials could not be decrypted or are missing"""


class ConfigurationError(POSSyncError):
    """Integration is missing configuration needed to sync"""


class ProviderUnsupported(ConfigurationError):
    """No adapter is registered for the integration's provider"""


class MissingStoreIdentifier(ConfigurationError):
    """Shop domain, store id or merchant id is required but absent"""


class ProviderAPIError(POSSyncError):
    """Non-authentication failure returned by a provider API"""

    def __init__(self, message: str, provider: str = "", status_code: Optional[int] = None):
        super().__init__(message)
        self.provider = provider
        self.status_code = status_code


class AuthExpired(POSSyncError):
    """Provider rejected the integration's access token"""

    def __init__(self, message: str, provider: str = "", status_code: Optional[int] = None):
        super().__init__(message)
        self.provider = provider
        self.status_code = status_code


class TokenRefreshError(POSSyncError):
    """OAuth token refresh failed"""


class RefreshUnsupported(TokenRefreshError):
    """Provider tokens never expire or have no refresh flow"""


class NoRefreshToken(TokenRefreshError):
    """Integration has no refresh token stored"""


class RefreshPersistError(TokenRefreshError):
    """Rotated tokens could not be saved"""
