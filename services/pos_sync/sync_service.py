"""Product synchronization service for POS integrations"""
import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from database import safe_commit
from db_models import POSIntegration, User
from settings import get_settings
from .base import BasePOSProvider, SyncResult
from .credentials import POSCredentials, TokenCipher, load_credentials
from .errors import (
    AuthExpired,
    IntegrationNotFound,
    POSSyncError,
    TokenRefreshError,
    Unauthenticated,
)
from .progress import ProgressTracker
from .registry import get_provider_class
from .token_refresh import RefreshedTokens, TokenRefreshManager

logger = logging.getLogger(__name__)


class ProductSyncService:
    """Orchestrates product synchronization from POS integrations"""

    def __init__(self, db: Session, cipher: Optional[TokenCipher] = None):
        self.db = db
        self.cipher = cipher
        self.progress = ProgressTracker(db)
        self.token_refresher = TokenRefreshManager(db, cipher)

    @classmethod
    def from_settings(cls, db: Session) -> "ProductSyncService":
        cipher = TokenCipher.from_settings() if get_settings().POS_TOKEN_ENCRYPTION_KEY else None
        return cls(db, cipher)

    def get_owned_integration(self, integration_id: int, user: Optional[User]) -> POSIntegration:
        """
        Load an active integration owned by the caller

        Raises:
            Unauthenticated: no active caller
            IntegrationNotFound: missing, inactive, or owned by someone else
        """
        if user is None or not user.is_active:
            raise Unauthenticated("Caller is not authenticated")

        integration = self.db.query(POSIntegration).filter(
            POSIntegration.id == integration_id,
            POSIntegration.user_id == user.id,
            POSIntegration.status == "active"
        ).first()

        if not integration:
            raise IntegrationNotFound(
                f"Integration {integration_id} not found for user {user.id} or not active"
            )
        return integration

    async def sync_products(self, integration_id: int, user: Optional[User]) -> SyncResult:
        """Entry point for a caller-triggered sync"""
        integration = self.get_owned_integration(integration_id, user)
        logger.info(f"Product sync requested for integration {integration_id} by user {user.id}")
        return await self.sync_integration(integration)

    async def refresh_token(self, integration_id: int, user: Optional[User]) -> RefreshedTokens:
        """Manually refresh the access token of an owned integration"""
        integration = self.get_owned_integration(integration_id, user)
        credentials = load_credentials(integration, self.cipher)
        return await self.token_refresher.refresh(integration, credentials)

    async def sync_integration(self, integration: POSIntegration) -> SyncResult:
        """
        Execute a product sync for an integration

        Re-running against an unchanged catalog updates the same rows rather
        than adding new ones.

        Raises:
            CredentialError: tokens could not be decrypted (no progress record is created)
            ProviderUnsupported, ConfigurationError, AuthExpired, TokenRefreshError:
                the sync failed as a whole; progress is marked failed first
        """
        credentials = load_credentials(integration, self.cipher)
        progress_id = self.progress.start(integration.id, integration.user_id)

        try:
            provider_class = get_provider_class(integration.provider)
            adapter = provider_class(integration, self.db, progress=self.progress)
            result = await self._sync_with_refresh(adapter, integration, credentials, progress_id)
        except Exception as e:
            logger.error(f"Product sync failed for integration {integration.id}: {e}")
            self._record_failure(integration, progress_id, str(e))
            raise

        result.progress_id = progress_id
        if result.success:
            self.progress.complete(progress_id, result.synced, result.skipped, len(result.errors))
            integration.last_sync_at = datetime.utcnow()
            integration.last_error = None
            safe_commit(self.db)
            logger.info(
                f"Integration {integration.id} synced {result.synced} products, skipped {result.skipped}"
            )
        else:
            self._record_failure(integration, progress_id, result.error or "Sync failed")

        return result

    async def _sync_with_refresh(
        self,
        adapter: BasePOSProvider,
        integration: POSIntegration,
        credentials: POSCredentials,
        progress_id: Optional[int]
    ) -> SyncResult:
        """Run the adapter; on an expired token refresh once and retry once"""
        try:
            return await adapter.sync(credentials, integration.user_id, progress_id)
        except AuthExpired as e:
            if not credentials.refresh_token:
                raise
            logger.warning(f"Token expired during sync of integration {integration.id}, refreshing: {e}")

        self.progress.update(progress_id, current_step="Refreshing access token...")
        try:
            tokens = await self.token_refresher.refresh(integration, credentials)
        except POSSyncError as refresh_error:
            raise TokenRefreshError(f"Token expired and refresh failed: {refresh_error}") from refresh_error

        credentials = credentials.with_tokens(tokens.access_token, tokens.refresh_token)
        logger.info(f"Retrying sync of integration {integration.id} with refreshed token")
        return await adapter.sync(credentials, integration.user_id, progress_id)

    def _record_failure(self, integration: POSIntegration, progress_id: Optional[int], message: str) -> None:
        self.progress.fail(progress_id, message)
        try:
            integration.last_error = message
            safe_commit(self.db)
        except SQLAlchemyError as e:
            logger.warning(f"Could not record sync failure on integration {integration.id}: {e}")
