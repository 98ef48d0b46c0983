# routers/pos_sync.py - POS product sync endpoints
import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from auth import get_current_user
from database import get_db
from db_models import User, SyncProgress
from schemas import ProductSyncRequest, ProductSyncResponse, SyncProgressResponse, TokenRefreshResponse, ProviderInfo
from services.pos_sync import ProductSyncService, list_providers
from services.pos_sync.errors import (
    ConfigurationError,
    CredentialError,
    IntegrationNotFound,
    NoRefreshToken,
    POSSyncError,
    RefreshPersistError,
    RefreshUnsupported,
    TokenRefreshError,
    Unauthenticated,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/pos", tags=["POS Sync"])


def get_sync_service(db: Session = Depends(get_db)) -> ProductSyncService:
    return ProductSyncService.from_settings(db)


def _failure(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "message": message})


def _status_for(error: POSSyncError) -> int:
    """HTTP status for a sync error"""
    if isinstance(error, Unauthenticated):
        return status.HTTP_401_UNAUTHORIZED
    if isinstance(error, IntegrationNotFound):
        return status.HTTP_404_NOT_FOUND
    if isinstance(error, ConfigurationError):
        return status.HTTP_400_BAD_REQUEST
    return status.HTTP_500_INTERNAL_SERVER_ERROR


@router.post("/product-sync", response_model=ProductSyncResponse, response_model_exclude_none=True)
async def trigger_product_sync(
    body: ProductSyncRequest,
    current_user: User = Depends(get_current_user),
    sync_service: ProductSyncService = Depends(get_sync_service)
):
    """Sync the product catalog of one POS integration"""
    if body.pos_integration_id is None:
        return _failure(status.HTTP_400_BAD_REQUEST, "pos_integration_id is required")

    try:
        result = await sync_service.sync_products(body.pos_integration_id, current_user)
    except CredentialError as e:
        logger.error(f"Token decryption failed for integration {body.pos_integration_id}: {e}")
        return _failure(status.HTTP_500_INTERNAL_SERVER_ERROR, "Unable to decrypt POS access token")
    except POSSyncError as e:
        return _failure(_status_for(e), str(e))

    if not result.success:
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=result.to_dict())
    return result.to_dict()


@router.get("/sync-progress/{progress_id}", response_model=SyncProgressResponse)
async def get_sync_progress(
    progress_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Poll the progress of a product sync"""
    progress = db.query(SyncProgress).filter(
        SyncProgress.id == progress_id,
        SyncProgress.user_id == current_user.id
    ).first()

    if not progress:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Sync progress not found"
        )

    return progress


@router.post("/integrations/{integration_id}/refresh-token", response_model=TokenRefreshResponse)
async def refresh_integration_token(
    integration_id: int,
    current_user: User = Depends(get_current_user),
    sync_service: ProductSyncService = Depends(get_sync_service)
):
    """Refresh the OAuth access token of a POS integration"""
    try:
        tokens = await sync_service.refresh_token(integration_id, current_user)
    except (RefreshUnsupported, NoRefreshToken, ConfigurationError) as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except IntegrationNotFound as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except RefreshPersistError as e:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))
    except TokenRefreshError as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))
    except POSSyncError as e:
        raise HTTPException(status_code=_status_for(e), detail=str(e))

    return TokenRefreshResponse(
        success=True,
        message="Token refreshed successfully",
        expires_at=tokens.expires_at
    )


@router.get("/providers", response_model=List[ProviderInfo])
async def get_providers():
    """List POS providers with a product sync adapter"""
    return list_providers()
