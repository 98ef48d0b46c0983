# schemas.py
from pydantic import BaseModel
from typing import Optional, List
from datetime import datetime


# Product sync schemas
class ProductSyncRequest(BaseModel):
    pos_integration_id: Optional[int] = None


class ProductSyncResponse(BaseModel):
    success: bool
    message: Optional[str] = None
    synced: Optional[int] = None
    skipped: Optional[int] = None
    errors: Optional[List[str]] = None
    error: Optional[str] = None
    progress_id: Optional[int] = None


class SyncProgressResponse(BaseModel):
    id: int
    pos_integration_id: int
    status: str  # 'in_progress', 'completed', 'failed'
    total_items: int
    processed_items: int
    synced_items: int
    skipped_items: int
    error_items: int
    current_item_name: Optional[str] = None
    current_step: Optional[str] = None
    error: Optional[str] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class TokenRefreshResponse(BaseModel):
    success: bool
    message: str
    expires_at: Optional[datetime] = None


class ProviderInfo(BaseModel):
    id: str
    name: str
    supports_token_refresh: bool
