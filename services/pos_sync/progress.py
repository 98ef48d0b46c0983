"""Best-effort progress reporting for product sync runs"""
import logging
from datetime import datetime
from typing import Any, Optional

from sqlalchemy.orm import Session

from db_models import SyncProgress

logger = logging.getLogger(__name__)

STATUS_IN_PROGRESS = "in_progress"
STATUS_COMPLETED = "completed"
STATUS_FAILED = "failed"

PROGRESS_FIELDS = {
    "total_items",
    "processed_items",
    "synced_items",
    "skipped_items",
    "error_items",
    "current_item_name",
    "current_step",
}


class ProgressTracker:
    """
    Writes SyncProgress rows. Every method swallows and logs its own
    failures so that progress reporting can never abort a sync.
    """

    def __init__(self, db: Session):
        self.db = db

    def start(self, integration_id: int, user_id: Optional[int]) -> Optional[int]:
        """Create an in_progress record. Returns its id, or None if it could not be created."""
        try:
            progress = SyncProgress(
                pos_integration_id=integration_id,
                user_id=user_id,
                status=STATUS_IN_PROGRESS,
                total_items=0,
                current_step="Initializing sync..."
            )
            self.db.add(progress)
            self.db.commit()
            return progress.id
        except Exception as e:
            logger.warning(f"Failed to create progress record for integration {integration_id}: {e}")
            self.db.rollback()
            return None

    def update(self, progress_id: Optional[int], **fields: Any) -> None:
        if progress_id is None:
            return

        unknown = set(fields) - PROGRESS_FIELDS
        if unknown:
            logger.warning(f"Ignoring unknown progress fields: {sorted(unknown)}")

        try:
            progress = self.db.get(SyncProgress, progress_id)
            if progress is None or progress.status != STATUS_IN_PROGRESS:
                return
            for name, value in fields.items():
                if name in PROGRESS_FIELDS:
                    setattr(progress, name, value)
            self.db.commit()
        except Exception as e:
            logger.warning(f"Failed to update progress {progress_id}: {e}")
            self.db.rollback()

    def complete(
        self,
        progress_id: Optional[int],
        synced: int,
        skipped: int,
        error_count: int
    ) -> None:
        self._finish(
            progress_id,
            status=STATUS_COMPLETED,
            processed_items=synced + skipped,
            synced_items=synced,
            skipped_items=skipped,
            error_items=error_count,
            error=None,
            current_step="Completed"
        )

    def fail(self, progress_id: Optional[int], error: str) -> None:
        self._finish(progress_id, status=STATUS_FAILED, error=error, current_step="Failed")

    def _finish(self, progress_id: Optional[int], **fields: Any) -> None:
        if progress_id is None:
            return
        try:
            progress = self.db.get(SyncProgress, progress_id)
            if progress is None or progress.status != STATUS_IN_PROGRESS:
                return
            for name, value in fields.items():
                setattr(progress, name, value)
            if (progress.total_items or 0) < (progress.processed_items or 0):
                progress.total_items = progress.processed_items
            progress.completed_at = datetime.utcnow()
            self.db.commit()
            logger.info(f"Sync progress {progress_id} marked as {progress.status}")
        except Exception as e:
            logger.warning(f"Failed to finalize progress {progress_id}: {e}")
            self.db.rollback()
