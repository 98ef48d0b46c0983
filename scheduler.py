"""
Background job scheduler for automated product sync.
Uses APScheduler to run a daily product sync of all active integrations.
"""
import logging
from datetime import datetime
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from database import SessionLocal
from db_models import POSIntegration
from settings import get_settings

logger = logging.getLogger(__name__)
settings = get_settings()

scheduler = AsyncIOScheduler()


async def sync_all_integrations(session_factory=SessionLocal) -> dict:
    """Daily job to sync products of all active integrations."""
    # Import here to avoid circular imports
    from services.pos_sync import ProductSyncService
    from services.pos_sync.errors import POSSyncError

    logger.info(f"Starting scheduled product sync at {datetime.utcnow()}")
    summary = {"completed": 0, "failed": 0}

    db = session_factory()
    try:
        integration_ids = [
            integration_id for (integration_id,) in db.query(POSIntegration.id).filter(
                POSIntegration.status == "active"
            ).all()
        ]
    finally:
        db.close()

    logger.info(f"Found {len(integration_ids)} integrations to sync")

    for integration_id in integration_ids:
        # Each integration syncs in its own session
        db = session_factory()
        try:
            integration = db.get(POSIntegration, integration_id)
            logger.info(f"Syncing integration {integration.id} ({integration.provider}) for user {integration.user_id}")
            result = await ProductSyncService.from_settings(db).sync_integration(integration)
            if result.success:
                summary["completed"] += 1
                logger.info(f"Integration {integration_id} synced {result.synced} products")
            else:
                summary["failed"] += 1
                logger.warning(f"Integration {integration_id} sync failed: {result.error}")
        except POSSyncError as e:
            summary["failed"] += 1
            logger.error(f"Error syncing integration {integration_id}: {e}")
        except Exception as e:
            summary["failed"] += 1
            logger.error(f"Unexpected error syncing integration {integration_id}: {e}", exc_info=True)
        finally:
            db.close()

    logger.info(f"Scheduled product sync completed at {datetime.utcnow()}: {summary}")
    return summary


def start_scheduler():
    """Start the background scheduler."""
    if not settings.SYNC_ENABLED:
        logger.info("Scheduled sync is disabled (SYNC_ENABLED=false)")
        return

    # Schedule daily sync at configured hour (default 3 AM UTC)
    scheduler.add_job(
        sync_all_integrations,
        trigger=CronTrigger(hour=settings.SYNC_SCHEDULE_HOUR, minute=0),
        id="daily_product_sync",
        name="Daily POS Product Sync",
        replace_existing=True
    )

    scheduler.start()
    logger.info(f"Scheduler started - daily product sync at {settings.SYNC_SCHEDULE_HOUR}:00 UTC")


def shutdown_scheduler():
    """Gracefully shutdown the scheduler."""
    if scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Scheduler shutdown complete")
