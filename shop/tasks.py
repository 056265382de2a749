from celery import shared_task
from shop.services import get_services
import logging

logger = logging.getLogger(__name__)


@shared_task
def sweep_scratch_documents(max_age_seconds=None):
    """Hourly: remove leftover invoice PDFs from the scratch directory."""
    removed = get_services().renderer.sweep_scratch(max_age_seconds)
    logger.info(f"Scratch sweep finished: {len(removed)} file(s) removed")
    return removed


@shared_task
def purge_expired_documents(days=None):
    """Daily: delete stored invoices older than the retention window."""
    uploader = get_services().uploader
    if not uploader.is_configured:
        logger.info("Storage not configured, skipping retention cleanup")
        return {"success": False, "deleted_count": 0}

    result = uploader.delete_older_than(days)
    if not result.success:
        logger.error(f"Retention cleanup failed: {result.error}")
    return {"success": result.success, "deleted_count": result.deleted_count, "files": result.files}
