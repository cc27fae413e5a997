import logging

from celery import shared_task

from .exceptions import ImportRejected

logger = logging.getLogger(__name__)


@shared_task  # register this function as a Celery task
def sync_staging_import(import_id):
    # import lazily to avoid circular imports at module import time
    from .services.staging import process_staging_import

    # Same code path as the inline sync; a settled import is returned as is
    try:
        result = process_staging_import(import_id)
    except ImportRejected as exc:
        logger.warning("Background sync of staging import %s skipped: %s", import_id, exc.message)
        return {"importId": import_id, "status": "skipped", "message": exc.message}
    logger.info("Background sync of staging import %s finished: %s", import_id, result["status"])
    return result
