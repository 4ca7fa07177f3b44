import asyncio
import logging
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from app.celery_app import celery_app
from app.config import settings
from app.core.errors import DomainError
from app.crud import crud_custom_domain
from app.db.session import SessionLocal
from app.services.domain_verification import DomainVerificationService

logger = logging.getLogger("customdomains.tasks")


async def refresh_pending_domains(
    db: Session,
    service: Optional[DomainVerificationService] = None,
    limit: Optional[int] = None,
) -> Dict[str, Any]:
    """
    Refresh every domain waiting on Cloudflare.

    One domain failing (Cloudflare error, deleted row) does not stop the batch.
    """
    service = service or DomainVerificationService(db)
    records = crud_custom_domain.list_refreshable(
        db, limit=limit or settings.DOMAIN_REFRESH_BATCH_SIZE
    )
    summary: Dict[str, Any] = {"checked": 0, "statuses": {}, "errors": {}}
    for record in records:
        hostname = record.hostname
        try:
            result = await service.refresh_record(record, action="scheduled_refresh")
        except DomainError as e:
            logger.warning("Scheduled refresh failed for %s: %s", hostname, e.message)
            summary["errors"][hostname] = e.kind.value
            continue
        summary["checked"] += 1
        summary["statuses"][hostname] = result.domain.status
    return summary


@celery_app.task(bind=True, max_retries=0)
def refresh_pending_domains_task(self):
    """Background task: poll Cloudflare for domains in `verifying`."""
    db = SessionLocal()
    try:
        summary = asyncio.run(refresh_pending_domains(db))
        logger.info(
            "Scheduled refresh: %d checked, %d errors",
            summary["checked"], len(summary["errors"]),
        )
        return summary
    finally:
        db.close()
