import logging

from event_registry.core.celery_config import celery_app
from event_registry.database.db import SessionLocal
from event_registry.services.allocation import audit_material_capacity

logger = logging.getLogger(__name__)


@celery_app.task(bind=True)
def audit_material_capacity_task(self, material_id: int):
    """Re-check a material's claims against its maximum after the maximum changed."""
    db = SessionLocal()
    try:
        report = audit_material_capacity(db, material_id)
    finally:
        db.close()

    if not report:
        logger.info("Capacity audit skipped: material %s no longer exists", material_id)
    return report
