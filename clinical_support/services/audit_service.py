"""
Audit Service - append-only trail for clinical alert and drug safety actions
"""
import logging
from datetime import datetime

from sqlalchemy.orm import Session

from clinical_support.config import settings
from clinical_support.database.models import AuditLog

logger = logging.getLogger(__name__)


class AuditService:
    """
    Audit sink for the alerting engine.

    Entries are added to the caller's session and committed together with
    the change they describe, so an audit row never exists for a rolled back
    operation.
    """

    def __init__(self, enabled: bool = None):
        self.enabled = settings.ENABLE_AUDIT_LOGGING if enabled is None else enabled

    def write(self, db: Session, action: str, entity_type: str, entity_id: str = None,
              patient_id: str = None, performed_by: str = None, details: str = None):
        """Record one audit entry"""
        if not self.enabled:
            return None

        entry = AuditLog(
            action=action,
            entity_type=entity_type,
            entity_id=str(entity_id) if entity_id is not None else None,
            patient_id=patient_id,
            performed_by=performed_by or "system",
            details=details,
            timestamp=datetime.utcnow()
        )
        db.add(entry)

        logger.debug(f"Audit {entity_type}/{action} entity={entity_id} by={entry.performed_by}")
        return entry


audit_service = AuditService()
