"""
Lab Alert Service - raises alerts for abnormal and critical lab results
"""
import enum
import logging
from typing import Optional

from sqlalchemy.orm import Session

from clinical_support.database.models import AlertSeverity, AlertType, ClinicalAlert
from clinical_support.exceptions import InvalidInputError
from clinical_support.services.clinical_alert_service import (
    ClinicalAlertService, clinical_alert_service
)

logger = logging.getLogger(__name__)

ALERT_SOURCE = "LabOrderService"


class LabResultInterpretation(enum.Enum):
    NORMAL = "NORMAL"
    LOW = "LOW"
    HIGH = "HIGH"
    CRITICAL_LOW = "CRITICAL_LOW"
    CRITICAL_HIGH = "CRITICAL_HIGH"
    ABNORMAL = "ABNORMAL"


# Interpretation -> (alert type, severity, title prefix)
INTERPRETATION_ALERTS = {
    LabResultInterpretation.CRITICAL_LOW: (AlertType.LAB_CRITICAL, AlertSeverity.CRITICAL, "Critical Lab Result"),
    LabResultInterpretation.CRITICAL_HIGH: (AlertType.LAB_CRITICAL, AlertSeverity.CRITICAL, "Critical Lab Result"),
    LabResultInterpretation.LOW: (AlertType.LAB_ABNORMAL, AlertSeverity.WARNING, "Abnormal Lab Result"),
    LabResultInterpretation.HIGH: (AlertType.LAB_ABNORMAL, AlertSeverity.WARNING, "Abnormal Lab Result"),
}


class LabAlertService:
    """Called by lab result recording once a result has been interpreted"""

    def __init__(self, alert_service: ClinicalAlertService = None):
        self.alert_service = alert_service or clinical_alert_service

    def raise_for_result(
        self,
        db: Session,
        patient_id: str,
        test_name: str,
        value,
        unit: Optional[str],
        interpretation: LabResultInterpretation,
        recorded_by: str = "system"
    ) -> Optional[ClinicalAlert]:
        """Raise an alert for an out-of-range result; None when no alert applies"""
        if isinstance(interpretation, str):
            try:
                interpretation = LabResultInterpretation(interpretation.strip().upper())
            except ValueError:
                raise InvalidInputError(f"Unknown lab interpretation: {interpretation}")

        alert_rule = INTERPRETATION_ALERTS.get(interpretation)
        if alert_rule is None:
            logger.debug(f"No alert for {test_name} ({interpretation.value}) on patient {patient_id}")
            return None

        alert_type, severity, title = alert_rule
        unit_text = f" {unit}" if unit else ""
        return self.alert_service.create_alert(
            db,
            patient_id=patient_id,
            alert_type=alert_type,
            severity=severity,
            title=f"{title}: {test_name}",
            description=f"Result value {value}{unit_text}; interpretation: {interpretation.value}",
            source=ALERT_SOURCE,
            trigger_value=str(value),
            actor=recorded_by,
        )


lab_alert_service = LabAlertService()
