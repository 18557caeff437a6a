"""
NEWS2 Service - scores a patient's latest vitals and raises deterioration alerts
"""
import logging

from sqlalchemy.orm import Session

from clinical_support.database.models import AlertSeverity, AlertType, Patient, PatientVitals
from clinical_support.exceptions import NotFoundError
from clinical_support.services.auth_service import AuthContext, ALERT_VIEWER_ROLES, require_roles
from clinical_support.services.clinical_alert_service import (
    ClinicalAlertService, clinical_alert_service
)
from clinical_support.services.news2_calculator import (
    News2Calculator, News2Result, RiskLevel, news2_calculator
)

logger = logging.getLogger(__name__)

ALERT_SOURCE = "News2Service"

# Risk level -> (alert type, severity, title prefix)
RISK_ALERTS = {
    RiskLevel.HIGH: (AlertType.NEWS2_CRITICAL, AlertSeverity.CRITICAL, "NEWS2 Critical Risk"),
    RiskLevel.MEDIUM: (AlertType.NEWS2_HIGH, AlertSeverity.WARNING, "NEWS2 Elevated Risk"),
}


class News2Service:
    """NEWS2 workflow over stored vitals"""

    def __init__(self, calculator: News2Calculator = None, alert_service: ClinicalAlertService = None):
        self.calculator = calculator or news2_calculator
        self.alert_service = alert_service or clinical_alert_service

    def get_news2_score(self, db: Session, ctx: AuthContext, patient_id: str) -> News2Result:
        """
        Score the most recent vitals for a patient.

        MEDIUM and HIGH results raise (or replace) the patient's NEWS2 alert.
        """
        require_roles(ctx, *ALERT_VIEWER_ROLES)

        patient = db.query(Patient).filter(Patient.patient_uid == patient_id).first()
        if patient is None:
            raise NotFoundError(f"Patient not found: {patient_id}")

        vitals = db.query(PatientVitals).filter(
            PatientVitals.patient_id == patient_id
        ).order_by(PatientVitals.recorded_at.desc(), PatientVitals.id.desc()).first()

        result = self.calculator.compute(vitals)

        alert_rule = RISK_ALERTS.get(result.risk_level)
        if alert_rule is not None:
            alert_type, severity, title = alert_rule
            self.alert_service.create_alert(
                db,
                patient_id=patient_id,
                alert_type=alert_type,
                severity=severity,
                title=f"{title} (Score {result.total_score})",
                description=(
                    f"NEWS2 score {result.total_score} ({result.risk_level.value}) for "
                    f"{patient.full_name}. {result.recommendation}."
                ),
                source=ALERT_SOURCE,
                trigger_value=str(result.total_score),
                actor=ctx.username,
            )

        logger.info(
            f"NEWS2 for patient {patient_id}: score={result.total_score} risk={result.risk_level.value}"
        )
        return result


news2_service = News2Service()
