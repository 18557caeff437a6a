"""
Patient Risk Dashboard Service - patients ranked by clinical risk

Combines each patient's latest NEWS2 score with their active alert counts so
the highest-risk patients appear first.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Optional

from sqlalchemy import case, func, select
from sqlalchemy.orm import Session

from clinical_support.database.models import (
    AlertSeverity, AlertStatus, Appointment, ClinicalAlert, MedicationStatus,
    Patient, PatientAllergy, PatientMedication, PatientVitals, UserRole
)
from clinical_support.services.auth_service import AuthContext, require_roles
from clinical_support.services.clinical_alert_service import AlertPage, DASHBOARD_ROLES, page_size
from clinical_support.services.news2_calculator import (
    News2Calculator, RiskLevel, news2_calculator
)

logger = logging.getLogger(__name__)


@dataclass
class PatientRiskRow:
    """One row of the risk-ranked patient list"""
    patient_id: str
    patient_name: str
    news2_score: Optional[int]
    news2_risk_level: str
    news2_risk_colour: Optional[str]
    critical_alert_count: int
    warning_alert_count: int
    active_medication_count: int
    active_allergy_count: int
    last_vitals_at: Optional[datetime] = None
    last_visit_date: Optional[datetime] = None

    def to_dict(self) -> Dict:
        return {
            'patient_id': self.patient_id,
            'patient_name': self.patient_name,
            'news2_score': self.news2_score,
            'news2_risk_level': self.news2_risk_level,
            'news2_risk_colour': self.news2_risk_colour,
            'critical_alert_count': self.critical_alert_count,
            'warning_alert_count': self.warning_alert_count,
            'active_medication_count': self.active_medication_count,
            'active_allergy_count': self.active_allergy_count,
            'last_vitals_at': self.last_vitals_at.isoformat() if self.last_vitals_at else None,
            'last_visit_date': self.last_visit_date.isoformat() if self.last_visit_date else None,
        }


def risk_sort_key(row: PatientRiskRow):
    """Critical alerts, then NEWS2 score, then warnings; all descending"""
    score = row.news2_score if row.news2_score is not None else -1
    return (-row.critical_alert_count, -score, -row.warning_alert_count, row.patient_id)


class PatientRiskDashboardService:
    """Risk-ranked patient list for doctors and administrators"""

    def __init__(self, calculator: News2Calculator = None):
        self.calculator = calculator or news2_calculator

    def get_risk_ranked_patients(
        self,
        db: Session,
        ctx: AuthContext,
        page: int = 0,
        size: int = None
    ) -> AlertPage:
        """
        Patients in scope ranked by risk.

        Doctors see patients from their own appointment history;
        administrators see every active patient.
        """
        require_roles(ctx, *DASHBOARD_ROLES)
        size = page_size(page, size)

        patients = self._patients_in_scope(db, ctx)
        patient_ids = [p.patient_uid for p in patients]

        alert_counts = self._alert_counts(db, patient_ids)
        medication_counts = self._count_by_patient(
            db, PatientMedication, patient_ids, PatientMedication.status == MedicationStatus.ACTIVE
        )
        allergy_counts = self._count_by_patient(
            db, PatientAllergy, patient_ids, PatientAllergy.active == True  # noqa: E712
        )
        last_visits = self._last_completed_visits(db, patient_ids)

        rows = []
        for patient in patients:
            pid = patient.patient_uid
            vitals = db.query(PatientVitals).filter(
                PatientVitals.patient_id == pid
            ).order_by(PatientVitals.recorded_at.desc(), PatientVitals.id.desc()).first()
            news2 = self.calculator.compute(vitals)
            critical, warning = alert_counts.get(pid, (0, 0))

            rows.append(PatientRiskRow(
                patient_id=pid,
                patient_name=patient.full_name,
                news2_score=None if news2.risk_level == RiskLevel.NO_DATA else news2.total_score,
                news2_risk_level=news2.risk_level.value,
                news2_risk_colour=news2.risk_colour,
                critical_alert_count=critical,
                warning_alert_count=warning,
                active_medication_count=medication_counts.get(pid, 0),
                active_allergy_count=allergy_counts.get(pid, 0),
                last_vitals_at=vitals.recorded_at if vitals is not None else None,
                last_visit_date=last_visits.get(pid),
            ))

        rows.sort(key=risk_sort_key)
        start = page * size
        items = [row.to_dict() for row in rows[start:start + size]]

        logger.debug(f"Risk-ranked {len(rows)} patient(s) for {ctx.username}")
        return AlertPage(items=items, total=len(rows), page=page, size=size)

    @staticmethod
    def _patients_in_scope(db: Session, ctx: AuthContext) -> List[Patient]:
        query = db.query(Patient)
        if ctx.role == UserRole.DOCTOR:
            doctor_patients = select(Appointment.patient_id).where(
                Appointment.doctor_id == ctx.user_id
            ).distinct()
            query = query.filter(Patient.patient_uid.in_(doctor_patients))
        else:
            query = query.filter(Patient.is_active == True)  # noqa: E712
        return query.all()

    @staticmethod
    def _alert_counts(db: Session, patient_ids: List[str]) -> Dict[str, tuple]:
        """(critical, warning) ACTIVE alert counts per patient in one query"""
        if not patient_ids:
            return {}
        rows = db.query(
            ClinicalAlert.patient_id,
            func.sum(case((ClinicalAlert.severity == AlertSeverity.CRITICAL, 1), else_=0)),
            func.sum(case((ClinicalAlert.severity == AlertSeverity.WARNING, 1), else_=0)),
        ).filter(
            ClinicalAlert.status == AlertStatus.ACTIVE,
            ClinicalAlert.patient_id.in_(patient_ids)
        ).group_by(ClinicalAlert.patient_id).all()
        return {pid: (int(critical or 0), int(warning or 0)) for pid, critical, warning in rows}

    @staticmethod
    def _count_by_patient(db: Session, model, patient_ids: List[str], *criteria) -> Dict[str, int]:
        if not patient_ids:
            return {}
        rows = db.query(model.patient_id, func.count(model.id)).filter(
            model.patient_id.in_(patient_ids), *criteria
        ).group_by(model.patient_id).all()
        return dict(rows)

    @staticmethod
    def _last_completed_visits(db: Session, patient_ids: List[str]) -> Dict[str, datetime]:
        if not patient_ids:
            return {}
        rows = db.query(Appointment.patient_id, func.max(Appointment.appointment_date)).filter(
            Appointment.patient_id.in_(patient_ids),
            Appointment.status == "COMPLETED"
        ).group_by(Appointment.patient_id).all()
        return dict(rows)


patient_risk_dashboard_service = PatientRiskDashboardService()
