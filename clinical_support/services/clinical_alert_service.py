"""
Clinical Alert Service - creation, deduplication and lifecycle of clinical alerts

Called by the NEWS2 workflow, the drug interaction checker and lab result
recording to raise alerts, and by the API for acknowledge / dismiss / feeds.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from clinical_support.config import settings
from clinical_support.database.models import (
    Appointment, ClinicalAlert, AlertType, AlertSeverity, AlertStatus,
    Patient, UserRole, is_news2_type
)
from clinical_support.exceptions import ConflictError, InvalidInputError, NotFoundError
from clinical_support.services.audit_service import AuditService, audit_service
from clinical_support.services.auth_service import (
    AuthContext, ALERT_VIEWER_ROLES, require_roles
)

logger = logging.getLogger(__name__)

SUPERSEDED_REASON = "Auto-dismissed: superseded by updated score"
ENTITY_TYPE = "CLINICAL_ALERT"
DASHBOARD_ROLES = (UserRole.DOCTOR, UserRole.ADMIN)


@dataclass
class AlertPage:
    """One page of an alert feed, newest first"""
    items: List[Dict]
    total: int
    page: int
    size: int

    @property
    def pages(self) -> int:
        return (self.total + self.size - 1) // self.size if self.size else 0

    def to_dict(self) -> Dict:
        return {
            'items': self.items,
            'total': self.total,
            'page': self.page,
            'size': self.size,
            'pages': self.pages,
        }


@dataclass
class DashboardStats:
    """Read-only aggregation over active alerts"""
    total_active_patients: int
    patients_with_critical_alerts: int
    patients_with_high_news2: int
    total_active_alerts: int
    total_critical_alerts: int
    total_warning_alerts: int
    alerts_by_type: Dict[str, int] = field(default_factory=dict)
    generated_at: datetime = None

    def to_dict(self) -> Dict:
        return {
            'total_active_patients': self.total_active_patients,
            'patients_with_critical_alerts': self.patients_with_critical_alerts,
            'patients_with_high_news2': self.patients_with_high_news2,
            'total_active_alerts': self.total_active_alerts,
            'total_critical_alerts': self.total_critical_alerts,
            'total_warning_alerts': self.total_warning_alerts,
            'alerts_by_type': self.alerts_by_type,
            'generated_at': self.generated_at.isoformat() if self.generated_at else None,
        }


def page_size(page: int, size: Optional[int]) -> int:
    """Validate paging arguments; None means the configured default"""
    if size is None:
        size = settings.DEFAULT_PAGE_SIZE
    if page < 0 or size < 1:
        raise InvalidInputError("page must be >= 0 and size >= 1")
    return min(size, settings.MAX_PAGE_SIZE)


def alert_to_dict(alert: ClinicalAlert, patient_name: Optional[str] = None) -> Dict:
    """Serialize an alert for API consumers"""
    return {
        'id': alert.id,
        'patient_id': alert.patient_id,
        'patient_name': patient_name,
        'alert_type': alert.alert_type.value,
        'severity': alert.severity.value,
        'title': alert.title,
        'description': alert.description,
        'source': alert.source,
        'trigger_value': alert.trigger_value,
        'status': alert.status.value,
        'created_at': alert.created_at.isoformat() if alert.created_at else None,
        'acknowledged_by': alert.acknowledged_by,
        'acknowledged_at': alert.acknowledged_at.isoformat() if alert.acknowledged_at else None,
        'dismissed_by': alert.dismissed_by,
        'dismissed_at': alert.dismissed_at.isoformat() if alert.dismissed_at else None,
        'dismiss_reason': alert.dismiss_reason,
    }


class ClinicalAlertService:
    """
    Owns every ClinicalAlert state change.

    Lifecycle: ACTIVE -> ACKNOWLEDGED or ACTIVE -> DISMISSED; both terminal.
    NEWS2 alert types are deduplicated so that at most one ACTIVE alert of
    each NEWS2 type exists per patient.
    """

    def __init__(self, audit: AuditService = None):
        self.audit = audit or audit_service

    # ==================== Creation ====================

    def create_alert(
        self,
        db: Session,
        patient_id: str,
        alert_type: AlertType,
        severity: AlertSeverity,
        title: str,
        description: str,
        source: str,
        trigger_value: Optional[str] = None,
        actor: str = "system"
    ) -> ClinicalAlert:
        """
        Persist a new ACTIVE alert.

        For NEWS2 types any existing ACTIVE alert of the same type for the
        patient is dismissed first; other types never look for duplicates.
        Internal entry point: callers have already passed their own role check.
        """
        try:
            if is_news2_type(alert_type):
                self._supersede_active(db, patient_id, alert_type)

            alert = ClinicalAlert(
                patient_id=patient_id,
                alert_type=alert_type,
                severity=severity,
                title=title,
                description=description,
                source=source,
                trigger_value=str(trigger_value) if trigger_value is not None else None,
                status=AlertStatus.ACTIVE,
                created_at=datetime.utcnow(),
            )
            db.add(alert)
            db.flush()
        except IntegrityError:
            db.rollback()
            logger.warning(
                f"Concurrent {alert_type.value} alert for patient {patient_id}; creation rolled back"
            )
            raise ConflictError(
                f"An active {alert_type.value} alert for patient {patient_id} was created concurrently"
            )

        self.audit.write(
            db, "CREATE", ENTITY_TYPE, alert.id, patient_id, actor,
            f"type={alert_type.value} severity={severity.value}"
        )
        db.commit()
        db.refresh(alert)

        logger.info(
            f"Created {severity.value} {alert_type.value} alert {alert.id} for patient {patient_id}"
        )
        return alert

    def _supersede_active(self, db: Session, patient_id: str, alert_type: AlertType):
        existing = db.query(ClinicalAlert).filter(
            ClinicalAlert.patient_id == patient_id,
            ClinicalAlert.alert_type == alert_type,
            ClinicalAlert.status == AlertStatus.ACTIVE
        ).first()

        if existing is None:
            return

        existing.status = AlertStatus.DISMISSED
        existing.dismissed_at = datetime.utcnow()
        existing.dismissed_by = "system"
        existing.dismiss_reason = SUPERSEDED_REASON
        # The dismissal must reach the database before the replacement is inserted
        db.flush()

        logger.info(f"Superseded {alert_type.value} alert {existing.id} for patient {patient_id}")

    # ==================== Lifecycle ====================

    def acknowledge(self, db: Session, ctx: AuthContext, alert_id: str) -> Dict:
        """Mark an ACTIVE alert as acknowledged by the caller"""
        require_roles(ctx, *ALERT_VIEWER_ROLES)

        alert = self._get_active_alert(db, alert_id)
        alert.status = AlertStatus.ACKNOWLEDGED
        alert.acknowledged_by = ctx.username
        alert.acknowledged_at = datetime.utcnow()

        self.audit.write(
            db, "ACKNOWLEDGE", ENTITY_TYPE, alert.id, alert.patient_id, ctx.username, "acknowledged"
        )
        db.commit()
        db.refresh(alert)

        logger.info(f"Alert {alert.id} acknowledged by {ctx.username}")
        return alert_to_dict(alert, self._patient_name(db, alert.patient_id))

    def dismiss(self, db: Session, ctx: AuthContext, alert_id: str, reason: str) -> Dict:
        """Dismiss an ACTIVE alert; a non-blank reason is mandatory"""
        require_roles(ctx, *ALERT_VIEWER_ROLES)

        if reason is None or not reason.strip():
            raise InvalidInputError("A reason is required to dismiss an alert")

        alert = self._get_active_alert(db, alert_id)
        alert.status = AlertStatus.DISMISSED
        alert.dismiss_reason = reason.strip()
        alert.dismissed_by = ctx.username
        alert.dismissed_at = datetime.utcnow()

        self.audit.write(
            db, "DISMISS", ENTITY_TYPE, alert.id, alert.patient_id, ctx.username,
            f"dismissed: {alert.dismiss_reason}"
        )
        db.commit()
        db.refresh(alert)

        logger.info(f"Alert {alert.id} dismissed by {ctx.username}")
        return alert_to_dict(alert, self._patient_name(db, alert.patient_id))

    def _get_active_alert(self, db: Session, alert_id: str) -> ClinicalAlert:
        alert = db.query(ClinicalAlert).filter(ClinicalAlert.id == str(alert_id)).first()
        if alert is None:
            raise NotFoundError(f"Alert not found: {alert_id}")
        if alert.status != AlertStatus.ACTIVE:
            raise InvalidInputError(f"Alert {alert_id} is already {alert.status.value}")
        return alert

    # ==================== Feeds ====================

    def get_patient_alerts(
        self,
        db: Session,
        ctx: AuthContext,
        patient_id: str,
        status: Optional[AlertStatus] = None,
        severity: Optional[AlertSeverity] = None,
        page: int = 0,
        size: int = None
    ) -> AlertPage:
        """Alert feed for a single patient"""
        require_roles(ctx, *ALERT_VIEWER_ROLES)

        query = db.query(ClinicalAlert).filter(ClinicalAlert.patient_id == patient_id)
        query = self._apply_filters(query, status, severity)

        patient_name = self._patient_name(db, patient_id)
        return self._paginate(query, page, size, lambda _: patient_name)

    def get_global_alerts(
        self,
        db: Session,
        ctx: AuthContext,
        status: Optional[AlertStatus] = None,
        severity: Optional[AlertSeverity] = None,
        page: int = 0,
        size: int = None
    ) -> AlertPage:
        """
        Alert feed across patients.

        Doctors only see patients from their own appointment history;
        nurses and administrators see everything.
        """
        require_roles(ctx, *ALERT_VIEWER_ROLES)

        query = self._apply_filters(db.query(ClinicalAlert), status, severity)

        if ctx.role == UserRole.DOCTOR:
            doctor_patients = select(Appointment.patient_id).where(
                Appointment.doctor_id == ctx.user_id
            ).distinct()
            query = query.filter(ClinicalAlert.patient_id.in_(doctor_patients))

        result = self._paginate(query, page, size, None)

        # One batched lookup for every patient on the page
        names = self._patient_names(db, {item['patient_id'] for item in result.items})
        for item in result.items:
            item['patient_name'] = names.get(item['patient_id'])
        return result

    @staticmethod
    def _apply_filters(query, status, severity):
        if status is not None:
            query = query.filter(ClinicalAlert.status == status)
        if severity is not None:
            query = query.filter(ClinicalAlert.severity == severity)
        return query

    @staticmethod
    def _paginate(query, page: int, size: Optional[int], name_for) -> AlertPage:
        size = page_size(page, size)

        total = query.count()
        alerts = query.order_by(
            ClinicalAlert.created_at.desc()
        ).offset(page * size).limit(size).all()

        items = [
            alert_to_dict(alert, name_for(alert) if name_for else None)
            for alert in alerts
        ]
        return AlertPage(items=items, total=total, page=page, size=size)

    @staticmethod
    def _patient_name(db: Session, patient_id: str) -> Optional[str]:
        patient = db.query(Patient).filter(Patient.patient_uid == patient_id).first()
        return patient.full_name if patient else None

    @staticmethod
    def _patient_names(db: Session, patient_ids: Iterable[str]) -> Dict[str, str]:
        patient_ids = set(patient_ids)
        if not patient_ids:
            return {}
        patients = db.query(Patient).filter(Patient.patient_uid.in_(patient_ids)).all()
        return {p.patient_uid: p.full_name for p in patients}

    # ==================== Dashboard ====================

    def get_dashboard_stats(self, db: Session, ctx: AuthContext) -> DashboardStats:
        """Counts over ACTIVE alerts; no state of its own"""
        require_roles(ctx, *DASHBOARD_ROLES)

        active = ClinicalAlert.status == AlertStatus.ACTIVE

        def count_active(*criteria) -> int:
            return db.query(func.count(ClinicalAlert.id)).filter(active, *criteria).scalar() or 0

        def count_patients(*criteria) -> int:
            return db.query(
                func.count(func.distinct(ClinicalAlert.patient_id))
            ).filter(active, *criteria).scalar() or 0

        by_type = db.query(
            ClinicalAlert.alert_type, func.count(ClinicalAlert.id)
        ).filter(active).group_by(ClinicalAlert.alert_type).all()

        return DashboardStats(
            total_active_patients=db.query(func.count(Patient.id)).filter(
                Patient.is_active == True  # noqa: E712
            ).scalar() or 0,
            patients_with_critical_alerts=count_patients(
                ClinicalAlert.severity == AlertSeverity.CRITICAL
            ),
            patients_with_high_news2=count_patients(
                ClinicalAlert.alert_type == AlertType.NEWS2_CRITICAL
            ),
            total_active_alerts=count_active(),
            total_critical_alerts=count_active(ClinicalAlert.severity == AlertSeverity.CRITICAL),
            total_warning_alerts=count_active(ClinicalAlert.severity == AlertSeverity.WARNING),
            alerts_by_type={alert_type.value: count for alert_type, count in by_type},
            generated_at=datetime.utcnow(),
        )


clinical_alert_service = ClinicalAlertService()
