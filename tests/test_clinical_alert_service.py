"""Tests for the clinical alert lifecycle."""

from datetime import datetime, timedelta
from unittest.mock import MagicMock

import pytest
from sqlalchemy import event

from clinical_support.config import settings
from clinical_support.database.models import (
    AlertSeverity, AlertStatus, AlertType, AuditLog, ClinicalAlert
)
from clinical_support.exceptions import (
    ConflictError, ForbiddenError, InvalidInputError, NotFoundError
)
from clinical_support.services.audit_service import AuditService
from clinical_support.services.clinical_alert_service import (
    SUPERSEDED_REASON, ClinicalAlertService
)


@pytest.fixture
def service():
    return ClinicalAlertService(audit=AuditService(enabled=True))


def raise_alert(service, db, patient_id="P001", alert_type=AlertType.LAB_ABNORMAL,
                severity=AlertSeverity.WARNING, trigger_value="1"):
    return service.create_alert(
        db,
        patient_id=patient_id,
        alert_type=alert_type,
        severity=severity,
        title=f"{alert_type.value} alert",
        description="test alert",
        source="tests",
        trigger_value=trigger_value,
    )


def active_alerts(db, patient_id, alert_type):
    return db.query(ClinicalAlert).filter(
        ClinicalAlert.patient_id == patient_id,
        ClinicalAlert.alert_type == alert_type,
        ClinicalAlert.status == AlertStatus.ACTIVE,
    ).all()


# ------------------------------------------------------------------
# Creation and deduplication
# ------------------------------------------------------------------

class TestCreateAlert:
    def test_new_alert_is_active(self, service, db, patients):
        alert = raise_alert(service, db)
        assert alert.id
        assert alert.status == AlertStatus.ACTIVE
        assert alert.created_at is not None
        assert alert.trigger_value == "1"

    def test_creation_is_audited(self, service, db, patients):
        alert = raise_alert(service, db)
        entry = db.query(AuditLog).filter(AuditLog.entity_id == alert.id).one()
        assert entry.action == "CREATE"
        assert entry.entity_type == "CLINICAL_ALERT"
        assert entry.performed_by == "system"
        assert entry.patient_id == "P001"

    def test_news2_alert_supersedes_previous(self, service, db, patients):
        first = raise_alert(service, db, alert_type=AlertType.NEWS2_HIGH, trigger_value="5")
        second = raise_alert(service, db, alert_type=AlertType.NEWS2_HIGH, trigger_value="6")

        db.refresh(first)
        assert first.status == AlertStatus.DISMISSED
        assert first.dismissed_by == "system"
        assert first.dismiss_reason == SUPERSEDED_REASON
        assert first.dismissed_at is not None

        active = active_alerts(db, "P001", AlertType.NEWS2_HIGH)
        assert [a.id for a in active] == [second.id]

    def test_news2_types_are_deduplicated_independently(self, service, db, patients):
        raise_alert(service, db, alert_type=AlertType.NEWS2_HIGH, severity=AlertSeverity.WARNING)
        raise_alert(service, db, alert_type=AlertType.NEWS2_CRITICAL, severity=AlertSeverity.CRITICAL)

        assert len(active_alerts(db, "P001", AlertType.NEWS2_HIGH)) == 1
        assert len(active_alerts(db, "P001", AlertType.NEWS2_CRITICAL)) == 1

    def test_news2_dedup_is_per_patient(self, service, db, patients):
        raise_alert(service, db, patient_id="P001", alert_type=AlertType.NEWS2_HIGH)
        raise_alert(service, db, patient_id="P002", alert_type=AlertType.NEWS2_HIGH)

        assert len(active_alerts(db, "P001", AlertType.NEWS2_HIGH)) == 1
        assert len(active_alerts(db, "P002", AlertType.NEWS2_HIGH)) == 1

    def test_other_types_are_not_deduplicated(self, service, db, patients):
        for _ in range(3):
            raise_alert(service, db, alert_type=AlertType.LAB_CRITICAL, severity=AlertSeverity.CRITICAL)
        assert len(active_alerts(db, "P001", AlertType.LAB_CRITICAL)) == 3

    def test_concurrent_news2_insert_raises_conflict(self, service, db, patients, monkeypatch):
        existing = raise_alert(service, db, alert_type=AlertType.NEWS2_CRITICAL)

        # A racing writer that never saw the existing alert
        monkeypatch.setattr(service, "_supersede_active", lambda *args, **kwargs: None)

        with pytest.raises(ConflictError):
            raise_alert(service, db, alert_type=AlertType.NEWS2_CRITICAL)

        active = active_alerts(db, "P001", AlertType.NEWS2_CRITICAL)
        assert [a.id for a in active] == [existing.id]


# ------------------------------------------------------------------
# Acknowledge / dismiss
# ------------------------------------------------------------------

class TestAcknowledge:
    def test_acknowledge_active_alert(self, service, db, patients, nurse):
        alert = raise_alert(service, db)

        data = service.acknowledge(db, nurse, alert.id)

        assert data["status"] == "ACKNOWLEDGED"
        assert data["acknowledged_by"] == "nurse.jones"
        assert data["acknowledged_at"] is not None
        assert data["patient_name"] == "Ada Lovelace"

        entry = db.query(AuditLog).filter(AuditLog.action == "ACKNOWLEDGE").one()
        assert entry.performed_by == "nurse.jones"
        assert entry.entity_id == alert.id

    def test_acknowledged_alert_is_terminal(self, service, db, patients, doctor):
        alert = raise_alert(service, db)
        service.acknowledge(db, doctor, alert.id)

        with pytest.raises(InvalidInputError):
            service.acknowledge(db, doctor, alert.id)
        with pytest.raises(InvalidInputError):
            service.dismiss(db, doctor, alert.id, "changed my mind")

    def test_unknown_alert(self, service, db, admin):
        with pytest.raises(NotFoundError):
            service.acknowledge(db, admin, "no-such-alert")

    def test_receptionist_forbidden_before_storage(self, service, receptionist):
        db = MagicMock()
        with pytest.raises(ForbiddenError):
            service.acknowledge(db, receptionist, "any-id")
        db.query.assert_not_called()
        db.commit.assert_not_called()

    def test_missing_context_forbidden(self, service):
        with pytest.raises(ForbiddenError):
            service.acknowledge(MagicMock(), None, "any-id")


class TestDismiss:
    def test_dismiss_active_alert(self, service, db, patients, doctor):
        alert = raise_alert(service, db)

        data = service.dismiss(db, doctor, alert.id, "  Repeat sample normal  ")

        assert data["status"] == "DISMISSED"
        assert data["dismiss_reason"] == "Repeat sample normal"
        assert data["dismissed_by"] == "dr.sharma"

        entry = db.query(AuditLog).filter(AuditLog.action == "DISMISS").one()
        assert "Repeat sample normal" in entry.details

    @pytest.mark.parametrize("reason", ["", "   ", None])
    def test_blank_reason_rejected_before_lookup(self, service, nurse, reason):
        db = MagicMock()
        with pytest.raises(InvalidInputError):
            service.dismiss(db, nurse, "any-id", reason)
        db.query.assert_not_called()

    def test_dismissed_alert_is_terminal(self, service, db, patients, nurse):
        alert = raise_alert(service, db)
        service.dismiss(db, nurse, alert.id, "duplicate")

        with pytest.raises(InvalidInputError):
            service.acknowledge(db, nurse, alert.id)

    def test_unknown_alert(self, service, db, nurse):
        with pytest.raises(NotFoundError):
            service.dismiss(db, nurse, "no-such-alert", "reason")

    def test_receptionist_forbidden(self, service, receptionist):
        with pytest.raises(ForbiddenError):
            service.dismiss(MagicMock(), receptionist, "any-id", "reason")


# ------------------------------------------------------------------
# Feeds
# ------------------------------------------------------------------

@pytest.fixture
def feed(service, db, patients, appointment):
    """Three alerts for P001 and two for P002 with distinct timestamps"""
    base = datetime(2024, 1, 1, 8, 0, 0)
    specs = [
        ("P001", AlertType.LAB_ABNORMAL, AlertSeverity.WARNING),
        ("P002", AlertType.DRUG_INTERACTION, AlertSeverity.CRITICAL),
        ("P001", AlertType.NEWS2_CRITICAL, AlertSeverity.CRITICAL),
        ("P002", AlertType.LAB_ABNORMAL, AlertSeverity.WARNING),
        ("P001", AlertType.LAB_CRITICAL, AlertSeverity.CRITICAL),
    ]
    alerts = []
    for minutes, (patient_id, alert_type, severity) in enumerate(specs):
        alert = raise_alert(service, db, patient_id, alert_type, severity)
        alert.created_at = base + timedelta(minutes=minutes)
        alerts.append(alert)
    db.commit()
    return alerts


class TestPatientFeed:
    def test_newest_first(self, service, db, feed, nurse):
        page = service.get_patient_alerts(db, nurse, "P001")
        assert page.total == 3
        assert [item["id"] for item in page.items] == [feed[4].id, feed[2].id, feed[0].id]
        assert all(item["patient_name"] == "Ada Lovelace" for item in page.items)

    def test_filters(self, service, db, feed, nurse):
        page = service.get_patient_alerts(db, nurse, "P001", severity=AlertSeverity.CRITICAL)
        assert page.total == 2

        service.acknowledge(db, nurse, feed[0].id)
        page = service.get_patient_alerts(db, nurse, "P001", status=AlertStatus.ACKNOWLEDGED)
        assert [item["id"] for item in page.items] == [feed[0].id]

    def test_pagination(self, service, db, feed, nurse):
        page = service.get_patient_alerts(db, nurse, "P001", page=1, size=2)
        assert page.total == 3
        assert page.pages == 2
        assert [item["id"] for item in page.items] == [feed[0].id]

    def test_invalid_page(self, service, db, feed, nurse):
        with pytest.raises(InvalidInputError):
            service.get_patient_alerts(db, nurse, "P001", page=-1)

    def test_zero_size_rejected(self, service, db, feed, nurse):
        with pytest.raises(InvalidInputError):
            service.get_patient_alerts(db, nurse, "P001", size=0)

    def test_default_size(self, service, db, feed, nurse):
        page = service.get_patient_alerts(db, nurse, "P001")
        assert page.size == settings.DEFAULT_PAGE_SIZE

    def test_receptionist_forbidden(self, service, receptionist):
        db = MagicMock()
        with pytest.raises(ForbiddenError):
            service.get_patient_alerts(db, receptionist, "P001")
        db.query.assert_not_called()


class TestGlobalFeed:
    def test_nurse_sees_everything(self, service, db, feed, nurse):
        page = service.get_global_alerts(db, nurse)
        assert page.total == 5
        assert page.items[0]["id"] == feed[4].id

    def test_doctor_limited_to_own_patients(self, service, db, feed, doctor):
        page = service.get_global_alerts(db, doctor)
        assert page.total == 3
        assert {item["patient_id"] for item in page.items} == {"P001"}

    def test_doctor_without_appointments_sees_nothing(self, service, db, feed, other_doctor):
        page = service.get_global_alerts(db, other_doctor)
        assert page.total == 0
        assert page.items == []

    def test_patient_names_resolved_in_one_query(self, service, db, engine, feed, admin):
        statements = []

        def record(conn, cursor, statement, parameters, context, executemany):
            if "FROM patients" in statement:
                statements.append(statement)

        event.listen(engine, "before_cursor_execute", record)
        try:
            page = service.get_global_alerts(db, admin)
        finally:
            event.remove(engine, "before_cursor_execute", record)

        names = {item["patient_id"]: item["patient_name"] for item in page.items}
        assert names == {"P001": "Ada Lovelace", "P002": "Alan Turing"}
        assert len(statements) == 1


# ------------------------------------------------------------------
# Dashboard
# ------------------------------------------------------------------

class TestDashboard:
    def test_counts_active_alerts_only(self, service, db, feed, admin, nurse):
        service.acknowledge(db, nurse, feed[3].id)

        stats = service.get_dashboard_stats(db, admin)

        assert stats.total_active_patients == 2
        assert stats.total_active_alerts == 4
        assert stats.total_critical_alerts == 3
        assert stats.total_warning_alerts == 1
        assert stats.patients_with_critical_alerts == 2
        assert stats.patients_with_high_news2 == 1
        assert stats.alerts_by_type == {
            "LAB_ABNORMAL": 1,
            "DRUG_INTERACTION": 1,
            "NEWS2_CRITICAL": 1,
            "LAB_CRITICAL": 1,
        }
        assert stats.generated_at is not None

    def test_empty_dashboard(self, service, db, admin):
        stats = service.get_dashboard_stats(db, admin)
        assert stats.total_active_alerts == 0
        assert stats.alerts_by_type == {}
        assert stats.to_dict()["total_active_patients"] == 0

    def test_nurse_forbidden(self, service, nurse):
        db = MagicMock()
        with pytest.raises(ForbiddenError):
            service.get_dashboard_stats(db, nurse)
        db.query.assert_not_called()
