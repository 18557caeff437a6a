"""Tests for the NEWS2 workflow over stored vitals."""

from datetime import datetime, timedelta
from decimal import Decimal
from unittest.mock import MagicMock

import pytest

from clinical_support.database.models import (
    AlertSeverity, AlertStatus, AlertType, ClinicalAlert, PatientVitals
)
from clinical_support.exceptions import ForbiddenError, NotFoundError
from clinical_support.services.audit_service import AuditService
from clinical_support.services.clinical_alert_service import ClinicalAlertService
from clinical_support.services.news2_calculator import News2Calculator, RiskLevel
from clinical_support.services.news2_service import News2Service


@pytest.fixture
def service():
    return News2Service(
        calculator=News2Calculator(),
        alert_service=ClinicalAlertService(audit=AuditService(enabled=True)),
    )


def record_vitals(db, patient_id, minutes_ago=0, **values):
    vitals = dict(
        respiratory_rate=16,
        oxygen_saturation=98,
        blood_pressure_systolic=120,
        blood_pressure_diastolic=80,
        heart_rate=75,
        temperature=Decimal("37.0"),
    )
    vitals.update(values)
    row = PatientVitals(
        patient_id=patient_id,
        recorded_by="nurse.jones",
        recorded_at=datetime.utcnow() - timedelta(minutes=minutes_ago),
        **vitals
    )
    db.add(row)
    db.commit()
    return row


def news2_alerts(db, patient_id):
    return db.query(ClinicalAlert).filter(
        ClinicalAlert.patient_id == patient_id,
        ClinicalAlert.alert_type.in_([AlertType.NEWS2_HIGH, AlertType.NEWS2_CRITICAL]),
    ).order_by(ClinicalAlert.created_at).all()


class TestNews2Workflow:
    def test_no_vitals(self, service, db, patients, nurse):
        result = service.get_news2_score(db, nurse, "P001")
        assert result.risk_level == RiskLevel.NO_DATA
        assert news2_alerts(db, "P001") == []

    def test_uses_most_recent_vitals(self, service, db, patients, nurse):
        record_vitals(db, "P001", minutes_ago=60, respiratory_rate=30)
        latest = record_vitals(db, "P001", minutes_ago=5)

        result = service.get_news2_score(db, nurse, "P001")

        assert result.based_on_vitals_id == latest.id
        assert result.total_score == 0

    @pytest.mark.parametrize("values", [
        {},
        {"heart_rate": 95, "temperature": Decimal("38.5")},
    ])
    def test_low_risk_raises_nothing(self, service, db, patients, doctor, values):
        record_vitals(db, "P001", **values)
        result = service.get_news2_score(db, doctor, "P001")
        assert result.risk_level in (RiskLevel.LOW, RiskLevel.LOW_MEDIUM)
        assert news2_alerts(db, "P001") == []

    def test_medium_risk_raises_warning(self, service, db, patients, doctor):
        record_vitals(db, "P001", respiratory_rate=7)

        result = service.get_news2_score(db, doctor, "P001")

        assert result.risk_level == RiskLevel.MEDIUM
        [alert] = news2_alerts(db, "P001")
        assert alert.alert_type == AlertType.NEWS2_HIGH
        assert alert.severity == AlertSeverity.WARNING
        assert alert.title == "NEWS2 Elevated Risk (Score 3)"
        assert alert.source == "News2Service"
        assert alert.trigger_value == "3"

    def test_high_risk_raises_critical(self, service, db, patients, admin):
        record_vitals(db, "P001", respiratory_rate=26, oxygen_saturation=90, heart_rate=135)

        result = service.get_news2_score(db, admin, "P001")

        assert result.total_score == 9
        [alert] = news2_alerts(db, "P001")
        assert alert.alert_type == AlertType.NEWS2_CRITICAL
        assert alert.severity == AlertSeverity.CRITICAL
        assert alert.title == "NEWS2 Critical Risk (Score 9)"

    def test_recalculation_replaces_active_alert(self, service, db, patients, nurse):
        record_vitals(db, "P001", minutes_ago=30, respiratory_rate=26, oxygen_saturation=90, heart_rate=135)
        service.get_news2_score(db, nurse, "P001")
        record_vitals(db, "P001", minutes_ago=1, respiratory_rate=26, oxygen_saturation=90, heart_rate=120)
        service.get_news2_score(db, nurse, "P001")

        alerts = news2_alerts(db, "P001")
        assert [a.status for a in alerts] == [AlertStatus.DISMISSED, AlertStatus.ACTIVE]
        assert alerts[1].trigger_value == "8"

    def test_unknown_patient(self, service, db, nurse):
        with pytest.raises(NotFoundError):
            service.get_news2_score(db, nurse, "P404")

    def test_receptionist_forbidden(self, service, receptionist):
        db = MagicMock()
        with pytest.raises(ForbiddenError):
            service.get_news2_score(db, receptionist, "P001")
        db.query.assert_not_called()
