"""
Clinical Support Database Models
SQLAlchemy models for the clinical decision support and alerting engine
"""
from datetime import datetime
import enum
import uuid

from sqlalchemy import (
    Column, Integer, String, Text, DateTime, Boolean, Numeric,
    ForeignKey, Enum as SQLEnum, Index, text
)
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


class UserRole(enum.Enum):
    ADMIN = "ADMIN"
    DOCTOR = "DOCTOR"
    NURSE = "NURSE"
    PHARMACIST = "PHARMACIST"
    RECEPTIONIST = "RECEPTIONIST"


class AlertType(enum.Enum):
    LAB_CRITICAL = "LAB_CRITICAL"
    LAB_ABNORMAL = "LAB_ABNORMAL"
    NEWS2_HIGH = "NEWS2_HIGH"
    NEWS2_CRITICAL = "NEWS2_CRITICAL"
    DRUG_INTERACTION = "DRUG_INTERACTION"
    ALLERGY_CONTRAINDICATION = "ALLERGY_CONTRAINDICATION"


class AlertSeverity(enum.Enum):
    WARNING = "WARNING"
    CRITICAL = "CRITICAL"


class AlertStatus(enum.Enum):
    ACTIVE = "ACTIVE"
    ACKNOWLEDGED = "ACKNOWLEDGED"
    DISMISSED = "DISMISSED"


class MedicationStatus(enum.Enum):
    ACTIVE = "ACTIVE"
    DISCONTINUED = "DISCONTINUED"
    COMPLETED = "COMPLETED"


# Only one ACTIVE alert of each of these types may exist per patient
NEWS2_ALERT_TYPES = frozenset({AlertType.NEWS2_HIGH, AlertType.NEWS2_CRITICAL})


def is_news2_type(alert_type: AlertType) -> bool:
    return alert_type in NEWS2_ALERT_TYPES


class User(Base):
    """Hospital staff users"""
    __tablename__ = 'users'

    id = Column(Integer, primary_key=True, autoincrement=True)
    username = Column(String(50), unique=True, nullable=False, index=True)
    email = Column(String(100), unique=True, nullable=False)
    password_hash = Column(String(255), nullable=False)
    full_name = Column(String(100), nullable=False)
    role = Column(SQLEnum(UserRole), nullable=False, default=UserRole.RECEPTIONIST)
    department = Column(String(100))
    is_active = Column(Boolean, default=True)
    last_login = Column(DateTime)
    created_at = Column(DateTime, default=datetime.utcnow)

    appointments = relationship("Appointment", back_populates="doctor")

    __table_args__ = (
        Index('idx_user_role', 'role'),
    )


class Patient(Base):
    """Patient directory entry (identity only)"""
    __tablename__ = 'patients'

    id = Column(Integer, primary_key=True, autoincrement=True)
    patient_uid = Column(String(50), unique=True, nullable=False, index=True)  # Hospital's patient ID
    first_name = Column(String(50), nullable=False)
    last_name = Column(String(50), nullable=False)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        Index('idx_patient_name', 'first_name', 'last_name'),
    )

    @property
    def full_name(self):
        return f"{self.first_name} {self.last_name}"


class PatientVitals(Base):
    """Vitals recorded by the vitals workflow; scored by NEWS2"""
    __tablename__ = 'patient_vitals'

    id = Column(Integer, primary_key=True, autoincrement=True)
    patient_id = Column(String(50), nullable=False)

    blood_pressure_systolic = Column(Integer)
    blood_pressure_diastolic = Column(Integer)
    heart_rate = Column(Integer)
    temperature = Column(Numeric(4, 1))
    oxygen_saturation = Column(Integer)
    respiratory_rate = Column(Integer)

    recorded_by = Column(String(100), nullable=False)
    recorded_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        Index('idx_vitals_patient_recorded', 'patient_id', 'recorded_at'),
    )


class PatientMedication(Base):
    """Patient's prescribed medications"""
    __tablename__ = 'patient_medications'

    id = Column(Integer, primary_key=True, autoincrement=True)
    patient_id = Column(String(50), nullable=False)

    medication_name = Column(String(200), nullable=False)
    generic_name = Column(String(200))
    dosage = Column(String(100))
    frequency = Column(String(100))
    status = Column(SQLEnum(MedicationStatus), nullable=False, default=MedicationStatus.ACTIVE)
    prescribed_by = Column(String(100))

    created_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        Index('idx_patient_med_status', 'patient_id', 'status'),
    )


class PatientAllergy(Base):
    """Recorded allergy for a patient"""
    __tablename__ = 'patient_allergies'

    id = Column(Integer, primary_key=True, autoincrement=True)
    patient_id = Column(String(50), nullable=False)

    substance = Column(String(200), nullable=False)
    allergy_type = Column(String(20))  # drug, food, environmental
    severity = Column(String(20))  # mild, moderate, severe
    reaction = Column(Text)
    active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        Index('idx_patient_allergy_active', 'patient_id', 'active'),
    )


class Appointment(Base):
    """Appointment history; defines which patients a doctor may see alerts for"""
    __tablename__ = 'appointments'

    id = Column(Integer, primary_key=True, autoincrement=True)
    patient_id = Column(String(50), nullable=False)
    doctor_id = Column(Integer, ForeignKey('users.id'), nullable=False)
    appointment_date = Column(DateTime, default=datetime.utcnow)
    status = Column(String(20), default="SCHEDULED")

    doctor = relationship("User", back_populates="appointments")

    __table_args__ = (
        Index('idx_appointment_doctor', 'doctor_id', 'patient_id'),
    )


class ClinicalAlert(Base):
    """Clinical alerts raised by NEWS2, drug safety checks and lab results"""
    __tablename__ = 'clinical_alerts'

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    patient_id = Column(String(50), nullable=False)

    alert_type = Column(SQLEnum(AlertType), nullable=False)
    severity = Column(SQLEnum(AlertSeverity), nullable=False)

    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=False)
    source = Column(String(200), nullable=False)
    trigger_value = Column(String(200))

    status = Column(SQLEnum(AlertStatus), nullable=False, default=AlertStatus.ACTIVE)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    acknowledged_by = Column(String(100))
    acknowledged_at = Column(DateTime)

    dismissed_by = Column(String(100))
    dismissed_at = Column(DateTime)
    dismiss_reason = Column(Text)

    __table_args__ = (
        Index('idx_alert_patient_status', 'patient_id', 'status'),
        Index('idx_alert_severity', 'severity'),
        Index('idx_alert_created', 'created_at'),
        # Enforces one ACTIVE NEWS2 alert per (patient, type) under concurrent recalculation
        Index(
            'uq_alert_active_news2',
            'patient_id', 'alert_type',
            unique=True,
            sqlite_where=text(
                "status = 'ACTIVE' AND alert_type IN ('NEWS2_HIGH', 'NEWS2_CRITICAL')"
            ),
            postgresql_where=text(
                "status = 'ACTIVE' AND alert_type IN ('NEWS2_HIGH', 'NEWS2_CRITICAL')"
            ),
        ),
    )


class AuditLog(Base):
    """Append-only audit trail for alert and drug safety actions"""
    __tablename__ = 'audit_logs'

    id = Column(Integer, primary_key=True, autoincrement=True)

    action = Column(String(100), nullable=False)  # CREATE, ACKNOWLEDGE, DISMISS, CHECK
    entity_type = Column(String(50), nullable=False)  # CLINICAL_ALERT, DRUG_INTERACTION_CHECK
    entity_id = Column(String(50))
    patient_id = Column(String(50))
    performed_by = Column(String(100), nullable=False)
    details = Column(Text)

    timestamp = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        Index('idx_audit_timestamp', 'timestamp'),
        Index('idx_audit_entity', 'entity_type', 'entity_id'),
        Index('idx_audit_patient', 'patient_id'),
    )
