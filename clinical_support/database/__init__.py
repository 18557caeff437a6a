"""
Database Package
Provides database models, connection management, and session handling
"""
from clinical_support.database.connection import get_db, db_manager
from clinical_support.database.models import (
    Base, User, UserRole, Patient, PatientVitals, PatientMedication,
    MedicationStatus, PatientAllergy, Appointment, ClinicalAlert, AlertType,
    AlertSeverity, AlertStatus, AuditLog, NEWS2_ALERT_TYPES, is_news2_type
)


def init_db():
    """Initialize database - wrapper used at application startup"""
    db_manager.init_database()


__all__ = [
    'get_db', 'db_manager', 'init_db',
    'Base', 'User', 'UserRole', 'Patient', 'PatientVitals', 'PatientMedication',
    'MedicationStatus', 'PatientAllergy', 'Appointment', 'ClinicalAlert', 'AlertType',
    'AlertSeverity', 'AlertStatus', 'AuditLog', 'NEWS2_ALERT_TYPES', 'is_news2_type'
]
