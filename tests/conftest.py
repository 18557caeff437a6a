"""Test configuration and fixtures"""

from datetime import datetime, timedelta

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from clinical_support.database.models import (
    Appointment, Base, Patient, User, UserRole
)
from clinical_support.services.auth_service import AuthContext


@pytest.fixture
def engine():
    """Fresh in-memory database per test"""
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(eng, "connect")
    def set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    Base.metadata.create_all(bind=eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def staff(db):
    """Doctor, second doctor, nurse, admin and receptionist accounts"""
    users = {}
    for username, role in [
        ("dr.sharma", UserRole.DOCTOR),
        ("dr.patel", UserRole.DOCTOR),
        ("nurse.jones", UserRole.NURSE),
        ("admin", UserRole.ADMIN),
        ("desk.lee", UserRole.RECEPTIONIST),
    ]:
        user = User(
            username=username,
            email=f"{username}@hospital.com",
            password_hash="not-used",
            full_name=username.title(),
            role=role,
            is_active=True,
        )
        db.add(user)
        users[username] = user
    db.commit()
    return users


@pytest.fixture
def doctor(staff):
    return AuthContext.from_user(staff["dr.sharma"])


@pytest.fixture
def other_doctor(staff):
    return AuthContext.from_user(staff["dr.patel"])


@pytest.fixture
def nurse(staff):
    return AuthContext.from_user(staff["nurse.jones"])


@pytest.fixture
def admin(staff):
    return AuthContext.from_user(staff["admin"])


@pytest.fixture
def receptionist(staff):
    return AuthContext.from_user(staff["desk.lee"])


@pytest.fixture
def patients(db):
    """Two registered patients keyed by patient_uid"""
    records = {
        "P001": Patient(patient_uid="P001", first_name="Ada", last_name="Lovelace"),
        "P002": Patient(patient_uid="P002", first_name="Alan", last_name="Turing"),
    }
    db.add_all(records.values())
    db.commit()
    return records


@pytest.fixture
def appointment(db, staff, patients):
    """dr.sharma has seen P001 only"""
    appt = Appointment(
        patient_id="P001",
        doctor_id=staff["dr.sharma"].id,
        appointment_date=datetime.utcnow() - timedelta(days=1),
        status="COMPLETED",
    )
    db.add(appt)
    db.commit()
    return appt
