"""
Database Configuration
Supports SQLite (dev/tests) and PostgreSQL (production)
"""
import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Generator

from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

from clinical_support.config import settings
from clinical_support.database.models import Base, User, UserRole

logger = logging.getLogger(__name__)


class DatabaseManager:
    """Database connection manager with support for multiple backends"""

    def __init__(self):
        self.engine = None
        self.SessionLocal = None
        self._initialized = False

    def init_db(self, database_url: str = None):
        """Initialize database connection"""
        if self._initialized:
            return

        if database_url is None:
            database_url = settings.DATABASE_URL

        # Handle PostgreSQL URL format from some cloud providers
        if database_url.startswith("postgres://"):
            database_url = database_url.replace("postgres://", "postgresql://", 1)

        if "sqlite" in database_url:
            if ":memory:" not in database_url and database_url.startswith("sqlite:///"):
                Path(database_url[len("sqlite:///"):]).parent.mkdir(parents=True, exist_ok=True)

            self.engine = create_engine(
                database_url,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
                echo=settings.SQL_DEBUG
            )

            # Enable foreign keys for SQLite
            @event.listens_for(self.engine, "connect")
            def set_sqlite_pragma(dbapi_connection, connection_record):
                cursor = dbapi_connection.cursor()
                cursor.execute("PRAGMA foreign_keys=ON")
                cursor.close()
        else:
            self.engine = create_engine(
                database_url,
                pool_size=5,
                max_overflow=10,
                pool_pre_ping=True,
                echo=settings.SQL_DEBUG
            )

        self.SessionLocal = sessionmaker(
            autocommit=False,
            autoflush=False,
            bind=self.engine
        )

        Base.metadata.create_all(bind=self.engine)

        self._initialized = True
        logger.info(
            "Database initialized: %s",
            database_url.split('@')[-1] if '@' in database_url else database_url
        )

    def get_session(self) -> Session:
        """Get a new database session"""
        if not self._initialized:
            self.init_db()
        return self.SessionLocal()

    @contextmanager
    def session_scope(self) -> Generator[Session, None, None]:
        """Provide a transactional scope around a series of operations"""
        session = self.get_session()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def close(self):
        """Close database connection"""
        if self.engine:
            self.engine.dispose()
            self._initialized = False

    def init_database(self):
        """Initialize database with tables and demo staff"""
        self.init_db()
        if settings.SEED_DEMO_DATA:
            with self.session_scope() as db:
                create_initial_data(db)


# Global database manager instance
db_manager = DatabaseManager()


def get_db() -> Generator[Session, None, None]:
    """FastAPI dependency for database sessions"""
    db = db_manager.get_session()
    try:
        yield db
    finally:
        db.close()


def create_initial_data(db: Session):
    """Create demo staff accounts for a new database"""
    from clinical_support.services.auth_service import auth_service

    demo_staff = [
        ("admin", "admin@hospital.com", "admin123", "System Administrator", UserRole.ADMIN, None),
        ("dr.sharma", "dr.sharma@hospital.com", "doctor123", "Dr. Amit Sharma", UserRole.DOCTOR, "General Medicine"),
        ("nurse.jones", "nurse.jones@hospital.com", "nurse123", "Kate Jones", UserRole.NURSE, "Acute Medical Unit"),
        ("desk.lee", "desk.lee@hospital.com", "desk123", "Sam Lee", UserRole.RECEPTIONIST, "Front Desk"),
    ]

    for username, email, password, full_name, role, department in demo_staff:
        existing = db.query(User).filter(User.username == username).first()
        if not existing:
            db.add(User(
                username=username,
                email=email,
                password_hash=auth_service.hash_password(password),  # Change in production!
                full_name=full_name,
                role=role,
                department=department,
                is_active=True
            ))
            logger.info("Created demo %s user (username: %s)", role.value.lower(), username)

    db.commit()
