"""
Pytest configuration and fixtures
"""
import os
import re

# Settings are read at import time; give the app a throwaway environment
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-for-the-clinic-staff-backend")
os.environ.setdefault("ADMIN_BOOTSTRAP_KEY", "test-bootstrap-key")
os.environ.setdefault("APP_ENV", "local")

import pytest
import email_validator
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from clinic_backend.main import app
from clinic_backend.db.base import Base
from clinic_backend.core.deps import get_db
from clinic_backend.core.errors import NotificationError
from clinic_backend.core.security import hash_password
from clinic_backend.models import Role, StaffProfile, User, UserStatus
from clinic_backend.services import token_service
from clinic_backend.services.sms_service import SmsSender, get_sms_sender


# Use in-memory SQLite for testing
SQLALCHEMY_TEST_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)


# Enable foreign keys for SQLite
@event.listens_for(engine, "connect")
def set_sqlite_pragma(dbapi_conn, connection_record):
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Fixtures use the reserved .test domain, which email-validator only accepts in test mode
email_validator.TEST_ENVIRONMENT = True

ADMIN_EMAIL = "admin@clinic.test"
ADMIN_PASSWORD = "Sup3rSecret1"
STAFF_PASSWORD = "Passw0rd!"


class RecordingSmsSender(SmsSender):
    """Keeps outgoing messages in memory instead of calling a gateway"""

    def __init__(self):
        self.messages = []
        self.fail = False

    def send(self, to: str, message: str) -> None:
        if self.fail:
            raise NotificationError()
        self.messages.append((to, message))

    def last_code(self) -> str:
        """The six-digit code in the most recent message"""
        assert self.messages, "no SMS was sent"
        match = re.search(r"\b(\d{6})\b", self.messages[-1][1])
        assert match, f"no code in {self.messages[-1][1]!r}"
        return match.group(1)


@pytest.fixture(scope="function")
def db():
    """Create a fresh database for each test"""
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)

    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def sms_outbox():
    return RecordingSmsSender()


@pytest.fixture(scope="function")
def client(db, sms_outbox):
    """Test client fixture with database and SMS overrides"""
    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_sms_sender] = lambda: sms_outbox
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(db):
    """Factory for credentials with a staff profile"""
    def _make_user(
        email,
        password=STAFF_PASSWORD,
        role=Role.STAFF,
        status=UserStatus.ACTIVE,
        phone="+15550000001",
        name="Test User",
        with_profile=True,
    ):
        user = User(
            email=email,
            password_hash=hash_password(password),
            role=role.value,
            status=status.value,
            phone=phone,
            name=name,
            department="Clinic",
        )
        if with_profile:
            user.staff_profile = StaffProfile(first_name=name, last_name="Tester", job_title="Nurse")
        db.add(user)
        db.commit()
        db.refresh(user)
        return user
    return _make_user


@pytest.fixture
def admin_user(make_user):
    return make_user(ADMIN_EMAIL, password=ADMIN_PASSWORD, role=Role.ADMIN, name="Admin")


@pytest.fixture
def staff_user(make_user):
    return make_user("nurse@clinic.test", name="Nurse")


@pytest.fixture
def auth_headers(db):
    """Bearer headers for a user, minted without going through MFA"""
    def _auth_headers(user):
        token = token_service.issue_token(db, user)
        return {"Authorization": f"Bearer {token}"}
    return _auth_headers


@pytest.fixture
def admin_headers(admin_user, auth_headers):
    return auth_headers(admin_user)


@pytest.fixture
def staff_headers(staff_user, auth_headers):
    return auth_headers(staff_user)
