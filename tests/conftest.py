import os
from datetime import datetime, timedelta

# Settings are read at import time
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SUPABASE_JWT_SECRET"] = "test-secret"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["SECURITY_HEADERS_ENABLED"] = "false"
os.environ["DB_LOG_SLOW_QUERIES"] = "false"
for name in (
    "TWILIO_ACCOUNT_SID",
    "TWILIO_AUTH_TOKEN",
    "TWILIO_PHONE_NUMBER",
    "TWILIO_WEBHOOK_URL",
    "RESEND_API_KEY",
):
    os.environ.pop(name, None)

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from jose import jwt  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from commandx import email_service  # noqa: E402
from commandx.database import Base, get_db  # noqa: E402
from commandx.domain.onboarding.router import public_token_limit, resend_link_limit  # noqa: E402
from commandx.main import app  # noqa: E402
from commandx.models import Customer, Personnel, Project, User, UserRole, Vendor  # noqa: E402

JWT_SECRET = "test-secret"


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def client(session_factory):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[public_token_limit] = lambda: None
    app.dependency_overrides[resend_link_limit] = lambda: None
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def sent_emails(monkeypatch):
    """Capture outgoing email instead of calling Resend"""
    sent = []

    async def fake_send_email(to, subject, **kwargs):
        sent.append({"to": to, "subject": subject, **kwargs})
        return {"id": f"email-{len(sent)}"}

    monkeypatch.setattr(email_service, "send_email", fake_send_email)
    return sent


def make_token(auth_uid: str, email: str, expires_in: int = 3600) -> str:
    claims = {
        "sub": auth_uid,
        "email": email,
        "aud": "authenticated",
        "exp": datetime.utcnow() + timedelta(seconds=expires_in),
    }
    return jwt.encode(claims, JWT_SECRET, algorithm="HS256")


def auth_headers(user: User) -> dict:
    return {"Authorization": f"Bearer {make_token(user.auth_uid, user.email)}"}


def create_user(db, email: str, *roles: str) -> User:
    user = User(auth_uid=f"uid-{email}", email=email, full_name=email.split("@")[0].title())
    user.roles = [UserRole(role=role) for role in roles]
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def admin_user(db):
    return create_user(db, "admin@example.com", "admin")


@pytest.fixture
def manager_user(db):
    return create_user(db, "manager@example.com", "manager")


@pytest.fixture
def worker_user(db):
    return create_user(db, "worker@example.com", "personnel")


@pytest.fixture
def admin_headers(admin_user):
    return auth_headers(admin_user)


@pytest.fixture
def manager_headers(manager_user):
    return auth_headers(manager_user)


@pytest.fixture
def worker_headers(worker_user):
    return auth_headers(worker_user)


@pytest.fixture
def worker(db, worker_user):
    """Personnel record linked to the worker login"""
    personnel = Personnel(
        first_name="Wendy",
        last_name="Worker",
        email="worker@example.com",
        phone="+15551234567",
        hourly_rate=40,
        pay_rate=25,
        user_id=worker_user.id,
        status="active",
    )
    db.add(personnel)
    db.commit()
    db.refresh(personnel)
    return personnel


@pytest.fixture
def customer(db):
    customer = Customer(name="Acme Builders", email="office@acme.example", phone="+15559876543")
    db.add(customer)
    db.commit()
    db.refresh(customer)
    return customer


@pytest.fixture
def vendor(db):
    vendor = Vendor(name="Supply Co", email="sales@supply.example", phone="+15550001111")
    db.add(vendor)
    db.commit()
    db.refresh(vendor)
    return vendor


@pytest.fixture
def project(db, customer):
    """Time-clock project with a quarter-mile geofence"""
    project = Project(
        name="Main Street Renovation",
        customer_id=customer.id,
        site_lat=40.0,
        site_lng=-75.0,
        geofence_radius_miles=0.25,
        require_clock_location=True,
        time_clock_enabled=True,
    )
    db.add(project)
    db.commit()
    db.refresh(project)
    return project
