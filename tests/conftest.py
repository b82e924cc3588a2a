"""
Shared test fixtures: SQLite test database, test client, seeded tenants and auth helpers.
"""

import os
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

# Set JWT_SECRET before importing app modules
os.environ["JWT_SECRET"] = "test-secret-key-for-testing-only"
os.environ["DATABASE_URL"] = "sqlite:///./test.db"

from workorder_portal import models
from workorder_portal.auth import create_access_token, hash_password
from workorder_portal.database import Base, get_db
from workorder_portal.main import app


TEST_DATABASE_URL = "sqlite:///./test.db"
engine = create_engine(TEST_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

PASSWORD = "correct-horse-battery"
PASSWORD_HASH = hash_password(PASSWORD)

VALID_QUOTE = {
    "title": "Leaking roof over unit 4",
    "property_name": "Harbour View Flats",
    "property_address": "12 Harbour Road, Auckland",
    "property_phone": "09 555 0101",
    "description": "Water coming through the ceiling in the kitchen after heavy rain.",
    "contact_person": "Jo Tenant",
    "contact_email": "jo@example.com",
    "work_type": "roofing",
}


def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


app.dependency_overrides[get_db] = override_get_db


@pytest.fixture(autouse=True)
def setup_database():
    """Create all tables before each test, drop after."""
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client():
    """FastAPI test client."""
    return TestClient(app)


@pytest.fixture
def db():
    """Direct database session for test setup/assertions."""
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


def _user(db, client, email, role, full_name, phone=None):
    user = models.User(
        email=email,
        password_hash=PASSWORD_HASH,
        role=role,
        full_name=full_name,
        phone_number=phone,
        client_id=client.id,
    )
    db.add(user)
    return user


@pytest.fixture
def seed(db):
    """Three clients and one user per role. Visionwest is the protected home client."""
    visionwest = models.Client(name="Visionwest", code="VISIONWEST", protected=True, settings={})
    acme = models.Client(name="Acme Housing", code="ACME", settings={})
    other = models.Client(name="Other Trust", code="OTHER", settings={})
    db.add_all([visionwest, acme, other])
    db.flush()

    admin = _user(db, visionwest, "admin@visionwest.example", "admin", "Ada Admin", "021 000 0001")
    staff = _user(db, visionwest, "staff@visionwest.example", "staff", "Sam Staff", "021 000 0002")
    client_admin = _user(db, acme, "manager@acme.example", "client_admin", "Casey Manager", "021 000 0003")
    client_user = _user(db, acme, "tenant@acme.example", "client", "Terry Tenant")
    other_admin = _user(db, other, "manager@other.example", "client_admin", "Olive Other")
    db.commit()

    return SimpleNamespace(
        visionwest=visionwest, acme=acme, other=other,
        admin=admin, staff=staff, client_admin=client_admin,
        client_user=client_user, other_admin=other_admin,
    )


def _headers(user):
    return {"Authorization": f"Bearer {create_access_token(user)}"}


@pytest.fixture
def admin_headers(seed):
    return _headers(seed.admin)


@pytest.fixture
def staff_headers(seed):
    return _headers(seed.staff)


@pytest.fixture
def client_admin_headers(seed):
    return _headers(seed.client_admin)


@pytest.fixture
def client_headers(seed):
    return _headers(seed.client_user)


@pytest.fixture
def other_admin_headers(seed):
    return _headers(seed.other_admin)


@pytest.fixture
def make_quote(client, client_admin_headers, staff_headers):
    """
    Create a quote and walk it forward to ``status`` through the API.

    Supported targets: Draft, Submitted, Quoted, Approved.
    """
    def _make(status="Draft", headers=None, valid_until=None, breakdown=None, **overrides):
        headers = headers or client_admin_headers
        resp = client.post("/api/quotes", json={**VALID_QUOTE, **overrides}, headers=headers)
        assert resp.status_code == 201, resp.json()
        quote = resp.json()["data"]
        if status == "Draft":
            return quote

        resp = client.post(f"/api/quotes/{quote['id']}/submit", headers=headers)
        assert resp.status_code == 200, resp.json()
        quote = resp.json()["data"]
        if status == "Submitted":
            return quote

        payload = {"estimated_cost": 1500, "estimated_hours": 12, "quote_notes": "Replace flashing"}
        if valid_until is not None:
            payload["quote_valid_until"] = valid_until.isoformat()
        if breakdown is not None:
            payload["itemized_breakdown"] = breakdown
        resp = client.patch(f"/api/quotes/{quote['id']}/provide-quote", json=payload, headers=staff_headers)
        assert resp.status_code == 200, resp.json()
        quote = resp.json()["data"]
        if status == "Quoted":
            return quote

        resp = client.patch(f"/api/quotes/{quote['id']}/approve", headers=headers)
        assert resp.status_code == 200, resp.json()
        return resp.json()["data"]

    return _make


@pytest.fixture
def work_order_payload():
    return {
        "job_no": "JOB-1001",
        "property_name": "Harbour View Flats",
        "property_address": "12 Harbour Road, Auckland",
        "property_phone": "09 555 0101",
        "description": "Replace broken window latch in unit 2",
    }
