import os
import tempfile

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

# Set testing environment before the application is imported
os.environ["TESTING"] = "1"
os.environ["TEST_DATABASE_URL"] = "sqlite:///./test.db"
os.environ["STORAGE_DIR"] = tempfile.mkdtemp(prefix="portal-storage-")

from portal.main import app  # noqa: E402
from portal.core.database import get_db, get_redis, Base  # noqa: E402

SQLALCHEMY_DATABASE_URL = "sqlite:///./test.db"
engine = create_engine(
    SQLALCHEMY_DATABASE_URL, connect_args={"check_same_thread": False}
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

def override_get_db():
    try:
        db = TestingSessionLocal()
        yield db
    finally:
        db.close()

app.dependency_overrides[get_db] = override_get_db

PASSWORD = "TestPassword123"

@pytest.fixture(scope="function")
def test_db():
    Base.metadata.create_all(bind=engine)
    # Rate limits, OAuth states and session markers live in the Redis mock
    get_redis().data.clear()
    yield
    Base.metadata.drop_all(bind=engine)

@pytest.fixture
def redis_mock():
    return get_redis()

@pytest.fixture
def db_session(test_db):
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()

@pytest.fixture
def client():
    with TestClient(app, base_url="http://testserver") as test_client:
        yield test_client

def register_and_login(client, email, role=None, full_name=None):
    """Create an account and return ``(user_id, auth headers)``."""
    payload = {"email": email, "password": PASSWORD}
    if role:
        payload["role"] = role
    if full_name:
        payload["full_name"] = full_name

    response = client.post("/api/v1/auth/register", json=payload)
    assert response.status_code == 201, response.text

    login = client.post("/api/v1/auth/login", json={"email": email, "password": PASSWORD})
    assert login.status_code == 200, login.text
    return response.json()["id"], {"Authorization": f"Bearer {login.json()['access_token']}"}

def complete_onboarding(client, headers, role, full_name, details=None):
    """Walk a fresh account through every onboarding step."""
    steps = [
        ("/api/v1/onboarding/role", {"role": role}),
        ("/api/v1/onboarding/basic", {"full_name": full_name, "sex": "female", "birthdate": "1985-04-12"}),
        ("/api/v1/onboarding/contact", {"phone": "+34 600 123 456"}),
        (f"/api/v1/onboarding/{role}", details or {}),
    ]
    for path, body in steps:
        response = client.post(path, json=body, headers=headers)
        assert response.status_code == 200, response.text

    response = client.post("/api/v1/onboarding/complete", headers=headers)
    assert response.status_code == 200, response.text

@pytest.fixture
def make_doctor(client, test_db):
    def _make(email="doctor@example.com", full_name="Ana Ruiz", specialty="Cardiology",
              license="LIC-1001", clinic_name="Heart Clinic"):
        user_id, headers = register_and_login(client, email)
        complete_onboarding(client, headers, "doctor", full_name, {
            "specialty": specialty,
            "professional_license": license,
            "years_experience": 12,
            "clinic_name": clinic_name
        })
        return {"id": user_id, "headers": headers}
    return _make

@pytest.fixture
def make_patient(client, test_db):
    def _make(email="patient@example.com", full_name="Luis Perez"):
        user_id, headers = register_and_login(client, email)
        complete_onboarding(client, headers, "patient", full_name, {
            "blood_type": "O+",
            "allergies": "Penicillin"
        })
        return {"id": user_id, "headers": headers}
    return _make

@pytest.fixture
def doctor(make_doctor):
    return make_doctor()

@pytest.fixture
def patient(make_patient):
    return make_patient()
