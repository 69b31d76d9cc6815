"""
Shared fixtures.

Every test gets a fresh in-memory mongomock database swapped into
app.db.mongodb, so services and routes run unchanged against it.
"""

import os

# Must be set before app.core.auth builds its CryptContext
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret")

from datetime import datetime, timedelta, timezone

import mongomock
import pytest
from fastapi.testclient import TestClient

from app.db.mongodb import init_mongo_indexes, set_mongo_db
from app.main import app
from app.schemas.schemas import JobCreate, JobTimeline, RegisterRequest
from app.services.approval_service import JobApprovalService
from app.services.identity_service import IdentityService
from app.services.job_service import JobService
from app.services.mongo_service import to_object_id

PASSWORD = "password123"

ROLE_FIELDS = {
    "student": {"roll_number": "CS001", "branch": "CSE", "graduation_year": 2025},
    "company": {"hr_contact": "HR Lead", "contact_number": "9999999999", "industry": "Software"},
    "tpo": {"institute_name": "Test Institute", "contact_number": "8888888888"},
}


@pytest.fixture
def db():
    database = mongomock.MongoClient()["placement_test"]
    set_mongo_db(database)
    init_mongo_indexes()
    yield database
    set_mongo_db(None)


@pytest.fixture
def client(db):
    with TestClient(app) as c:
        yield c


def register(role: str, email: str, name: str = None, **extra) -> dict:
    """Register through the service; returns ids as ObjectIds."""
    fields = {**ROLE_FIELDS[role], **extra}
    user = IdentityService().register(RegisterRequest(
        name=name or email.split("@")[0].title(), email=email, password=PASSWORD, role=role, **fields
    ))
    user["profile_id"] = to_object_id(user["profile_id"])
    return user


def auth_headers(client: TestClient, email: str) -> dict:
    response = client.post("/api/auth/login", json={"email": email, "password": PASSWORD})
    assert response.status_code == 200, response.text
    return {"Authorization": f"Bearer {response.json()['data']['access_token']}"}


def make_job(company_id, days_to_deadline: int = 10, online_test_in_days: int = None, **overrides) -> dict:
    now = datetime.now(timezone.utc)
    timeline = JobTimeline()
    if online_test_in_days is not None:
        timeline = JobTimeline(online_test=now + timedelta(days=online_test_in_days))
    data = {
        "title": "Software Engineer",
        "description": "Backend development",
        "location": "Pune",
        "package": 8.5,
        "eligibility_criteria": ["CSE", "IT"],
        "deadline": now + timedelta(days=days_to_deadline),
        "timeline": timeline,
        **overrides,
    }
    return JobService().create_job(company_id, JobCreate(**data))


@pytest.fixture
def tpo(db):
    return register("tpo", "tpo@college.edu", "Placement Officer")


@pytest.fixture
def company(db):
    return register("company", "hr@acme.com", "Acme Corp")


@pytest.fixture
def student(db):
    return register("student", "asha@college.edu", "Asha")


@pytest.fixture
def open_job(company, tpo):
    """An approved, Open job owned by `company`."""
    job = make_job(company["profile_id"])
    JobApprovalService().approve(job["_id"], tpo["profile_id"])
    return job
