from datetime import timedelta

import pytest

from app.core.errors import NotFoundError, StateConflictError
from app.schemas.schemas import Compensation, OfferCreate, OfferUpdate
from app.services.application_service import ApplicationService
from app.services.mongo_service import to_object_id, utcnow
from app.services.offer_service import OfferService
from app.services.student_service import StudentService

from tests.conftest import auth_headers, register


@pytest.fixture
def application(open_job, student):
    return ApplicationService().apply(student["profile_id"], open_job["_id"])


@pytest.fixture
def hr(company):
    return {"role": "company", "profile_id": company["profile_id"]}


def offer_for(student, job, **fields):
    return OfferCreate(student_id=str(student["profile_id"]), job_id=job["_id"], **fields)


# ============================================================
# offers
# ============================================================

def test_create_offer_notifies_student(application, open_job, company, student, db):
    offer = OfferService().create_offer(company["profile_id"], offer_for(
        student, open_job, offer_letter_url="https://files.acme.com/offers/asha.pdf",
        package=Compensation(fixed=9, variable=1, other_benefits=["Relocation"]),
    ))

    assert offer["accepted"] is False
    assert offer["application_id"] == application["id"]
    assert offer["package"]["other_benefits"] == ["Relocation"]

    notification = db.notifications.find_one({"student_id": student["profile_id"]})
    assert notification["title"] == "Offer Letter Issued"
    assert notification["type"] == "offer_received"
    assert notification["priority"] == "urgent"


def test_one_offer_per_student_and_job(application, open_job, company, student):
    service = OfferService()
    service.create_offer(company["profile_id"], offer_for(student, open_job))
    with pytest.raises(StateConflictError):
        service.create_offer(company["profile_id"], offer_for(student, open_job))


def test_offer_requires_application(open_job, company, student):
    with pytest.raises(NotFoundError):
        OfferService().create_offer(company["profile_id"], offer_for(student, open_job))


def test_no_offer_on_rejected_application(application, open_job, company, student, hr):
    ApplicationService().advance(application["id"], "Rejected", {}, hr)
    with pytest.raises(StateConflictError):
        OfferService().create_offer(company["profile_id"], offer_for(student, open_job))


def test_other_company_cannot_offer_or_edit(application, open_job, company, student):
    other = register("company", "hr@globex.com", "Globex")
    service = OfferService()
    with pytest.raises(NotFoundError):
        service.create_offer(other["profile_id"], offer_for(student, open_job))

    offer = service.create_offer(company["profile_id"], offer_for(student, open_job))
    with pytest.raises(NotFoundError):
        service.update_offer(other["profile_id"], offer["_id"], OfferUpdate(accepted=True))


def test_update_offer(application, open_job, company, student):
    service = OfferService()
    offer = service.create_offer(company["profile_id"], offer_for(student, open_job))

    updated = service.update_offer(company["profile_id"], offer["_id"], OfferUpdate(
        offer_letter_url="https://files.acme.com/offers/v2.pdf", accepted=True,
    ))
    assert updated["accepted"] is True
    assert updated["offer_letter_url"] == "https://files.acme.com/offers/v2.pdf"
    assert service.list_company_offers(company["profile_id"])[0]["_id"] == offer["_id"]

    with pytest.raises(NotFoundError):
        service.update_offer(company["profile_id"], "64b000000000000000000000", OfferUpdate(accepted=True))


# ============================================================
# placement history
# ============================================================

def test_placement_writes_history_and_accepts_offer(application, open_job, company, student, hr, db):
    offer = OfferService().create_offer(company["profile_id"], offer_for(
        student, open_job, offer_letter_url="https://files.acme.com/offers/asha.pdf",
    ))
    service = ApplicationService()
    service.advance(application["id"], "Offer", {
        "package": {"fixed": 9, "variable": 1},
        "joining_date": (utcnow() + timedelta(days=60)).isoformat(),
    }, hr)
    service.advance(application["id"], "Placed", {
        "joining_date": (utcnow() + timedelta(days=60)).isoformat(), "company_location": "Pune",
    }, hr)

    history = StudentService().placement_history(student["profile_id"])
    assert len(history) == 1
    entry = history[0]
    assert entry["application_id"] == application["id"]
    assert entry["company"]["name"] == "Acme Corp"
    assert entry["job_title"] == "Software Engineer"
    assert entry["package"]["total"] == 10
    assert entry["offer_letter_url"] == "https://files.acme.com/offers/asha.pdf"
    assert entry["status"] == "Active"

    stored_offer = db.offers.find_one({"_id": to_object_id(offer["_id"])})
    assert stored_offer["accepted"] is True
    assert stored_offer["joined_on"] is not None


def test_no_history_before_placement(application, student, hr):
    ApplicationService().advance(application["id"], "Shortlisted", {}, hr)
    assert StudentService().placement_history(student["profile_id"]) == []


# ============================================================
# student application list
# ============================================================

def test_student_applications_list(application, student):
    data = ApplicationService().student_applications(student["profile_id"])
    assert data["total_applications"] == 1
    entry = data["applications"][0]
    assert entry["id"] == application["id"]
    assert entry["application_number"] == application["application_number"]
    assert entry["job"]["company"]["name"] == "Acme Corp"
    assert entry["timeline"]["applied"]["completed"] is True


# ============================================================
# HTTP
# ============================================================

def test_offer_and_history_endpoints(client, application, open_job, company, student):
    company_headers = auth_headers(client, "hr@acme.com")
    student_headers = auth_headers(client, "asha@college.edu")

    created = client.post("/api/company/create-offer", headers=company_headers, json={
        "student_id": str(student["profile_id"]), "job_id": open_job["_id"],
        "package": {"fixed": 8, "variable": 2},
    })
    assert created.status_code == 201
    offer_id = created.json()["data"]["_id"]

    updated = client.put(f"/api/company/update-offer/{offer_id}", headers=company_headers,
                         json={"offer_letter_url": "https://files.acme.com/offers/asha.pdf"})
    assert updated.status_code == 200
    assert updated.json()["data"]["offer_letter_url"] == "https://files.acme.com/offers/asha.pdf"

    assert client.post("/api/company/create-offer", headers=student_headers, json={
        "student_id": str(student["profile_id"]), "job_id": open_job["_id"],
    }).status_code == 403

    applications = client.get("/api/student/applications", headers=student_headers).json()["data"]
    assert applications["total_applications"] == 1
    history = client.get("/api/student/placement-history", headers=student_headers).json()["data"]
    assert history == {"placement_history": []}
