from datetime import timedelta

import pytest

from app.core.errors import AuthorizationError, NotFoundError, StateConflictError, ValidationError
from app.schemas.schemas import ApprovalStatus, JobUpdate
from app.services.application_service import ApplicationService
from app.services.approval_service import JobApprovalService
from app.services.job_service import JobService
from app.services.mongo_service import to_object_id, utcnow

from tests.conftest import make_job


def test_new_job_is_pending_and_closed(company):
    job = make_job(company["profile_id"])
    assert job["approval_status"] == "pending"
    assert job["status"] == "Closed"


def test_company_jobs_list_shows_both_status_axes(company):
    make_job(company["profile_id"])
    listing = JobService().list_company_jobs(company["profile_id"])

    assert listing["total_jobs"] == 1
    job = listing["jobs"][0]
    assert job["approval_status"] == "pending"
    assert job["status_info"]["label"] == "Awaiting TPO approval"
    assert job["application_count"] == 0
    assert job["is_expired"] is False


def test_approve_opens_job(company, tpo, db):
    job = make_job(company["profile_id"])
    JobApprovalService().approve(job["_id"], tpo["profile_id"])

    stored = db.jobs.find_one({"_id": to_object_id(job["_id"])})
    assert stored["approval_status"] == "approved"
    assert stored["status"] == "Open"
    assert stored["approved_by"] == tpo["profile_id"]
    assert stored["approved_at"] is not None


def test_approving_twice_conflicts_and_keeps_state(company, tpo, db):
    job = make_job(company["profile_id"])
    service = JobApprovalService()
    service.approve(job["_id"], tpo["profile_id"])

    with pytest.raises(StateConflictError):
        service.approve(job["_id"], tpo["profile_id"])
    with pytest.raises(StateConflictError):
        service.reject(job["_id"], tpo["profile_id"], "too late")

    assert db.jobs.find_one({"_id": to_object_id(job["_id"])})["approval_status"] == "approved"


def test_reject_requires_reason(company, tpo):
    job = make_job(company["profile_id"])
    with pytest.raises(ValidationError):
        JobApprovalService().reject(job["_id"], tpo["profile_id"], "   ")


def test_reject_records_reason(company, tpo):
    job = make_job(company["profile_id"])
    service = JobApprovalService()
    service.reject(job["_id"], tpo["profile_id"], "Package below policy minimum")

    rejected = service.list_jobs(ApprovalStatus.rejected)
    assert rejected["total"] == 1
    assert rejected["jobs"][0]["rejection_reason"] == "Package below policy minimum"
    assert rejected["jobs"][0]["rejected_by"]["name"] == "Placement Officer"
    assert rejected["jobs"][0]["status"] == "Closed"


def test_approve_unknown_job(tpo):
    with pytest.raises(NotFoundError):
        JobApprovalService().approve("64b000000000000000000000", tpo["profile_id"])
    with pytest.raises(NotFoundError):
        JobApprovalService().approve("not-an-id", tpo["profile_id"])


def test_stats(company, tpo):
    service = JobApprovalService()
    first = make_job(company["profile_id"])
    second = make_job(company["profile_id"])
    make_job(company["profile_id"])
    service.approve(first["_id"], tpo["profile_id"])
    service.reject(second["_id"], tpo["profile_id"], "Incomplete description")

    stats = service.stats()
    assert stats["total"] == {"pending": 1, "approved": 1, "rejected": 1, "total": 3}
    assert stats["recent"]["total"] == 3
    assert stats["percentages"]["approved"] == 33.3


def test_student_listing_shows_only_approved_open_jobs(company, tpo, student):
    approved = make_job(company["profile_id"], title="Approved Role")
    make_job(company["profile_id"], title="Pending Role")
    JobApprovalService().approve(approved["_id"], tpo["profile_id"])

    listing = JobService().list_open_jobs(student["profile_id"])
    assert [j["job_title"] for j in listing["jobs"]] == ["Approved Role"]
    assert listing["jobs"][0]["is_applied"] is False


def test_unapproved_jobs_stay_hidden_even_when_open(company, tpo, student):
    pending = make_job(company["profile_id"], title="Pending Role")
    rejected = make_job(company["profile_id"], title="Rejected Role")
    JobApprovalService().reject(rejected["_id"], tpo["profile_id"], "Missing salary details")

    service = JobService()
    for job in (pending, rejected):
        assert service.update_job(job["_id"], JobUpdate(status="Open"))["status"] == "Open"

    assert service.list_open_jobs(student["profile_id"]) == {"total_jobs": 0, "jobs": []}
    for job in (pending, rejected):
        with pytest.raises(StateConflictError):
            ApplicationService().apply(student["profile_id"], job["_id"])


# ============================================================
# auto-close
# ============================================================

def test_job_closes_once_online_test_date_passes(company, tpo, student, db):
    job = make_job(company["profile_id"], online_test_in_days=2)
    JobApprovalService().approve(job["_id"], tpo["profile_id"])
    service = JobService()

    assert service.list_open_jobs(student["profile_id"])["total_jobs"] == 1

    past = utcnow() - timedelta(hours=1)
    db.jobs.update_one({"_id": to_object_id(job["_id"])}, {"$set": {"timeline.online_test": past}})

    assert service.list_open_jobs(student["profile_id"])["total_jobs"] == 0
    assert db.jobs.find_one({"_id": to_object_id(job["_id"])})["status"] == "Closed"
    # Idempotent
    assert service.close_elapsed_jobs() == 0
    assert db.jobs.find_one({"_id": to_object_id(job["_id"])})["status"] == "Closed"


def test_auto_close_ignores_jobs_without_test_date(open_job, db):
    assert JobService().close_elapsed_jobs() == 0
    assert db.jobs.find_one({"_id": to_object_id(open_job["_id"])})["status"] == "Open"


# ============================================================
# TPO maintenance
# ============================================================

def test_delete_job_cascades_applications(open_job, student, db):
    application = ApplicationService().apply(student["profile_id"], open_job["_id"])
    JobService().delete_job(open_job["_id"])

    assert db.jobs.count_documents({}) == 0
    assert db.applications.count_documents({}) == 0
    stored_student = db.students.find_one({"_id": student["profile_id"]})
    assert to_object_id(application["id"]) not in stored_student["applications"]


def test_student_cannot_view_unapproved_job(company, student):
    job = make_job(company["profile_id"])
    with pytest.raises(AuthorizationError):
        JobService().get_job_for_student(job["_id"], student["profile_id"])
