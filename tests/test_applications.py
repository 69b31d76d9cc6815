from datetime import timedelta

import pytest

from app.core.errors import AuthorizationError, NotFoundError, StateConflictError, ValidationError
from app.services.application_service import ApplicationService
from app.services.mongo_service import to_object_id, utcnow

from tests.conftest import make_job, register


def interview_details():
    return {
        "date": (utcnow() + timedelta(days=5)).isoformat(),
        "location": "Conference Room B",
        "type": "Offline",
        "interviewer": "Ravi Shah",
        "next_deadline": (utcnow() + timedelta(days=4)).isoformat(),
    }


def placed_details():
    return {"joining_date": (utcnow() + timedelta(days=60)).isoformat(), "company_location": "Pune"}


@pytest.fixture
def application(open_job, student):
    return ApplicationService().apply(student["profile_id"], open_job["_id"])


@pytest.fixture
def hr(company):
    return {"role": "company", "profile_id": company["profile_id"]}


# ============================================================
# apply
# ============================================================

def test_apply_creates_application_at_applied(application, student, open_job, db):
    stored = db.applications.find_one({"_id": to_object_id(application["id"])})

    assert stored["status"] == stored["current_stage"] == "Applied"
    assert stored["stage_progress"] == 17
    assert stored["timeline"]["applied"]["completed"] is True
    assert stored["timeline"]["offer"]["completed"] is False
    assert application["application_number"].startswith("APP-")

    assert stored["_id"] in db.students.find_one({"_id": student["profile_id"]})["applications"]
    assert stored["_id"] in db.jobs.find_one({"_id": to_object_id(open_job["_id"])})["applications"]


def test_apply_twice_conflicts(application, student, open_job, db):
    with pytest.raises(StateConflictError):
        ApplicationService().apply(student["profile_id"], open_job["_id"])
    assert db.applications.count_documents({}) == 1


def test_cannot_apply_to_pending_job(company, student):
    job = make_job(company["profile_id"])
    with pytest.raises(StateConflictError):
        ApplicationService().apply(student["profile_id"], job["_id"])


def test_cannot_apply_to_missing_job(student):
    with pytest.raises(NotFoundError):
        ApplicationService().apply(student["profile_id"], "64b000000000000000000000")


# ============================================================
# advance
# ============================================================

def test_advance_to_interview(application, hr, student, db):
    result = ApplicationService().advance(application["id"], "Interview", interview_details(), hr)

    assert result["new_stage"] == "Interview"
    assert result["stage_progress"] == 67

    stored = db.applications.find_one({"_id": to_object_id(application["id"])})
    assert stored["current_stage"] == stored["status"] == "Interview"
    assert stored["timeline"]["interview"]["interviewer"] == "Ravi Shah"
    assert stored["timeline"]["interview"]["completed"] is False
    assert stored["next_deadline"] is not None
    # Earlier stage records untouched
    assert stored["timeline"]["applied"]["completed"] is True

    notifications = list(db.notifications.find({"student_id": student["profile_id"]}))
    assert len(notifications) == 1
    assert notifications[0]["type"] == "application_update"
    assert notifications[0]["related_data"]["application_id"] == stored["_id"]

    assert db.students.find_one({"_id": student["profile_id"]})["placement_status"] == "In Process"


def test_advance_to_placed_updates_student(application, hr, student, db):
    service = ApplicationService()
    service.advance(application["id"], "Offer", {
        "package": {"fixed": 9, "variable": 1},
        "joining_date": (utcnow() + timedelta(days=60)).isoformat(),
    }, hr)
    result = service.advance(application["id"], "Placed", placed_details(), hr)

    assert result["stage_progress"] == 100
    stored_student = db.students.find_one({"_id": student["profile_id"]})
    assert stored_student["placement_status"] == "Placed"
    assert stored_student["placement_details"]["package"]["total"] == 10

    titles = [n["title"] for n in db.notifications.find({"student_id": student["profile_id"]})]
    assert titles.count("Placement Achieved!") == 1
    assert titles.count("Offer Received!") == 1


def test_backward_move_conflicts(application, hr):
    service = ApplicationService()
    service.advance(application["id"], "Interview", interview_details(), hr)
    with pytest.raises(StateConflictError):
        service.advance(application["id"], "Test", {"date": utcnow().isoformat(), "location": "Lab"}, hr)


def test_placed_is_terminal(application, hr):
    service = ApplicationService()
    service.advance(application["id"], "Placed", placed_details(), hr)
    with pytest.raises(StateConflictError):
        service.advance(application["id"], "Rejected", {"reason": "late"}, hr)


def test_rejection_keeps_placement_status(application, hr, student, db):
    result = ApplicationService().advance(application["id"], "Rejected", {}, hr, message="Position filled")

    assert result["stage_progress"] == 0
    stored = db.applications.find_one({"_id": to_object_id(application["id"])})
    assert stored["timeline"]["rejected"]["reason"] == "Position filled"
    assert db.students.find_one({"_id": student["profile_id"]})["placement_status"] == "Not Placed"


def test_invalid_stage_and_details(application, hr):
    service = ApplicationService()
    with pytest.raises(ValidationError):
        service.advance(application["id"], "Hired", {}, hr)
    with pytest.raises(ValidationError):
        service.advance(application["id"], "Interview", {"location": "Room 1"}, hr)


def test_other_company_cannot_advance(application):
    other = register("company", "hr@globex.com", "Globex")
    with pytest.raises(AuthorizationError):
        ApplicationService().advance(
            application["id"], "Shortlisted", {}, {"role": "company", "profile_id": other["profile_id"]}
        )


def test_tpo_can_advance(application, tpo):
    result = ApplicationService().advance(
        application["id"], "Shortlisted", {}, {"role": "tpo", "profile_id": tpo["profile_id"]}
    )
    assert result["stage_progress"] == 50


# ============================================================
# complete_stage
# ============================================================

def test_complete_test_with_score(application, hr, db):
    service = ApplicationService()
    service.advance(application["id"], "Test", {
        "date": (utcnow() + timedelta(days=1)).isoformat(), "location": "Lab 3"
    }, hr)
    service.complete_stage(application["id"], "Test", hr, score=78)

    record = db.applications.find_one({"_id": to_object_id(application["id"])})["timeline"]["test"]
    assert record["completed"] is True
    assert record["score"] == 78

    with pytest.raises(StateConflictError):
        service.complete_stage(application["id"], "Test", hr)


def test_complete_requires_scheduled_stage(application, hr):
    service = ApplicationService()
    with pytest.raises(StateConflictError):
        service.complete_stage(application["id"], "Interview", hr)
    with pytest.raises(ValidationError):
        service.complete_stage(application["id"], "Offer", hr)


def test_reschedule_before_completion(application, hr, db):
    service = ApplicationService()
    service.advance(application["id"], "Test", {"date": utcnow().isoformat(), "location": "Lab 1"}, hr)
    service.advance(application["id"], "Test", {"date": utcnow().isoformat(), "location": "Lab 2"}, hr)

    record = db.applications.find_one({"_id": to_object_id(application["id"])})["timeline"]["test"]
    assert record["location"] == "Lab 2"
    assert record["completed"] is False


def test_completed_test_cannot_be_rescheduled(application, hr, db):
    service = ApplicationService()
    service.advance(application["id"], "Test", {"date": utcnow().isoformat(), "location": "Lab 1"}, hr)
    service.complete_stage(application["id"], "Test", hr, score=90)

    with pytest.raises(StateConflictError):
        service.advance(application["id"], "Test", {"date": utcnow().isoformat(), "location": "Lab 4"}, hr)

    record = db.applications.find_one({"_id": to_object_id(application["id"])})["timeline"]["test"]
    assert record["completed"] is True
    assert record["score"] == 90
    assert record["location"] == "Lab 1"


# ============================================================
# views
# ============================================================

def test_placement_timeline_statistics(application, hr, student):
    ApplicationService().advance(application["id"], "Interview", interview_details(), hr)
    data = ApplicationService().placement_timeline(student["profile_id"])

    assert data["statistics"]["total_applications"] == 1
    assert data["statistics"]["active_applications"] == 1
    entry = data["timeline_data"][0]
    assert entry["current_stage"] == "Interview"
    assert entry["job"]["company"]["name"] == "Acme Corp"
    assert [s["stage"] for s in entry["timeline"]] == ["Applied", "Test", "Shortlisted", "Interview", "Offer", "Placed"]


def test_application_timeline_is_owner_only(application, student):
    data = ApplicationService().application_timeline(application["id"], student["profile_id"])
    assert data["application"]["status"] == "Applied"

    other = register("student", "ben@college.edu", "Ben", roll_number="CS002")
    with pytest.raises(NotFoundError):
        ApplicationService().application_timeline(application["id"], other["profile_id"])


def test_my_applications_summary(application, student):
    data = ApplicationService().my_applications(student["profile_id"])
    assert data["total_applications"] == 1
    assert data["summary"]["applied"] == 1
    assert data["summary"]["rejected"] == 0
    assert data["applications"][0]["status_details"]["color"] == "blue"


def test_company_sees_only_own_job_applications(application, open_job, company, student):
    data = ApplicationService().company_applications(company["profile_id"], open_job["_id"])
    assert data["total_applications"] == 1
    assert data["applications"][0]["student"]["name"] == "Asha"

    other = register("company", "hr@globex.com", "Globex")
    with pytest.raises(NotFoundError):
        ApplicationService().company_applications(other["profile_id"], open_job["_id"])
