from datetime import datetime, timedelta

import pytest

from app.core.errors import StateConflictError, ValidationError
from app.services import timeline


NOW = datetime(2025, 3, 1, 10, 0, 0)


# ============================================================
# stage progress
# ============================================================

@pytest.mark.parametrize("stage, expected", [
    ("Applied", 17),
    ("Test", 33),
    ("Shortlisted", 50),
    ("Interview", 67),
    ("Offer", 83),
    ("Placed", 100),
    ("Rejected", 0),
])
def test_stage_progress(stage, expected):
    assert timeline.stage_progress(stage) == expected


# ============================================================
# transitions
# ============================================================

def test_forward_transitions_and_skips_are_allowed():
    timeline.validate_transition("Applied", "Test")
    timeline.validate_transition("Applied", "Interview")
    timeline.validate_transition("Interview", "Placed")


def test_backward_transition_is_rejected():
    with pytest.raises(StateConflictError):
        timeline.validate_transition("Interview", "Test")


def test_same_stage_only_for_rescheduling():
    timeline.validate_transition("Test", "Test")
    timeline.validate_transition("Interview", "Interview")
    with pytest.raises(StateConflictError):
        timeline.validate_transition("Offer", "Offer")


@pytest.mark.parametrize("terminal", ["Placed", "Rejected"])
def test_terminal_stages_allow_nothing(terminal):
    with pytest.raises(StateConflictError):
        timeline.validate_transition(terminal, "Rejected")


def test_rejected_reachable_from_any_open_stage():
    for stage in ["Applied", "Test", "Shortlisted", "Interview", "Offer"]:
        timeline.validate_transition(stage, "Rejected")


def test_applied_is_not_an_advance_target():
    with pytest.raises(ValidationError):
        timeline.parse_advance_target("Applied")
    with pytest.raises(ValidationError):
        timeline.parse_advance_target("Hired")


# ============================================================
# stage details
# ============================================================

def test_interview_details_require_fields():
    with pytest.raises(ValidationError) as exc:
        timeline.validate_stage_details("Interview", {"date": "2025-03-10T10:00:00"})
    assert "interviewer" in exc.value.message


def test_interview_details_are_normalized():
    details = timeline.validate_stage_details("Interview", {
        "date": "2025-03-10T10:00:00+05:30",
        "location": "Room 4",
        "type": "Offline",
        "interviewer": "R. Mehta",
    })
    assert details["type"] == "Offline"
    assert details["date"] == datetime(2025, 3, 10, 4, 30)
    assert details["date"].tzinfo is None


def test_offer_total_defaults_to_fixed_plus_variable():
    details = timeline.validate_stage_details("Offer", {
        "package": {"fixed": 10, "variable": 2},
        "joining_date": "2025-07-01T00:00:00",
    })
    assert details["package"]["total"] == 12


def test_rejected_details_are_optional():
    assert timeline.validate_stage_details("Rejected", None) == {}


# ============================================================
# records
# ============================================================

def test_new_timeline_only_applied_completed():
    record = timeline.new_timeline(NOW)
    assert record["applied"] == {"date": NOW, "completed": True}
    assert all(not record[key]["completed"] for key in ["test", "shortlisted", "interview", "offer", "placed"])


def test_scheduled_stage_is_not_completed_on_advance():
    details = {"date": NOW + timedelta(days=3), "location": "Lab 2"}
    record = timeline.build_stage_record("Test", {"date": None, "completed": False}, details, NOW)
    assert record["completed"] is False
    assert record["location"] == "Lab 2"


def test_shortlisted_record_completed_with_default_message():
    record = timeline.build_stage_record("Shortlisted", None, {}, NOW)
    assert record["completed"] is True
    assert record["date"] == NOW
    assert "shortlisted" in record["message"]


def test_next_deadline_is_not_stored_in_stage_record():
    details = {"joining_date": NOW, "company_location": "Pune", "next_deadline": NOW}
    record = timeline.build_stage_record("Placed", None, details, NOW)
    assert "next_deadline" not in record


def test_offer_notification_is_urgent():
    details = {"package": {"fixed": 10, "variable": 2, "total": 12}, "joining_date": NOW}
    notification = timeline.build_stage_notification("Offer", "app1", "SDE", "Acme", details)
    assert notification["priority"] == "urgent"
    assert notification["related_data"]["offer_details"]["package"] == 12
    assert "12" in notification["message"]


def test_rejection_notification_needs_no_action():
    notification = timeline.build_stage_notification("Rejected", "app1", "SDE", "Acme", {})
    assert notification["priority"] == "medium"
    assert notification["action_required"] is False


# ============================================================
# read-side helpers
# ============================================================

def test_days_until():
    assert timeline.days_until(None, NOW) is None
    assert timeline.days_until(NOW + timedelta(hours=30), NOW)["days"] == 2
    assert timeline.days_until(NOW, NOW)["status"] == "today"
    expired = timeline.days_until(NOW - timedelta(days=3), NOW)
    assert expired["status"] == "expired"
    assert expired["days"] == 3


def test_stage_view_marks_overdue_scheduled_stage():
    record = timeline.new_timeline(NOW - timedelta(days=10))
    record["test"] = {"date": NOW - timedelta(days=1), "completed": False, "location": "Lab"}
    stages = {s["stage"]: s for s in timeline.stage_view(record, NOW)}

    assert stages["Applied"]["status"] == "completed"
    assert stages["Test"]["status"] == "overdue"
    assert stages["Test"]["details"] == {"location": "Lab"}
    assert stages["Offer"]["status"] == "pending"
    assert timeline.overall_progress(list(stages.values())) == 17
