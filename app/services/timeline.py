"""
Application Timeline - pure stage rules.

Everything here works on plain values (no database access) so the
application service, the routes and the tests share one definition of:

- the canonical stage order and stage progress
- which transitions are allowed
- what details each stage needs
- how a stage record and its student notification look
- deadline labels and the per-stage view shown to students
"""

from datetime import datetime
from math import ceil
from typing import Any, Dict, List, Optional

from pydantic import ValidationError as PydanticValidationError

from app.core.errors import StateConflictError, ValidationError
from app.schemas.schemas import (
    ApplicationStage, NotificationPriority,
    OnlineTestStageDetails, ShortlistedStageDetails, InterviewStageDetails,
    OfferStageDetails, PlacedStageDetails, RejectedStageDetails
)
from app.services.mongo_service import as_naive_utc


# ============================================================
# STAGE ORDER
# ============================================================

STAGE_ORDER: List[str] = [
    ApplicationStage.applied.value,
    ApplicationStage.test.value,
    ApplicationStage.shortlisted.value,
    ApplicationStage.interview.value,
    ApplicationStage.offer.value,
    ApplicationStage.placed.value,
]

TERMINAL_STAGES = {ApplicationStage.placed.value, ApplicationStage.rejected.value}

# Stages that are scheduled first and completed by a separate signal
SCHEDULED_STAGES = {ApplicationStage.test.value, ApplicationStage.interview.value}

# Stages a company/TPO may move an application to (Applied comes from apply())
ADVANCE_TARGETS = STAGE_ORDER[1:] + [ApplicationStage.rejected.value]

TIMELINE_KEYS: Dict[str, str] = {
    "Applied": "applied",
    "Test": "test",
    "Shortlisted": "shortlisted",
    "Interview": "interview",
    "Offer": "offer",
    "Placed": "placed",
    "Rejected": "rejected",
}

STAGE_DETAIL_MODELS = {
    "Test": OnlineTestStageDetails,
    "Shortlisted": ShortlistedStageDetails,
    "Interview": InterviewStageDetails,
    "Offer": OfferStageDetails,
    "Placed": PlacedStageDetails,
    "Rejected": RejectedStageDetails,
}


def stage_progress(stage: str) -> int:
    """
    Percentage of the canonical pipeline reached.
    Rejected has no position in the order and reports 0.
    """
    if stage not in STAGE_ORDER:
        return 0
    return int(round((STAGE_ORDER.index(stage) + 1) / len(STAGE_ORDER) * 100))


def parse_advance_target(value: str) -> str:
    if value not in ADVANCE_TARGETS:
        raise ValidationError(
            f"Invalid stage '{value}'. Must be one of: {', '.join(ADVANCE_TARGETS)}"
        )
    return value


def validate_transition(current: str, target: str) -> None:
    """Raise StateConflictError unless current -> target is allowed."""
    if current in TERMINAL_STAGES:
        raise StateConflictError(f"Application is already {current}; no further stage changes allowed")

    if target == ApplicationStage.rejected.value:
        return

    current_index = STAGE_ORDER.index(current)
    target_index = STAGE_ORDER.index(target)

    if target_index < current_index:
        raise StateConflictError(f"Cannot move application back from {current} to {target}")
    # Rescheduling a test or interview keeps the same stage
    if target_index == current_index and target not in SCHEDULED_STAGES:
        raise StateConflictError(f"Application is already at stage {current}")


def _normalize(value: Any) -> Any:
    if isinstance(value, datetime):
        return as_naive_utc(value)
    if isinstance(value, dict):
        return {k: _normalize(v) for k, v in value.items()}
    return value


def validate_stage_details(stage: str, details: Optional[dict]) -> dict:
    """
    Validate the stage-specific payload and return it as a plain dict
    (enums as values, datetimes as naive UTC, offer total filled in).
    """
    model = STAGE_DETAIL_MODELS[stage]
    try:
        parsed = model.model_validate(details or {})
    except PydanticValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
        )
        raise ValidationError(f"Invalid details for stage {stage}: {problems}")

    data = _normalize(parsed.model_dump(mode="python", exclude_none=True))
    if "type" in data:
        data["type"] = parsed.type.value

    if stage == ApplicationStage.offer.value:
        package = data["package"]
        if package.get("total") is None:
            package["total"] = package["fixed"] + package.get("variable", 0)
    return data


# ============================================================
# TIMELINE RECORDS
# ============================================================

def new_timeline(now: datetime) -> dict:
    """Timeline for a fresh application: only Applied is completed."""
    timeline = {key: {"date": None, "completed": False} for key in TIMELINE_KEYS.values()}
    timeline["applied"] = {"date": now, "completed": True}
    return timeline


def build_stage_record(stage: str, existing: Optional[dict], details: dict,
                       now: datetime, message: Optional[str] = None) -> dict:
    """Merge validated details into the stage's timeline sub-record."""
    record = dict(existing or {})
    fields = {k: v for k, v in details.items() if k != "next_deadline"}

    if stage == "Test":
        record.update(fields)
        record["completed"] = False
    elif stage == "Interview":
        record.update(fields)
        record["completed"] = False
    elif stage == "Shortlisted":
        record.update(date=now, completed=True,
                      message=message or "Congratulations! You have been shortlisted.")
    elif stage == "Offer":
        record.update(fields)
        record.update(date=now, completed=True)
    elif stage == "Placed":
        record.update(fields)
        record.update(date=now, completed=True)
    elif stage == "Rejected":
        record.update(date=now, completed=True,
                      reason=fields.get("reason") or message)
    return record


def build_stage_notification(stage: str, application_id: Any, job_title: str,
                             company_name: str, details: dict,
                             message: Optional[str] = None) -> dict:
    """Title, message, priority and related data for a stage transition."""
    notification = {
        "priority": NotificationPriority.high.value,
        "action_required": True,
        "action_url": f"/applications/{application_id}",
        "related_data": {"application_id": application_id},
    }

    if stage == "Test":
        notification["title"] = "Test Scheduled"
        notification["message"] = (
            f"Test scheduled for {job_title} on {details['date']:%d %b %Y} at {details['location']}"
        )
        notification["related_data"]["deadline_date"] = details["date"]
    elif stage == "Shortlisted":
        notification["title"] = "Congratulations! Shortlisted"
        notification["message"] = message or f"You have been shortlisted for {job_title}"
    elif stage == "Interview":
        notification["title"] = "Interview Scheduled"
        notification["message"] = (
            f"Interview scheduled for {job_title} on {details['date']:%d %b %Y}"
        )
        notification["related_data"]["interview_date"] = details["date"]
        notification["related_data"]["interview_location"] = details["location"]
    elif stage == "Offer":
        total = details["package"]["total"]
        notification["title"] = "Offer Received!"
        notification["message"] = (
            f"Congratulations! You have received an offer for {job_title} with package ₹{total:g} LPA"
        )
        notification["priority"] = NotificationPriority.urgent.value
        notification["related_data"]["offer_details"] = {
            "package": total,
            "joining_date": details["joining_date"],
            "company_name": company_name,
        }
    elif stage == "Placed":
        notification["title"] = "Placement Achieved!"
        notification["message"] = f"Congratulations! You have been successfully placed at {company_name}"
        notification["priority"] = NotificationPriority.urgent.value
    elif stage == "Rejected":
        notification["title"] = "Application Update"
        notification["message"] = message or (
            f"Unfortunately, your application for {job_title} was not selected this time"
        )
        notification["priority"] = NotificationPriority.medium.value
        notification["action_required"] = False
    return notification


# ============================================================
# READ-SIDE VIEWS
# ============================================================

STATUS_DETAILS = {
    "Applied": {"description": "Your application has been submitted and is under review", "color": "blue"},
    "Test": {"description": "A test has been scheduled for this application", "color": "teal"},
    "Shortlisted": {"description": "Congratulations! You have been shortlisted for the next round", "color": "green"},
    "Interview": {"description": "You have been selected for an interview. Please prepare well!", "color": "orange"},
    "Offer": {"description": "Excellent! You have received a job offer", "color": "purple"},
    "Placed": {"description": "Congratulations! You have been successfully placed", "color": "success"},
    "Rejected": {"description": "Unfortunately, your application was not selected this time", "color": "red"},
}


def status_details(status: str) -> dict:
    return STATUS_DETAILS.get(status, {"description": "Status information not available", "color": "gray"})


def days_until(deadline: Optional[datetime], now: datetime) -> Optional[dict]:
    """Deadline label using whole days, rounded up."""
    if deadline is None:
        return None
    diff_days = ceil((as_naive_utc(deadline) - now).total_seconds() / 86400)

    if diff_days < 0:
        return {"days": abs(diff_days), "status": "expired", "message": f"Expired {abs(diff_days)} day(s) ago"}
    if diff_days == 0:
        return {"days": 0, "status": "today", "message": "Deadline is today!"}
    return {"days": diff_days, "status": "remaining", "message": f"{diff_days} day(s) remaining"}


def _scheduled_status(record: dict, now: datetime) -> str:
    if record.get("completed"):
        return "completed"
    if record.get("date") and record["date"] < now:
        return "overdue"
    return "pending"


def stage_view(timeline: dict, now: datetime) -> List[dict]:
    """Per-stage entries for the student's placement timeline."""
    stages = []
    for stage in STAGE_ORDER:
        record = timeline.get(TIMELINE_KEYS[stage]) or {}
        if stage == "Applied":
            status = "completed"
        elif stage in SCHEDULED_STAGES:
            status = _scheduled_status(record, now)
        else:
            status = "completed" if record.get("completed") else "pending"

        stages.append({
            "stage": stage,
            "date": record.get("date"),
            "completed": bool(record.get("completed")),
            "status": status,
            "details": {k: v for k, v in record.items() if k not in ("date", "completed")},
        })
    return stages


def overall_progress(stages: List[dict]) -> int:
    """Share of stages actually completed (not just reached)."""
    if not stages:
        return 0
    completed = sum(1 for s in stages if s["completed"])
    return int(round(completed / len(stages) * 100))
