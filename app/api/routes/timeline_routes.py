"""
Timeline Routes - application stages and the student notification feed

PUT /timeline/applications/{application_id}/stage - Advance an application (company/TPO)
POST /timeline/applications/{application_id}/stages/{stage}/complete - Mark Test/Interview held
GET /timeline/placement-timeline - Student's applications with stage views
GET /timeline/application/{application_id} - One application with notifications
GET /timeline/daily-updates - Notification feed, deadlines, new jobs
PUT /timeline/notifications/read-all - Mark every notification read
PUT /timeline/notifications/{notification_id}/read - Mark one notification read
DELETE /timeline/notifications/{notification_id} - Hide a notification
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from app.core.auth import get_current_student, require_roles
from app.schemas.schemas import (
    APIResponse, NotificationType, StageCompleteRequest, StageUpdateRequest
)
from app.services.application_service import ApplicationService
from app.services.notification_service import NotificationService

router = APIRouter(prefix="/timeline", tags=["Timeline"])

get_stage_actor = require_roles("company", "tpo")


@router.put("/applications/{application_id}/stage", response_model=APIResponse)
def update_stage(application_id: str, body: StageUpdateRequest, actor: dict = Depends(get_stage_actor)):
    """
    Move an application to Test, Shortlisted, Interview, Offer, Placed or Rejected.
    `details` depends on the stage (see the *StageDetails schemas).
    """
    result = ApplicationService().advance(application_id, body.stage, body.details, actor, body.message)
    return APIResponse(message=f"Application moved to {result['new_stage']}", data=result)


@router.post("/applications/{application_id}/stages/{stage}/complete", response_model=APIResponse)
def complete_stage(application_id: str, stage: str, body: Optional[StageCompleteRequest] = None,
                   actor: dict = Depends(get_stage_actor)):
    score = body.score if body else None
    result = ApplicationService().complete_stage(application_id, stage, actor, score)
    return APIResponse(message=f"{stage} marked as completed", data=result)


@router.get("/placement-timeline", response_model=APIResponse)
def placement_timeline(student: dict = Depends(get_current_student)):
    return APIResponse(data=ApplicationService().placement_timeline(student["student_id"]))


@router.get("/application/{application_id}", response_model=APIResponse)
def application_timeline(application_id: str, student: dict = Depends(get_current_student)):
    return APIResponse(data=ApplicationService().application_timeline(application_id, student["student_id"]))


@router.get("/daily-updates", response_model=APIResponse)
def daily_updates(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    type: Optional[NotificationType] = Query(None),
    student: dict = Depends(get_current_student)
):
    return APIResponse(data=NotificationService().daily_updates(student["student_id"], page, limit, type))


@router.put("/notifications/read-all", response_model=APIResponse)
def mark_all_read(student: dict = Depends(get_current_student)):
    count = NotificationService().mark_all_read(student["student_id"])
    return APIResponse(message="All notifications marked as read", data={"updated": count})


@router.put("/notifications/{notification_id}/read", response_model=APIResponse)
def mark_read(notification_id: str, student: dict = Depends(get_current_student)):
    notification = NotificationService().mark_read(notification_id, student["student_id"])
    return APIResponse(message="Notification marked as read", data=notification)


@router.delete("/notifications/{notification_id}", response_model=APIResponse)
def delete_notification(notification_id: str, student: dict = Depends(get_current_student)):
    NotificationService().delete(notification_id, student["student_id"])
    return APIResponse(message="Notification deleted")
