"""
Application Engine

Tracks a student's application to a job through the fixed stage order

    Applied -> Test -> Shortlisted -> Interview -> Offer -> Placed
                     (Rejected reachable from any non-terminal stage)

Writes come from two places:
- apply(): the student creates the application at Applied
- advance() / complete_stage(): the owning company or a TPO moves it on

Every advance recomputes stage_progress, merges the stage details into the
timeline and emits exactly one notification to the student. Reaching
Placed also records the student's placement history. The stage
rules themselves live in app.services.timeline.
"""

import logging
from typing import Optional

from bson import ObjectId
from pymongo.collection import Collection
from pymongo.errors import DuplicateKeyError

from app.core.errors import AuthorizationError, NotFoundError, StateConflictError, ValidationError
from app.db.mongodb import get_collection, COLLECTIONS
from app.schemas.schemas import (
    ApplicationStage, ApprovalStatus, JobStatus, NotificationType, PlacementStatus
)
from app.services import timeline
from app.services.job_service import JobService
from app.services.mongo_service import serialize_doc, to_object_id, utcnow
from app.services.notification_service import NotificationService

logger = logging.getLogger(__name__)


def application_number(application_id: ObjectId) -> str:
    return f"APP-{str(application_id)[-6:].upper()}"


class ApplicationService:

    def __init__(self):
        self.applications: Collection = get_collection(COLLECTIONS["applications"])
        self.students: Collection = get_collection(COLLECTIONS["students"])
        self.offers: Collection = get_collection(COLLECTIONS["offers"])
        self.placement_history: Collection = get_collection(COLLECTIONS["placement_history"])
        self.job_service = JobService()
        self.notifications = NotificationService()

    def get_application(self, application_id) -> dict:
        application = self.applications.find_one({"_id": to_object_id(application_id, "Application")})
        if not application:
            raise NotFoundError("Application not found")
        return application

    # ------------------------------------------------------------
    # Apply
    # ------------------------------------------------------------

    def apply(self, student_id: ObjectId, job_id) -> dict:
        """
        Create the application at stage Applied.

        Raises:
            NotFoundError: job does not exist
            StateConflictError: job not open for applications, or already applied
        """
        self.job_service.close_elapsed_jobs()
        job = self.job_service.get_job(job_id)
        if (job["approval_status"] != ApprovalStatus.approved.value
                or job["status"] != JobStatus.open.value):
            raise StateConflictError("Job is not accepting applications")

        if self.applications.find_one({"student_id": student_id, "job_id": job["_id"]}):
            raise StateConflictError("Already applied for this job")

        now = utcnow()
        stage = ApplicationStage.applied.value
        application = {
            "student_id": student_id,
            "job_id": job["_id"],
            "status": stage,
            "current_stage": stage,
            "stage_progress": timeline.stage_progress(stage),
            "timeline": timeline.new_timeline(now),
            "applied_at": now,
            "last_updated": now,
            "next_deadline": None,
            "notes": [],
            "documents": [],
        }
        try:
            application["_id"] = self.applications.insert_one(application).inserted_id
        except DuplicateKeyError:
            raise StateConflictError("Already applied for this job")

        self.students.update_one({"_id": student_id}, {"$push": {"applications": application["_id"]}})
        self.job_service.jobs.update_one({"_id": job["_id"]}, {"$push": {"applications": application["_id"]}})

        logger.info("Student %s applied to job %s", student_id, job["_id"])
        return {
            "id": str(application["_id"]),
            "application_number": application_number(application["_id"]),
            "status": stage,
            "stage_progress": application["stage_progress"],
            "applied_at": now,
        }

    # ------------------------------------------------------------
    # Stage transitions
    # ------------------------------------------------------------

    def _check_actor(self, actor: dict, job: dict) -> None:
        """Only the company owning the job, or a TPO, may move an application."""
        if actor["role"] == "tpo":
            return
        if actor["role"] == "company" and actor["profile_id"] == job["company_id"]:
            return
        raise AuthorizationError("Only the hiring company or a TPO can update this application")

    def advance(self, application_id, stage: str, details: Optional[dict], actor: dict,
                message: Optional[str] = None) -> dict:
        """
        Move an application to `stage`.

        Raises:
            ValidationError: unknown stage or bad details for it
            NotFoundError: application (or its job) missing
            AuthorizationError: actor may not touch this application
            StateConflictError: transition not allowed from the current stage
        """
        target = timeline.parse_advance_target(stage)
        application = self.get_application(application_id)
        job = self.job_service.get_job(application["job_id"])
        self._check_actor(actor, job)

        current = application["current_stage"]
        timeline.validate_transition(current, target)
        stage_details = timeline.validate_stage_details(target, details)

        now = utcnow()
        key = timeline.TIMELINE_KEYS[target]
        if target == current and (application["timeline"].get(key) or {}).get("completed"):
            raise StateConflictError(f"{target} is already completed and cannot be rescheduled")
        record = timeline.build_stage_record(
            target, application["timeline"].get(key), stage_details, now, message
        )
        changes = {
            f"timeline.{key}": record,
            "status": target,
            "current_stage": target,
            "stage_progress": timeline.stage_progress(target),
            "last_updated": now,
        }
        if stage_details.get("next_deadline"):
            changes["next_deadline"] = stage_details["next_deadline"]

        # Guard on the stage we validated against
        result = self.applications.update_one(
            {"_id": application["_id"], "current_stage": current},
            {"$set": changes}
        )
        if result.modified_count == 0:
            raise StateConflictError("Application was updated by someone else, reload and retry")

        logger.info("Application %s moved %s -> %s by %s", application["_id"], current, target, actor["role"])

        self._update_placement_status(application, job, target, record)

        company = self.job_service.companies.find_one({"_id": job["company_id"]})
        company_name = company["name"] if company else "the company"
        notification = timeline.build_stage_notification(
            target, application["_id"], job["title"], company_name, stage_details, message
        )
        self.notifications.notify(
            application["student_id"], type=NotificationType.application_update, **notification
        )

        return {
            "application_id": str(application["_id"]),
            "new_stage": target,
            "stage_progress": changes["stage_progress"],
            "next_deadline": changes.get("next_deadline", application.get("next_deadline")),
        }

    def _update_placement_status(self, application: dict, job: dict, stage: str, record: dict) -> None:
        student_id = application["student_id"]
        if stage == ApplicationStage.placed.value:
            now = utcnow()
            offer = application["timeline"].get("offer") or {}
            letter = self.offers.find_one({"student_id": student_id, "job_id": job["_id"]}) or {}
            package = offer.get("package") or letter.get("package")

            self.students.update_one({"_id": student_id}, {"$set": {
                "placement_status": PlacementStatus.placed.value,
                "placement_details": {
                    "company_id": job["company_id"],
                    "job_id": job["_id"],
                    "package": package,
                    "joining_date": record.get("joining_date"),
                },
                "updated_at": now,
            }})
            self.placement_history.insert_one({
                "student_id": student_id,
                "company_id": job["company_id"],
                "job_id": job["_id"],
                "application_id": application["_id"],
                "placement_date": now,
                "package": package,
                "joining_date": record.get("joining_date"),
                "company_location": record.get("company_location"),
                "offer_letter_url": offer.get("offer_letter_url") or letter.get("offer_letter_url"),
                "status": "Active",
                "created_at": now,
            })
            if letter:
                self.offers.update_one({"_id": letter["_id"]}, {"$set": {
                    "accepted": True,
                    "joined_on": record.get("joining_date"),
                    "updated_at": now,
                }})
        elif stage != ApplicationStage.rejected.value:
            self.students.update_one(
                {"_id": student_id, "placement_status": PlacementStatus.not_placed.value},
                {"$set": {"placement_status": PlacementStatus.in_process.value}}
            )

    def complete_stage(self, application_id, stage: str, actor: dict,
                       score: Optional[float] = None) -> dict:
        """
        Mark a scheduled Test or Interview as actually held.
        A score may be recorded for a Test.
        """
        if stage not in timeline.SCHEDULED_STAGES:
            raise ValidationError(
                f"Only {', '.join(sorted(timeline.SCHEDULED_STAGES))} stages need explicit completion"
            )
        if score is not None and stage != ApplicationStage.test.value:
            raise ValidationError("A score can only be recorded for a Test")

        application = self.get_application(application_id)
        job = self.job_service.get_job(application["job_id"])
        self._check_actor(actor, job)

        key = timeline.TIMELINE_KEYS[stage]
        record = application["timeline"].get(key) or {}
        if not record.get("date"):
            raise StateConflictError(f"{stage} has not been scheduled for this application")
        if record.get("completed"):
            raise StateConflictError(f"{stage} is already completed")

        changes = {f"timeline.{key}.completed": True, "last_updated": utcnow()}
        if score is not None:
            changes[f"timeline.{key}.score"] = score
        self.applications.update_one({"_id": application["_id"]}, {"$set": changes})

        logger.info("Application %s: %s completed", application["_id"], stage)
        return {"application_id": str(application["_id"]), "stage": stage, "completed": True, "score": score}

    # ------------------------------------------------------------
    # Student views
    # ------------------------------------------------------------

    def _student_applications(self, student_id: ObjectId):
        applications = list(self.applications.find({"student_id": student_id}).sort("applied_at", -1))
        jobs = {
            j["_id"]: j for j in self.job_service.jobs.find(
                {"_id": {"$in": [a["job_id"] for a in applications]}}
            )
        }
        companies = self.job_service.company_map(j["company_id"] for j in jobs.values())
        return applications, jobs, companies

    def _job_summary(self, job: Optional[dict], companies: dict) -> dict:
        if job is None:
            return {"id": None, "title": "N/A", "company": {"id": None, "name": "N/A"}}
        return {
            "id": str(job["_id"]),
            "title": job["title"],
            "company": self.job_service.company_summary(companies.get(job["company_id"])),
            "location": job["location"],
            "package": job["package"],
            "deadline": job["deadline"],
        }

    def placement_timeline(self, student_id: ObjectId) -> dict:
        """Every application of the student with its per-stage view."""
        applications, jobs, companies = self._student_applications(student_id)
        now = utcnow()

        timeline_data = []
        for app in applications:
            stages = timeline.stage_view(app["timeline"], now)
            timeline_data.append({
                "application_id": str(app["_id"]),
                "job": self._job_summary(jobs.get(app["job_id"]), companies),
                "current_status": app["status"],
                "current_stage": app["current_stage"],
                "stage_progress": app["stage_progress"],
                "applied_at": app["applied_at"],
                "last_updated": app["last_updated"],
                "next_deadline": app.get("next_deadline"),
                "timeline": stages,
                "overall_progress": timeline.overall_progress(stages),
            })

        total = len(applications)
        placed = sum(1 for a in applications if a["status"] == ApplicationStage.placed.value)
        active = sum(1 for a in applications if a["status"] not in timeline.TERMINAL_STAGES)
        return {
            "timeline_data": timeline_data,
            "statistics": {
                "total_applications": total,
                "active_applications": active,
                "placed_applications": placed,
                "placement_rate": round(placed / total * 100, 1) if total else 0,
            },
        }

    def application_timeline(self, application_id, student_id: ObjectId) -> dict:
        """One application of the student, with its notifications."""
        application = self.applications.find_one({
            "_id": to_object_id(application_id, "Application"),
            "student_id": student_id
        })
        if not application:
            raise NotFoundError("Application not found")

        job = self.job_service.jobs.find_one({"_id": application["job_id"]})
        companies = self.job_service.company_map([job["company_id"]] if job else [])
        return {
            "application": serialize_doc({
                "id": application["_id"],
                "application_number": application_number(application["_id"]),
                "status": application["status"],
                "current_stage": application["current_stage"],
                "stage_progress": application["stage_progress"],
                "applied_at": application["applied_at"],
                "last_updated": application["last_updated"],
                "next_deadline": application.get("next_deadline"),
                "timeline": application["timeline"],
                "notes": application.get("notes", []),
                "documents": application.get("documents", []),
            }),
            "job": self._job_summary(job, companies),
            "notifications": self.notifications.for_application(student_id, application["_id"]),
        }

    def my_applications(self, student_id: ObjectId) -> dict:
        """Applications grouped by status with a summary count per status."""
        applications, jobs, companies = self._student_applications(student_id)

        formatted = [{
            "id": str(app["_id"]),
            "application_number": application_number(app["_id"]),
            "job": self._job_summary(jobs.get(app["job_id"]), companies),
            "status": app["status"],
            "status_details": timeline.status_details(app["status"]),
            "stage_progress": app["stage_progress"],
            "applied_at": app["applied_at"],
            "last_updated": app["last_updated"],
        } for app in applications]

        statuses = timeline.STAGE_ORDER + [ApplicationStage.rejected.value]
        by_status = {s: [a for a in formatted if a["status"] == s] for s in statuses}
        summary = {s.lower(): len(by_status[s]) for s in statuses}
        summary["total"] = len(formatted)

        return {
            "total_applications": len(formatted),
            "applications": formatted,
            "applications_by_status": by_status,
            "summary": summary,
        }

    def student_applications(self, student_id: ObjectId) -> dict:
        """Flat list of the student's applications, newest first, with full timelines."""
        applications, jobs, companies = self._student_applications(student_id)
        formatted = [serialize_doc({
            "id": app["_id"],
            "application_number": application_number(app["_id"]),
            "job": self._job_summary(jobs.get(app["job_id"]), companies),
            "status": app["status"],
            "current_stage": app["current_stage"],
            "stage_progress": app["stage_progress"],
            "applied_at": app["applied_at"],
            "last_updated": app["last_updated"],
            "next_deadline": app.get("next_deadline"),
            "timeline": app["timeline"],
        }) for app in applications]
        return {"total_applications": len(formatted), "applications": formatted}

    # ------------------------------------------------------------
    # Company / TPO views
    # ------------------------------------------------------------

    def _with_students(self, applications: list) -> list:
        students = {
            s["_id"]: s for s in self.students.find(
                {"_id": {"$in": [a["student_id"] for a in applications]}},
                {"name": 1, "email": 1, "roll_number": 1, "branch": 1, "cgpa": 1}
            )
        }
        formatted = []
        for app in applications:
            student = students.get(app["student_id"]) or {}
            formatted.append(serialize_doc({
                "id": app["_id"],
                "application_number": application_number(app["_id"]),
                "job_id": app["job_id"],
                "student": {
                    "id": app["student_id"],
                    "name": student.get("name"),
                    "email": student.get("email"),
                    "roll_number": student.get("roll_number"),
                    "branch": student.get("branch"),
                    "cgpa": student.get("cgpa"),
                },
                "status": app["status"],
                "current_stage": app["current_stage"],
                "stage_progress": app["stage_progress"],
                "applied_at": app["applied_at"],
                "last_updated": app["last_updated"],
                "timeline": app["timeline"],
            }))
        return formatted

    def company_applications(self, company_id: ObjectId, job_id) -> dict:
        job = self.job_service.get_job(job_id)
        if job["company_id"] != company_id:
            # Do not reveal other companies' jobs
            raise NotFoundError("Job not found")
        applications = list(self.applications.find({"job_id": job["_id"]}).sort("applied_at", -1))
        return {
            "job": {"id": str(job["_id"]), "title": job["title"]},
            "total_applications": len(applications),
            "applications": self._with_students(applications),
        }

    def all_applications(self, stage: Optional[str] = None) -> list:
        query = {"status": stage} if stage else {}
        return self._with_students(list(self.applications.find(query).sort("applied_at", -1)))
