"""
Job Catalog Service

Jobs have two independent status axes:
- approval_status: pending -> approved | rejected (TPO decision, see approval_service)
- status: Open / Closed / On Hold (operational)

A job is visible to students only when approved AND Open.

Auto-close rule: an Open job whose timeline.online_test has passed is closed.
close_elapsed_jobs() applies the rule and every job listing calls it before
reading, so the first reader after the test date performs the close and
everyone after sees it closed.
"""

import logging
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from bson import ObjectId
from pymongo.collection import Collection

from app.core.errors import AuthorizationError, NotFoundError
from app.db.mongodb import get_collection, COLLECTIONS
from app.schemas.schemas import ApprovalStatus, JobCreate, JobStatus, JobUpdate
from app.services.mongo_service import as_naive_utc, serialize_doc, to_object_id, utcnow
from app.services.timeline import days_until

logger = logging.getLogger(__name__)


def _timeline_doc(timeline) -> dict:
    timeline = timeline.model_dump() if timeline is not None else {}
    return {
        "online_test": as_naive_utc(timeline.get("online_test")),
        "interview": as_naive_utc(timeline.get("interview")),
        "final_offer": as_naive_utc(timeline.get("final_offer")),
    }


def job_status_info(job: dict, now: datetime) -> dict:
    """Human readable summary of where a job stands for its company."""
    if job["approval_status"] == ApprovalStatus.pending.value:
        return {"label": "Awaiting TPO approval", "color": "orange"}
    if job["approval_status"] == ApprovalStatus.rejected.value:
        return {"label": "Rejected by TPO", "color": "red"}

    online_test = (job.get("timeline") or {}).get("online_test")
    if job["status"] == JobStatus.open.value:
        if job["deadline"] < now:
            return {"label": "Deadline passed, test pending", "color": "blue"}
        return {"label": "Accepting applications", "color": "green"}
    if job["status"] == JobStatus.on_hold.value:
        return {"label": "On hold", "color": "gray"}
    if online_test and online_test < now:
        return {"label": "Closed after online test", "color": "gray"}
    return {"label": "Closed", "color": "gray"}


class JobService:
    """Job postings: creation, listings, details and TPO maintenance."""

    def __init__(self):
        self.jobs: Collection = get_collection(COLLECTIONS["jobs"])
        self.companies: Collection = get_collection(COLLECTIONS["companies"])
        self.applications: Collection = get_collection(COLLECTIONS["applications"])
        self.students: Collection = get_collection(COLLECTIONS["students"])

    # ------------------------------------------------------------
    # Auto-close
    # ------------------------------------------------------------

    def close_elapsed_jobs(self, now: Optional[datetime] = None) -> int:
        """
        Close every Open job whose online test date has passed.
        Idempotent: closed jobs are never reopened here.
        """
        now = now or utcnow()
        candidates = self.jobs.find(
            {"status": JobStatus.open.value, "timeline.online_test": {"$exists": True, "$ne": None}},
            {"timeline.online_test": 1}
        )
        elapsed = [job["_id"] for job in candidates if job["timeline"]["online_test"] < now]
        if not elapsed:
            return 0

        result = self.jobs.update_many(
            {"_id": {"$in": elapsed}, "status": JobStatus.open.value},
            {"$set": {"status": JobStatus.closed.value, "updated_at": now}}
        )
        if result.modified_count:
            logger.info("Auto-closed %d job(s) after their online test date", result.modified_count)
        return result.modified_count

    # ------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------

    def get_job(self, job_id) -> dict:
        job = self.jobs.find_one({"_id": to_object_id(job_id, "Job")})
        if not job:
            raise NotFoundError("Job not found")
        return job

    def company_map(self, company_ids: Iterable[ObjectId]) -> Dict[ObjectId, dict]:
        ids = list({cid for cid in company_ids if cid is not None})
        if not ids:
            return {}
        return {c["_id"]: c for c in self.companies.find({"_id": {"$in": ids}})}

    @staticmethod
    def company_summary(company: Optional[dict]) -> dict:
        if not company:
            return {"id": None, "name": "N/A"}
        return {
            "id": str(company["_id"]),
            "name": company["name"],
            "email": company.get("email"),
            "industry": company.get("industry"),
        }

    # ------------------------------------------------------------
    # Creation & maintenance
    # ------------------------------------------------------------

    def create_job(self, company_id: ObjectId, data: JobCreate) -> dict:
        """
        Create a job for a company. New jobs are always pending and Closed
        until a TPO approves them.
        """
        if not self.companies.find_one({"_id": company_id}):
            raise NotFoundError("Company not found")

        now = utcnow()
        job = {
            "company_id": company_id,
            "title": data.title,
            "description": data.description,
            "location": data.location,
            "package": data.package,
            "eligibility_criteria": data.eligibility_criteria,
            "deadline": as_naive_utc(data.deadline),
            "compensation": data.compensation.model_dump() if data.compensation else None,
            "timeline": _timeline_doc(data.timeline),
            "status": JobStatus.closed.value,
            "approval_status": ApprovalStatus.pending.value,
            "approved_by": None,
            "approved_at": None,
            "rejection_reason": None,
            "applications": [],
            "created_at": now,
            "updated_at": now,
        }
        job["_id"] = self.jobs.insert_one(job).inserted_id
        self.companies.update_one({"_id": company_id}, {"$push": {"jobs": job["_id"]}})

        logger.info("Company %s created job %s (pending approval)", company_id, job["_id"])
        return serialize_doc(job)

    def update_job(self, job_id, update: JobUpdate) -> dict:
        """TPO edit. Approval fields are only changed through the approval workflow."""
        job = self.get_job(job_id)

        changes = {}
        for field in ["title", "description", "location", "package", "eligibility_criteria"]:
            value = getattr(update, field)
            if value is not None:
                changes[field] = value
        if update.deadline is not None:
            changes["deadline"] = as_naive_utc(update.deadline)
        if update.compensation is not None:
            changes["compensation"] = update.compensation.model_dump()
        if update.timeline is not None:
            changes["timeline"] = _timeline_doc(update.timeline)
        if update.status is not None:
            changes["status"] = update.status.value

        if changes:
            changes["updated_at"] = utcnow()
            self.jobs.update_one({"_id": job["_id"]}, {"$set": changes})
            job.update(changes)
        return serialize_doc(job)

    def delete_job(self, job_id) -> None:
        """TPO delete. Applications for the job go with it."""
        job = self.get_job(job_id)
        application_ids = [a["_id"] for a in self.applications.find({"job_id": job["_id"]}, {"_id": 1})]

        self.jobs.delete_one({"_id": job["_id"]})
        self.companies.update_one({"_id": job["company_id"]}, {"$pull": {"jobs": job["_id"]}})
        if application_ids:
            self.applications.delete_many({"_id": {"$in": application_ids}})
            self.students.update_many(
                {"applications": {"$in": application_ids}},
                {"$pullAll": {"applications": application_ids}}
            )
        logger.info("Deleted job %s and %d application(s)", job["_id"], len(application_ids))

    # ------------------------------------------------------------
    # Listings
    # ------------------------------------------------------------

    def list_company_jobs(self, company_id: ObjectId) -> dict:
        """All jobs of a company, both status axes, with application counts."""
        self.close_elapsed_jobs()
        now = utcnow()

        jobs = list(self.jobs.find({"company_id": company_id}).sort("created_at", -1))
        formatted = []
        for job in jobs:
            formatted.append({
                "id": str(job["_id"]),
                "title": job["title"],
                "description": job["description"],
                "location": job["location"],
                "package": job["package"],
                "eligibility_criteria": job["eligibility_criteria"],
                "deadline": job["deadline"],
                "status": job["status"],
                "approval_status": job["approval_status"],
                "status_info": job_status_info(job, now),
                "compensation": job.get("compensation"),
                "timeline": job.get("timeline"),
                "application_count": self.applications.count_documents({"job_id": job["_id"]}),
                "is_expired": job["deadline"] < now,
                "days_until_deadline": days_until(job["deadline"], now),
                "approved_at": job.get("approved_at"),
                "rejection_reason": job.get("rejection_reason"),
                "created_at": job["created_at"],
                "updated_at": job["updated_at"],
            })

        return {
            "total_jobs": len(formatted),
            "open_jobs": sum(1 for j in formatted if j["status"] == JobStatus.open.value),
            "closed_jobs": sum(1 for j in formatted if j["status"] == JobStatus.closed.value),
            "expired_jobs": sum(1 for j in formatted if j["is_expired"]),
            "jobs": formatted,
        }

    def list_open_jobs(self, student_id: ObjectId) -> dict:
        """Student home page: approved and Open jobs only."""
        self.close_elapsed_jobs()
        now = utcnow()

        jobs = list(self.jobs.find({
            "approval_status": ApprovalStatus.approved.value,
            "status": JobStatus.open.value
        }).sort("created_at", -1))
        companies = self.company_map(j["company_id"] for j in jobs)
        applied = {
            a["job_id"] for a in self.applications.find({"student_id": student_id}, {"job_id": 1})
        }

        formatted = [{
            "id": str(job["_id"]),
            "job_title": job["title"],
            "company_name": self.company_summary(companies.get(job["company_id"]))["name"],
            "city": job["location"],
            "compensation": f"{job['package']:g} LPA",
            "eligibility": ", ".join(job["eligibility_criteria"]) or "Not specified",
            "deadline": job["deadline"],
            "days_until_deadline": days_until(job["deadline"], now),
            "is_applied": job["_id"] in applied,
        } for job in jobs]

        return {"total_jobs": len(formatted), "jobs": formatted}

    def get_job_for_student(self, job_id, student_id: ObjectId) -> dict:
        """Complete job details, only for approved jobs."""
        self.close_elapsed_jobs()
        job = self.get_job(job_id)
        if job["approval_status"] != ApprovalStatus.approved.value:
            raise AuthorizationError("This job is not available for viewing")

        company = self.companies.find_one({"_id": job["company_id"]})
        has_applied = self.applications.count_documents(
            {"job_id": job["_id"], "student_id": student_id}
        ) > 0
        timeline = job.get("timeline") or {}

        return {
            "id": str(job["_id"]),
            "title": job["title"],
            "company": self.company_summary(company),
            "location": job["location"],
            "package": job["package"],
            "description": job["description"],
            "eligibility_criteria": job["eligibility_criteria"],
            "deadline": job["deadline"],
            "days_until_deadline": days_until(job["deadline"], utcnow()),
            "status": job["status"],
            "compensation": job.get("compensation"),
            "timeline": {
                key: timeline.get(key) or "To be announced"
                for key in ("online_test", "interview", "final_offer")
            },
            "has_applied": has_applied,
            "application_count": self.applications.count_documents({"job_id": job["_id"]}),
            "created_at": job["created_at"],
            "updated_at": job["updated_at"],
        }

    def list_all_jobs(self) -> List[dict]:
        self.close_elapsed_jobs()
        return list(self.jobs.find().sort("created_at", -1))
