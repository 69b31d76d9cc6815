"""
Job Approval Workflow

    pending --approve--> approved   (status -> Open, approved_by/approved_at set)
    pending --reject---> rejected   (status stays Closed, rejection_reason required)

Both transitions are one-shot. They are applied with a conditional update
on approval_status == "pending", so two reviewers racing on the same job
cannot both succeed.
"""

import logging
from datetime import timedelta

from bson import ObjectId
from pymongo import ReturnDocument
from pymongo.collection import Collection

from app.core.errors import NotFoundError, StateConflictError, ValidationError
from app.db.mongodb import get_collection, COLLECTIONS
from app.schemas.schemas import ApprovalStatus, JobStatus
from app.services.job_service import JobService
from app.services.mongo_service import to_object_id, utcnow

logger = logging.getLogger(__name__)

# Sort field used by each review list
LIST_ORDER = {
    ApprovalStatus.pending.value: "created_at",
    ApprovalStatus.approved.value: "approved_at",
    ApprovalStatus.rejected.value: "updated_at",
}


class JobApprovalService:
    """TPO review of job postings."""

    def __init__(self):
        self.jobs: Collection = get_collection(COLLECTIONS["jobs"])
        self.tpos: Collection = get_collection(COLLECTIONS["tpos"])
        self.job_service = JobService()

    def _reviewer(self, tpo_id) -> dict:
        tpo = self.tpos.find_one({"_id": tpo_id}) if tpo_id else None
        if not tpo:
            return None
        return {"id": str(tpo["_id"]), "name": tpo["name"], "email": tpo["email"]}

    def _format(self, job: dict, company: dict) -> dict:
        now = utcnow()
        formatted = {
            "id": str(job["_id"]),
            "title": job["title"],
            "description": job["description"],
            "location": job["location"],
            "package": job["package"],
            "eligibility_criteria": job["eligibility_criteria"],
            "deadline": job["deadline"],
            "compensation": job.get("compensation"),
            "timeline": job.get("timeline"),
            "status": job["status"],
            "approval_status": job["approval_status"],
            "company": self.job_service.company_summary(company),
            "created_at": job["created_at"],
        }
        if job["approval_status"] == ApprovalStatus.pending.value:
            formatted["days_since_created"] = (now - job["created_at"]).days
        elif job["approval_status"] == ApprovalStatus.approved.value:
            formatted["approved_by"] = self._reviewer(job.get("approved_by"))
            formatted["approved_at"] = job.get("approved_at")
        else:
            formatted["rejected_by"] = self._reviewer(job.get("approved_by"))
            formatted["rejection_reason"] = job.get("rejection_reason")
            formatted["rejected_at"] = job.get("updated_at")
        return formatted

    def list_jobs(self, approval_status: ApprovalStatus) -> dict:
        """Jobs in one approval state, newest decision first."""
        # Approved jobs show their operational status, keep it current
        self.job_service.close_elapsed_jobs()

        status = approval_status.value
        jobs = list(self.jobs.find({"approval_status": status}).sort(LIST_ORDER[status], -1))
        companies = self.job_service.company_map(j["company_id"] for j in jobs)
        formatted = [self._format(job, companies.get(job["company_id"])) for job in jobs]
        return {"total": len(formatted), "jobs": formatted}

    def _decide(self, job_id, changes: dict) -> dict:
        job_oid = to_object_id(job_id, "Job")
        job = self.jobs.find_one_and_update(
            {"_id": job_oid, "approval_status": ApprovalStatus.pending.value},
            {"$set": changes},
            return_document=ReturnDocument.AFTER
        )
        if job is None:
            if not self.jobs.find_one({"_id": job_oid}, {"_id": 1}):
                raise NotFoundError("Job not found")
            raise StateConflictError("Job is not in pending status")
        return job

    def approve(self, job_id, tpo_id: ObjectId) -> dict:
        """pending -> approved; opens the job to students."""
        now = utcnow()
        job = self._decide(job_id, {
            "approval_status": ApprovalStatus.approved.value,
            "approved_by": tpo_id,
            "approved_at": now,
            "status": JobStatus.open.value,
            "updated_at": now,
        })
        logger.info("Job %s approved by TPO %s", job["_id"], tpo_id)
        return {"job_id": str(job["_id"]), "title": job["title"], "approved_at": job["approved_at"]}

    def reject(self, job_id, tpo_id: ObjectId, rejection_reason: str) -> dict:
        """pending -> rejected; the job stays closed."""
        if not rejection_reason or not rejection_reason.strip():
            raise ValidationError("Rejection reason is required")

        now = utcnow()
        job = self._decide(job_id, {
            "approval_status": ApprovalStatus.rejected.value,
            "approved_by": tpo_id,
            "rejection_reason": rejection_reason.strip(),
            "status": JobStatus.closed.value,
            "updated_at": now,
        })
        logger.info("Job %s rejected by TPO %s", job["_id"], tpo_id)
        return {
            "job_id": str(job["_id"]),
            "title": job["title"],
            "rejection_reason": job["rejection_reason"],
            "rejected_at": job["updated_at"],
        }

    def stats(self) -> dict:
        """Counts per approval state, overall and over the last 7 days."""
        since = utcnow() - timedelta(days=7)
        pending = self.jobs.count_documents({"approval_status": "pending"})
        approved = self.jobs.count_documents({"approval_status": "approved"})
        rejected = self.jobs.count_documents({"approval_status": "rejected"})
        total = pending + approved + rejected

        recent_pending = self.jobs.count_documents({"approval_status": "pending", "created_at": {"$gte": since}})
        recent_approved = self.jobs.count_documents({"approval_status": "approved", "approved_at": {"$gte": since}})
        recent_rejected = self.jobs.count_documents({"approval_status": "rejected", "updated_at": {"$gte": since}})

        def pct(count):
            return round(count / total * 100, 1) if total else 0

        return {
            "total": {"pending": pending, "approved": approved, "rejected": rejected, "total": total},
            "recent": {
                "pending": recent_pending,
                "approved": recent_approved,
                "rejected": recent_rejected,
                "total": recent_pending + recent_approved + recent_rejected,
            },
            "percentages": {"pending": pct(pending), "approved": pct(approved), "rejected": pct(rejected)},
        }

    def job_details(self, job_id) -> dict:
        self.job_service.close_elapsed_jobs()
        job = self.job_service.get_job(job_id)
        company = self.job_service.companies.find_one({"_id": job["company_id"]})
        formatted = self._format(job, company)
        formatted["updated_at"] = job["updated_at"]
        return formatted
