"""
Notification Feed Service

Per-student messages generated by the application engine (and, in
future, announcements). Notifications are never hard-deleted: is_deleted
hides them from the feed.
"""

import logging
from datetime import datetime, timedelta
from typing import Optional

from bson import ObjectId
from pymongo import ReturnDocument
from pymongo.collection import Collection

from app.core.errors import NotFoundError
from app.db.mongodb import get_collection, COLLECTIONS
from app.schemas.schemas import ApprovalStatus, JobStatus, NotificationPriority, NotificationType
from app.services.job_service import JobService
from app.services.mongo_service import serialize_doc, serialize_docs, to_object_id, utcnow

logger = logging.getLogger(__name__)


class NotificationService:

    def __init__(self):
        self.collection: Collection = get_collection(COLLECTIONS["notifications"])
        self.applications: Collection = get_collection(COLLECTIONS["applications"])
        self.job_service = JobService()

    def create(self, student_id: ObjectId, title: str, message: str,
               type: NotificationType = NotificationType.general_announcement,
               priority: NotificationPriority = NotificationPriority.medium,
               related_data: Optional[dict] = None, action_required: bool = False,
               action_url: Optional[str] = None, expires_at: Optional[datetime] = None) -> ObjectId:
        """Insert a notification and return its id."""
        doc = {
            "student_id": student_id,
            "title": title,
            "message": message,
            "type": NotificationType(type).value,
            "priority": NotificationPriority(priority).value,
            "is_read": False,
            "is_deleted": False,
            "related_data": related_data or {},
            "action_required": action_required,
            "action_url": action_url,
            "expires_at": expires_at,
            "created_at": utcnow(),
        }
        return self.collection.insert_one(doc).inserted_id

    def notify(self, student_id: ObjectId, **fields) -> Optional[ObjectId]:
        """
        Best-effort create: a failure here must not undo the primary
        operation that triggered it, so it is logged and dropped.
        """
        try:
            return self.create(student_id, **fields)
        except Exception:
            logger.exception("Failed to create notification for student %s", student_id)
            return None

    # ------------------------------------------------------------
    # Feed
    # ------------------------------------------------------------

    def daily_updates(self, student_id: ObjectId, page: int = 1, limit: int = 10,
                      type: Optional[NotificationType] = None) -> dict:
        query = {"student_id": student_id, "is_deleted": False}
        if type is not None:
            query["type"] = type.value

        notifications = list(
            self.collection.find(query)
            .sort("created_at", -1)
            .skip((page - 1) * limit)
            .limit(limit)
        )
        unread_count = self.collection.count_documents(
            {"student_id": student_id, "is_read": False, "is_deleted": False}
        )

        return {
            "notifications": serialize_docs(notifications),
            "unread_count": unread_count,
            "upcoming_deadlines": self.upcoming_deadlines(student_id),
            "recent_opportunities": self.recent_opportunities(),
            "pagination": {
                "page": page,
                "limit": limit,
                "total": self.collection.count_documents(query),
            },
        }

    def upcoming_deadlines(self, student_id: ObjectId) -> list:
        """Application next_deadlines and open job deadlines still ahead, soonest first."""
        self.job_service.close_elapsed_jobs()
        now = utcnow()
        deadlines = []

        applications = list(self.applications.find(
            {"student_id": student_id, "next_deadline": {"$gt": now}}
        ))
        app_jobs = {
            j["_id"]: j for j in self.job_service.jobs.find(
                {"_id": {"$in": [a["job_id"] for a in applications]}}
            )
        }
        jobs = list(self.job_service.jobs.find({
            "status": JobStatus.open.value,
            "approval_status": ApprovalStatus.approved.value,
            "deadline": {"$gt": now},
        }))
        companies = self.job_service.company_map(
            [j["company_id"] for j in app_jobs.values()] + [j["company_id"] for j in jobs]
        )

        for app in applications:
            job = app_jobs.get(app["job_id"])
            if job is None:
                continue
            deadlines.append({
                "type": "application_deadline",
                "title": f"Deadline for {job['title']}",
                "deadline": app["next_deadline"],
                "application_id": str(app["_id"]),
                "job_title": job["title"],
                "company_name": self.job_service.company_summary(companies.get(job["company_id"]))["name"],
            })

        for job in jobs:
            deadlines.append({
                "type": "job_deadline",
                "title": f"Application deadline for {job['title']}",
                "deadline": job["deadline"],
                "job_id": str(job["_id"]),
                "job_title": job["title"],
                "company_name": self.job_service.company_summary(companies.get(job["company_id"]))["name"],
            })

        return sorted(deadlines, key=lambda d: d["deadline"])

    def recent_opportunities(self, days: int = 7, limit: int = 5) -> list:
        """Approved open jobs posted in the last few days."""
        self.job_service.close_elapsed_jobs()
        jobs = list(self.job_service.jobs.find({
            "status": JobStatus.open.value,
            "approval_status": ApprovalStatus.approved.value,
            "created_at": {"$gte": utcnow() - timedelta(days=days)},
        }).sort("created_at", -1).limit(limit))
        companies = self.job_service.company_map(j["company_id"] for j in jobs)

        opportunities = []
        for job in jobs:
            company = self.job_service.company_summary(companies.get(job["company_id"]))
            opportunities.append({
                "id": str(job["_id"]),
                "title": job["title"],
                "company": company["name"],
                "industry": company.get("industry"),
                "location": job["location"],
                "package": job["package"],
                "created_at": job["created_at"],
            })
        return opportunities

    def for_application(self, student_id: ObjectId, application_id: ObjectId) -> list:
        return serialize_docs(self.collection.find({
            "student_id": student_id,
            "related_data.application_id": application_id,
            "is_deleted": False,
        }).sort("created_at", -1))

    # ------------------------------------------------------------
    # Read / delete state
    # ------------------------------------------------------------

    def mark_read(self, notification_id, student_id: ObjectId) -> dict:
        notification = self.collection.find_one_and_update(
            {"_id": to_object_id(notification_id, "Notification"), "student_id": student_id},
            {"$set": {"is_read": True}},
            return_document=ReturnDocument.AFTER
        )
        if not notification:
            raise NotFoundError("Notification not found")
        return serialize_doc(notification)

    def mark_all_read(self, student_id: ObjectId) -> int:
        result = self.collection.update_many(
            {"student_id": student_id, "is_read": False},
            {"$set": {"is_read": True}}
        )
        return result.modified_count

    def delete(self, notification_id, student_id: ObjectId) -> None:
        """Soft delete."""
        result = self.collection.update_one(
            {"_id": to_object_id(notification_id, "Notification"), "student_id": student_id},
            {"$set": {"is_deleted": True}}
        )
        if result.matched_count == 0:
            raise NotFoundError("Notification not found")
