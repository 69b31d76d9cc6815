"""
Offer Service - offer letters a company issues to its applicants.

The application's Offer stage says where the candidate stands; the offer
document holds the letter itself (URL, package, acceptance, joining date).
There is at most one offer per (student, job), and only the company that
owns the job can create or edit it.
"""

import logging

from bson import ObjectId
from pymongo import ReturnDocument
from pymongo.collection import Collection
from pymongo.errors import DuplicateKeyError

from app.core.errors import NotFoundError, StateConflictError
from app.db.mongodb import get_collection, COLLECTIONS
from app.schemas.schemas import (
    ApplicationStage, NotificationPriority, NotificationType, OfferCreate, OfferUpdate
)
from app.services.job_service import JobService
from app.services.mongo_service import as_naive_utc, serialize_doc, serialize_docs, to_object_id, utcnow
from app.services.notification_service import NotificationService

logger = logging.getLogger(__name__)


class OfferService:

    def __init__(self):
        self.offers: Collection = get_collection(COLLECTIONS["offers"])
        self.applications: Collection = get_collection(COLLECTIONS["applications"])
        self.job_service = JobService()
        self.notifications = NotificationService()

    def _own_job(self, company_id: ObjectId, job_id) -> dict:
        job = self.job_service.get_job(job_id)
        if job["company_id"] != company_id:
            raise NotFoundError("Job not found")
        return job

    def create_offer(self, company_id: ObjectId, data: OfferCreate) -> dict:
        """
        Issue an offer letter to a student who applied for one of the
        company's jobs.

        Raises:
            NotFoundError: job not owned by the company, or no application
            StateConflictError: application rejected, or offer already exists
        """
        job = self._own_job(company_id, data.job_id)
        student_id = to_object_id(data.student_id, "Student")
        application = self.applications.find_one(
            {"student_id": student_id, "job_id": job["_id"]}, {"status": 1}
        )
        if not application:
            raise NotFoundError("Application not found")
        if application["status"] == ApplicationStage.rejected.value:
            raise StateConflictError("Cannot issue an offer on a rejected application")

        now = utcnow()
        offer = {
            "student_id": student_id,
            "job_id": job["_id"],
            "company_id": company_id,
            "application_id": application["_id"],
            "offer_letter_url": data.offer_letter_url,
            "package": data.package.model_dump(),
            "accepted": False,
            "offered_on": now,
            "joined_on": None,
            "created_at": now,
            "updated_at": now,
        }
        try:
            offer["_id"] = self.offers.insert_one(offer).inserted_id
        except DuplicateKeyError:
            raise StateConflictError("An offer already exists for this student and job")

        company = self.job_service.companies.find_one({"_id": company_id}, {"name": 1})
        self.notifications.notify(
            student_id,
            title="Offer Letter Issued",
            message=f"{company['name'] if company else 'The company'} has issued your offer letter for {job['title']}",
            type=NotificationType.offer_received,
            priority=NotificationPriority.urgent,
            related_data={"offer_id": offer["_id"], "application_id": application["_id"]},
            action_required=True,
        )

        logger.info("Company %s issued offer %s to student %s", company_id, offer["_id"], student_id)
        return serialize_doc(offer)

    def update_offer(self, company_id: ObjectId, offer_id, update: OfferUpdate) -> dict:
        """Edit an offer of the calling company. Other companies' offers are not found."""
        changes = {}
        if update.offer_letter_url is not None:
            changes["offer_letter_url"] = update.offer_letter_url
        if update.package is not None:
            changes["package"] = update.package.model_dump()
        if update.accepted is not None:
            changes["accepted"] = update.accepted
        if update.joined_on is not None:
            changes["joined_on"] = as_naive_utc(update.joined_on)
        changes["updated_at"] = utcnow()

        offer = self.offers.find_one_and_update(
            {"_id": to_object_id(offer_id, "Offer"), "company_id": company_id},
            {"$set": changes},
            return_document=ReturnDocument.AFTER
        )
        if not offer:
            raise NotFoundError("Offer not found")

        logger.info("Company %s updated offer %s: %s", company_id, offer["_id"], ", ".join(sorted(changes)))
        return serialize_doc(offer)

    def list_company_offers(self, company_id: ObjectId) -> list:
        return serialize_docs(self.offers.find({"company_id": company_id}).sort("offered_on", -1))
