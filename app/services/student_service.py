"""
Student Profile Service - dashboard, profile edits, resumes and placement history.
"""

import logging

from bson import ObjectId
from pymongo import ReturnDocument
from pymongo.collection import Collection

from app.core.errors import NotFoundError
from app.db.mongodb import get_collection, COLLECTIONS
from app.schemas.schemas import ApplicationStage, ResumeCreate, StudentProfileUpdate
from app.services.application_service import application_number
from app.services.job_service import JobService
from app.services.mongo_service import serialize_doc, utcnow

logger = logging.getLogger(__name__)

PROFILE_FIELDS = ["name", "email", "roll_number", "branch", "graduation_year",
                  "cgpa", "skills", "phone", "address"]


class StudentService:

    def __init__(self):
        self.students: Collection = get_collection(COLLECTIONS["students"])
        self.applications: Collection = get_collection(COLLECTIONS["applications"])
        self.history: Collection = get_collection(COLLECTIONS["placement_history"])
        self.job_service = JobService()

    def get_student(self, student_id: ObjectId) -> dict:
        student = self.students.find_one({"_id": student_id})
        if not student:
            raise NotFoundError("Student not found")
        return student

    def dashboard(self, student_id: ObjectId) -> dict:
        """Profile, application counts per stage and the 5 most recent applications."""
        student = self.get_student(student_id)
        applications = list(self.applications.find({"student_id": student_id}).sort("applied_at", -1))

        breakdown = {stage.value: 0 for stage in ApplicationStage}
        for app in applications:
            breakdown[app["status"]] = breakdown.get(app["status"], 0) + 1

        total = len(applications)
        placed = breakdown[ApplicationStage.placed.value]

        recent = applications[:5]
        jobs = {
            j["_id"]: j for j in self.job_service.jobs.find(
                {"_id": {"$in": [a["job_id"] for a in recent]}}, {"title": 1, "company_id": 1}
            )
        }
        companies = self.job_service.company_map(j["company_id"] for j in jobs.values())

        recent_applications = []
        for app in recent:
            job = jobs.get(app["job_id"])
            company = companies.get(job["company_id"]) if job else None
            recent_applications.append({
                "id": str(app["_id"]),
                "application_number": application_number(app["_id"]),
                "job_title": job["title"] if job else "N/A",
                "company_name": self.job_service.company_summary(company)["name"],
                "status": app["status"],
                "applied_at": app["applied_at"],
                "last_updated": app["last_updated"],
            })

        return {
            "welcome_message": {
                "message": f"Welcome, {student['name']}!",
                "subtitle": "Here's your placement dashboard overview",
            },
            "student": serialize_doc({"id": student["_id"], **{f: student.get(f) for f in PROFILE_FIELDS}}),
            "application_summary": {
                "total_count": total,
                "status_breakdown": breakdown,
                "success_rate": round(placed / total * 100) if total else 0,
                "recent_activity": applications[0]["applied_at"] if applications else None,
            },
            "placement_info": serialize_doc({
                "current_status": student.get("placement_status"),
                "placement_details": student.get("placement_details"),
            }),
            "recent_applications": recent_applications,
        }

    def update_profile(self, student_id: ObjectId, update: StudentProfileUpdate) -> dict:
        changes = update.model_dump(exclude_none=True)
        changes["updated_at"] = utcnow()
        student = self.students.find_one_and_update(
            {"_id": student_id},
            {"$set": changes},
            return_document=ReturnDocument.AFTER
        )
        if not student:
            raise NotFoundError("Student not found")
        logger.info("Student %s updated profile fields: %s", student_id, ", ".join(sorted(changes)))
        return serialize_doc({"id": student["_id"], **{f: student.get(f) for f in PROFILE_FIELDS}})

    def add_resume(self, student_id: ObjectId, resume: ResumeCreate) -> dict:
        """Store a resume reference (title + URL); the file itself lives elsewhere."""
        entry = {**resume.model_dump(), "uploaded_at": utcnow()}
        result = self.students.update_one({"_id": student_id}, {"$push": {"resumes": entry}})
        if result.matched_count == 0:
            raise NotFoundError("Student not found")
        return entry

    def list_resumes(self, student_id: ObjectId) -> list:
        return self.get_student(student_id).get("resumes", [])

    def placement_history(self, student_id: ObjectId) -> list:
        """Placements recorded when applications reached Placed, newest first."""
        history = list(self.history.find({"student_id": student_id}).sort("placement_date", -1))
        jobs = {
            j["_id"]: j for j in self.job_service.jobs.find(
                {"_id": {"$in": [h["job_id"] for h in history]}}, {"title": 1, "location": 1}
            )
        }
        companies = self.job_service.company_map(h["company_id"] for h in history)

        return [serialize_doc({
            "id": entry["_id"],
            "application_id": entry["application_id"],
            "application_number": application_number(entry["application_id"]),
            "company": self.job_service.company_summary(companies.get(entry["company_id"])),
            "job_title": jobs[entry["job_id"]]["title"] if entry["job_id"] in jobs else "N/A",
            "placement_date": entry["placement_date"],
            "package": entry.get("package"),
            "joining_date": entry.get("joining_date"),
            "company_location": entry.get("company_location"),
            "offer_letter_url": entry.get("offer_letter_url"),
            "status": entry["status"],
        }) for entry in history]
