"""
Placement Reports (TPO)
"""

from pymongo.collection import Collection

from app.db.mongodb import get_collection, COLLECTIONS
from app.schemas.schemas import ApplicationStage, PlacementStatus


class ReportService:

    def __init__(self):
        self.students: Collection = get_collection(COLLECTIONS["students"])
        self.companies: Collection = get_collection(COLLECTIONS["companies"])
        self.jobs: Collection = get_collection(COLLECTIONS["jobs"])
        self.applications: Collection = get_collection(COLLECTIONS["applications"])

    def placement_report(self) -> dict:
        total_applications = self.applications.count_documents({})
        placed_applications = self.applications.count_documents({"status": ApplicationStage.placed.value})

        job_company = {j["_id"]: j["company_id"] for j in self.jobs.find({}, {"company_id": 1})}
        job_counts = {}
        for company_id in job_company.values():
            job_counts[company_id] = job_counts.get(company_id, 0) + 1

        application_counts = {}
        for app in self.applications.find({}, {"job_id": 1}):
            company_id = job_company.get(app["job_id"])
            application_counts[company_id] = application_counts.get(company_id, 0) + 1

        company_stats = [{
            "id": str(company["_id"]),
            "name": company["name"],
            "total_jobs": job_counts.get(company["_id"], 0),
            "total_applications": application_counts.get(company["_id"], 0),
        } for company in self.companies.find().sort("name", 1)]

        return {
            "total_students": self.students.count_documents({}),
            "placed_students": self.students.count_documents(
                {"placement_status": PlacementStatus.placed.value}
            ),
            "total_companies": self.companies.count_documents({}),
            "total_jobs": self.jobs.count_documents({}),
            "total_applications": total_applications,
            "placed_applications": placed_applications,
            "placement_rate": round(placed_applications / total_applications * 100, 2) if total_applications else 0,
            "company_stats": company_stats,
        }
