"""
Company Routes

POST /company/create-job - Post a job (pending TPO approval)
GET /company/jobs - Company's jobs with approval and operational status
GET /company/applications/{job_id} - Applications received for one job
POST /company/create-offer - Issue an offer letter to an applicant
PUT /company/update-offer/{offer_id} - Edit one of the company's offers
GET /company/offers - Offers issued by the company
"""

from fastapi import APIRouter, Depends

from app.core.auth import get_current_company
from app.schemas.schemas import APIResponse, JobCreate, OfferCreate, OfferUpdate
from app.services.application_service import ApplicationService
from app.services.job_service import JobService
from app.services.offer_service import OfferService

router = APIRouter(prefix="/company", tags=["Company"])


@router.post("/create-job", response_model=APIResponse, status_code=201)
def create_job(data: JobCreate, company: dict = Depends(get_current_company)):
    """New jobs are hidden from students until a TPO approves them."""
    job = JobService().create_job(company["company_id"], data)
    return APIResponse(message="Job created successfully and sent for TPO approval", data=job)


@router.get("/jobs", response_model=APIResponse)
def get_company_jobs(company: dict = Depends(get_current_company)):
    return APIResponse(data=JobService().list_company_jobs(company["company_id"]))


@router.get("/applications/{job_id}", response_model=APIResponse)
def get_job_applications(job_id: str, company: dict = Depends(get_current_company)):
    """Only for jobs owned by the calling company."""
    return APIResponse(data=ApplicationService().company_applications(company["company_id"], job_id))


@router.post("/create-offer", response_model=APIResponse, status_code=201)
def create_offer(data: OfferCreate, company: dict = Depends(get_current_company)):
    offer = OfferService().create_offer(company["company_id"], data)
    return APIResponse(message="Offer created successfully", data=offer)


@router.put("/update-offer/{offer_id}", response_model=APIResponse)
def update_offer(offer_id: str, data: OfferUpdate, company: dict = Depends(get_current_company)):
    offer = OfferService().update_offer(company["company_id"], offer_id, data)
    return APIResponse(message="Offer updated successfully", data=offer)


@router.get("/offers", response_model=APIResponse)
def list_offers(company: dict = Depends(get_current_company)):
    return APIResponse(data=OfferService().list_company_offers(company["company_id"]))
