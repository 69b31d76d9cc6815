"""
TPO Routes

Job approval:
GET /tpo/job-approval/pending - Jobs waiting for review
GET /tpo/job-approval/approved - Approved jobs
GET /tpo/job-approval/rejected - Rejected jobs with reasons
GET /tpo/job-approval/stats - Approval counts
GET /tpo/job-approval/job/{job_id} - Job details for review
POST /tpo/job-approval/approve/{job_id} - Approve a pending job
POST /tpo/job-approval/reject/{job_id} - Reject a pending job

Placement management:
POST /tpo/jobs - Create a job on behalf of a company
PUT /tpo/jobs/{job_id} - Edit a job
DELETE /tpo/jobs/{job_id} - Delete a job and its applications
GET /tpo/applications - All applications
GET /tpo/reports - Placement report
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from app.core.auth import get_current_tpo
from app.schemas.schemas import (
    APIResponse, ApplicationStage, ApprovalStatus, JobRejectRequest, JobUpdate, TPOJobCreate
)
from app.services.application_service import ApplicationService
from app.services.approval_service import JobApprovalService
from app.services.job_service import JobService
from app.services.mongo_service import serialize_docs, to_object_id
from app.services.report_service import ReportService

router = APIRouter(prefix="/tpo", tags=["TPO"])


# ============================================================
# JOB APPROVAL
# ============================================================

@router.get("/job-approval/pending", response_model=APIResponse)
def pending_jobs(tpo: dict = Depends(get_current_tpo)):
    return APIResponse(data=JobApprovalService().list_jobs(ApprovalStatus.pending))


@router.get("/job-approval/approved", response_model=APIResponse)
def approved_jobs(tpo: dict = Depends(get_current_tpo)):
    return APIResponse(data=JobApprovalService().list_jobs(ApprovalStatus.approved))


@router.get("/job-approval/rejected", response_model=APIResponse)
def rejected_jobs(tpo: dict = Depends(get_current_tpo)):
    return APIResponse(data=JobApprovalService().list_jobs(ApprovalStatus.rejected))


@router.get("/job-approval/stats", response_model=APIResponse)
def approval_stats(tpo: dict = Depends(get_current_tpo)):
    return APIResponse(data=JobApprovalService().stats())


@router.get("/job-approval/job/{job_id}", response_model=APIResponse)
def job_details(job_id: str, tpo: dict = Depends(get_current_tpo)):
    return APIResponse(data=JobApprovalService().job_details(job_id))


@router.post("/job-approval/approve/{job_id}", response_model=APIResponse)
def approve_job(job_id: str, tpo: dict = Depends(get_current_tpo)):
    result = JobApprovalService().approve(job_id, tpo["tpo_id"])
    return APIResponse(message="Job approved successfully", data=result)


@router.post("/job-approval/reject/{job_id}", response_model=APIResponse)
def reject_job(job_id: str, body: JobRejectRequest, tpo: dict = Depends(get_current_tpo)):
    result = JobApprovalService().reject(job_id, tpo["tpo_id"], body.rejection_reason)
    return APIResponse(message="Job rejected successfully", data=result)


# ============================================================
# JOB MANAGEMENT
# ============================================================

@router.post("/jobs", response_model=APIResponse, status_code=201)
def create_job(data: TPOJobCreate, tpo: dict = Depends(get_current_tpo)):
    """Goes through the same approval workflow as company-posted jobs."""
    company_id = to_object_id(data.company_id, "Company")
    job = JobService().create_job(company_id, data)
    return APIResponse(message="Job created successfully", data=job)


@router.put("/jobs/{job_id}", response_model=APIResponse)
def update_job(job_id: str, data: JobUpdate, tpo: dict = Depends(get_current_tpo)):
    return APIResponse(message="Job updated successfully", data=JobService().update_job(job_id, data))


@router.delete("/jobs/{job_id}", response_model=APIResponse)
def delete_job(job_id: str, tpo: dict = Depends(get_current_tpo)):
    JobService().delete_job(job_id)
    return APIResponse(message="Job deleted successfully")


@router.get("/jobs", response_model=APIResponse)
def list_jobs(tpo: dict = Depends(get_current_tpo)):
    return APIResponse(data=serialize_docs(JobService().list_all_jobs()))


# ============================================================
# APPLICATIONS & REPORTS
# ============================================================

@router.get("/applications", response_model=APIResponse)
def list_applications(
    stage: Optional[ApplicationStage] = Query(None),
    tpo: dict = Depends(get_current_tpo)
):
    applications = ApplicationService().all_applications(stage.value if stage else None)
    return APIResponse(data=applications)


@router.get("/reports", response_model=APIResponse)
def placement_report(tpo: dict = Depends(get_current_tpo)):
    return APIResponse(data=ReportService().placement_report())
