"""
Student Routes

GET /student/dashboard - Profile and application overview
POST /student/update-profile - Update profile fields
GET /student/home - Approved, open jobs
GET /student/job/{job_id} - Job details
POST /student/upload-resume - Save a resume link
GET /student/view-resumes - List saved resumes
POST /student/apply/{job_id} - Apply for a job
GET /student/my-applications - Applications grouped by status
GET /student/applications - All applications, newest first
GET /student/placement-history - Placements recorded for the student
"""

from fastapi import APIRouter, Depends

from app.core.auth import get_current_student
from app.schemas.schemas import APIResponse, ResumeCreate, StudentProfileUpdate
from app.services.application_service import ApplicationService
from app.services.job_service import JobService
from app.services.student_service import StudentService

router = APIRouter(prefix="/student", tags=["Student"])


@router.get("/dashboard", response_model=APIResponse)
def get_dashboard(student: dict = Depends(get_current_student)):
    return APIResponse(data=StudentService().dashboard(student["student_id"]))


@router.post("/update-profile", response_model=APIResponse)
def update_profile(data: StudentProfileUpdate, student: dict = Depends(get_current_student)):
    profile = StudentService().update_profile(student["student_id"], data)
    return APIResponse(message="Profile updated successfully", data=profile)


@router.get("/home", response_model=APIResponse)
def get_home(student: dict = Depends(get_current_student)):
    """Only jobs that are approved AND open are listed."""
    return APIResponse(data=JobService().list_open_jobs(student["student_id"]))


@router.get("/job/{job_id}", response_model=APIResponse)
def get_job(job_id: str, student: dict = Depends(get_current_student)):
    return APIResponse(data=JobService().get_job_for_student(job_id, student["student_id"]))


@router.post("/upload-resume", response_model=APIResponse, status_code=201)
def upload_resume(data: ResumeCreate, student: dict = Depends(get_current_student)):
    resume = StudentService().add_resume(student["student_id"], data)
    return APIResponse(message="Resume uploaded successfully", data=resume)


@router.get("/view-resumes", response_model=APIResponse)
def view_resumes(student: dict = Depends(get_current_student)):
    return APIResponse(data=StudentService().list_resumes(student["student_id"]))


@router.post("/apply/{job_id}", response_model=APIResponse, status_code=201)
def apply_for_job(job_id: str, student: dict = Depends(get_current_student)):
    application = ApplicationService().apply(student["student_id"], job_id)
    return APIResponse(message="Application submitted successfully", data=application)


@router.get("/my-applications", response_model=APIResponse)
def my_applications(student: dict = Depends(get_current_student)):
    return APIResponse(data=ApplicationService().my_applications(student["student_id"]))


@router.get("/applications", response_model=APIResponse)
def list_applications(student: dict = Depends(get_current_student)):
    return APIResponse(data=ApplicationService().student_applications(student["student_id"]))


@router.get("/placement-history", response_model=APIResponse)
def placement_history(student: dict = Depends(get_current_student)):
    history = StudentService().placement_history(student["student_id"])
    return APIResponse(data={"placement_history": history})
