"""
Pydantic Schemas - Request/Response Validation

All API request and response schemas in one file for simplicity.
"""

from pydantic import BaseModel, EmailStr, Field
from typing import Optional, List, Any
from datetime import datetime
from enum import Enum


# ============================================================
# ENUMS
# ============================================================

class UserRole(str, Enum):
    student = "student"
    company = "company"
    tpo = "tpo"


class JobStatus(str, Enum):
    open = "Open"
    closed = "Closed"
    on_hold = "On Hold"


class ApprovalStatus(str, Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"


class ApplicationStage(str, Enum):
    applied = "Applied"
    test = "Test"
    shortlisted = "Shortlisted"
    interview = "Interview"
    offer = "Offer"
    placed = "Placed"
    rejected = "Rejected"


class InterviewType(str, Enum):
    online = "Online"
    offline = "Offline"
    hybrid = "Hybrid"


class PlacementStatus(str, Enum):
    not_placed = "Not Placed"
    in_process = "In Process"
    placed = "Placed"


class NotificationType(str, Enum):
    deadline_reminder = "deadline_reminder"
    exam_notification = "exam_notification"
    new_opportunity = "new_opportunity"
    application_update = "application_update"
    interview_scheduled = "interview_scheduled"
    offer_received = "offer_received"
    placement_achieved = "placement_achieved"
    quiz_reminder = "quiz_reminder"
    general_announcement = "general_announcement"


class NotificationPriority(str, Enum):
    low = "low"
    medium = "medium"
    high = "high"
    urgent = "urgent"


class Difficulty(str, Enum):
    easy = "easy"
    medium = "medium"
    hard = "hard"


class AnswerOption(str, Enum):
    a = "A"
    b = "B"
    c = "C"
    d = "D"


# ============================================================
# AUTH SCHEMAS
# ============================================================

class RegisterRequest(BaseModel):
    name: str = Field(..., min_length=2, max_length=100)
    email: EmailStr
    password: str = Field(..., min_length=8)
    role: UserRole
    phone: Optional[str] = None
    address: Optional[str] = None
    # student
    roll_number: Optional[str] = None
    branch: Optional[str] = None
    graduation_year: Optional[int] = Field(None, ge=2000, le=2100)
    # company
    hr_contact: Optional[str] = None
    industry: Optional[str] = None
    website: Optional[str] = None
    # company / tpo
    contact_number: Optional[str] = None
    # tpo
    institute_name: Optional[str] = None

class LoginRequest(BaseModel):
    email: EmailStr
    password: str

class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user_id: str
    role: str
    profile_id: str


# ============================================================
# STUDENT SCHEMAS
# ============================================================

class StudentProfileUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=2, max_length=100)
    branch: Optional[str] = None
    cgpa: Optional[float] = Field(None, ge=0, le=10)
    skills: Optional[List[str]] = None
    phone: Optional[str] = None
    address: Optional[str] = None

class ResumeCreate(BaseModel):
    title: str = Field(..., min_length=1)
    description: Optional[str] = None
    url: str = Field(..., min_length=1)


# ============================================================
# JOB SCHEMAS
# ============================================================

class JobTimeline(BaseModel):
    online_test: Optional[datetime] = None
    interview: Optional[datetime] = None
    final_offer: Optional[datetime] = None

class Compensation(BaseModel):
    fixed: Optional[float] = Field(None, ge=0)
    variable: Optional[float] = Field(None, ge=0)
    other_benefits: List[str] = []

class JobCreate(BaseModel):
    title: str = Field(..., min_length=2, max_length=200)
    description: str = Field(..., min_length=1)
    location: str = Field(..., min_length=1)
    package: float = Field(..., ge=0, description="Annual package in LPA")
    eligibility_criteria: List[str] = []
    deadline: datetime
    compensation: Optional[Compensation] = None
    timeline: JobTimeline = JobTimeline()

class TPOJobCreate(JobCreate):
    company_id: str

class JobUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=2, max_length=200)
    description: Optional[str] = None
    location: Optional[str] = None
    package: Optional[float] = Field(None, ge=0)
    eligibility_criteria: Optional[List[str]] = None
    deadline: Optional[datetime] = None
    compensation: Optional[Compensation] = None
    timeline: Optional[JobTimeline] = None
    status: Optional[JobStatus] = None

class JobRejectRequest(BaseModel):
    rejection_reason: Optional[str] = None


# ============================================================
# OFFER SCHEMAS
# ============================================================

class OfferCreate(BaseModel):
    student_id: str
    job_id: str
    offer_letter_url: Optional[str] = None
    package: Compensation = Compensation()

class OfferUpdate(BaseModel):
    offer_letter_url: Optional[str] = None
    package: Optional[Compensation] = None
    accepted: Optional[bool] = None
    joined_on: Optional[datetime] = None


# ============================================================
# APPLICATION STAGE SCHEMAS
# ============================================================

class StageUpdateRequest(BaseModel):
    stage: str
    details: dict = {}
    message: Optional[str] = None

class StageCompleteRequest(BaseModel):
    score: Optional[float] = Field(None, ge=0)

class OnlineTestStageDetails(BaseModel):
    date: datetime
    location: str = Field(..., min_length=1)
    instructions: Optional[str] = None
    next_deadline: Optional[datetime] = None

class ShortlistedStageDetails(BaseModel):
    next_deadline: Optional[datetime] = None

class InterviewStageDetails(BaseModel):
    date: datetime
    location: str = Field(..., min_length=1)
    type: InterviewType
    interviewer: str = Field(..., min_length=1)
    duration: Optional[str] = None
    instructions: Optional[str] = None
    next_deadline: Optional[datetime] = None

class OfferPackage(BaseModel):
    fixed: float = Field(..., ge=0)
    variable: float = Field(0, ge=0)
    total: Optional[float] = Field(None, ge=0)

class OfferStageDetails(BaseModel):
    package: OfferPackage
    joining_date: datetime
    offer_letter_url: Optional[str] = None
    acceptance_deadline: Optional[datetime] = None
    next_deadline: Optional[datetime] = None

class PlacedStageDetails(BaseModel):
    joining_date: datetime
    company_location: str = Field(..., min_length=1)
    next_deadline: Optional[datetime] = None

class RejectedStageDetails(BaseModel):
    reason: Optional[str] = None
    next_deadline: Optional[datetime] = None


# ============================================================
# QUIZ SCHEMAS
# ============================================================

class QuestionSetCreate(BaseModel):
    title: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)
    maximum_marks: int = Field(..., ge=1)
    marks_per_question: int = Field(..., ge=1)
    total_questions: int = Field(..., ge=1)
    time_limit: int = Field(60, ge=1, description="Minutes")

class QuestionSetUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    maximum_marks: Optional[int] = Field(None, ge=1)
    marks_per_question: Optional[int] = Field(None, ge=1)
    total_questions: Optional[int] = Field(None, ge=1)
    time_limit: Optional[int] = Field(None, ge=1)
    is_active: Optional[bool] = None

class QuestionOptions(BaseModel):
    A: str = Field(..., min_length=1)
    B: str = Field(..., min_length=1)
    C: str = Field(..., min_length=1)
    D: str = Field(..., min_length=1)

class QuestionCreate(BaseModel):
    question_text: str = Field(..., min_length=1)
    options: QuestionOptions
    correct_answer: AnswerOption
    marks: int = Field(1, ge=1)
    explanation: Optional[str] = None
    difficulty: Difficulty = Difficulty.medium
    category: Optional[str] = None
    question_set_id: Optional[str] = None

class QuestionUpdate(BaseModel):
    question_text: Optional[str] = None
    options: Optional[QuestionOptions] = None
    correct_answer: Optional[AnswerOption] = None
    marks: Optional[int] = Field(None, ge=1)
    explanation: Optional[str] = None
    difficulty: Optional[Difficulty] = None
    category: Optional[str] = None

class AnswerSubmit(BaseModel):
    selected_answer: str


# ============================================================
# RANKING SCHEMAS
# ============================================================

class ScoreUpdateRequest(BaseModel):
    student_id: str
    quiz_id: str
    score: float = Field(..., ge=0)
    percentage: float = Field(..., ge=0, le=100)


# ============================================================
# GENERIC SCHEMAS
# ============================================================

class APIResponse(BaseModel):
    success: bool = True
    message: Optional[str] = None
    data: Any = None
