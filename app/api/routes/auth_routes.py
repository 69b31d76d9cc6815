"""
Authentication Routes

POST /auth/register - Register a student, company or TPO account
POST /auth/login - Login and get JWT token
GET /auth/me - Get current user info with role profile
"""

from fastapi import APIRouter, Depends

from app.core.auth import get_current_user
from app.schemas.schemas import APIResponse, LoginRequest, RegisterRequest, TokenResponse
from app.services.identity_service import IdentityService

router = APIRouter(prefix="/auth", tags=["Authentication"])


@router.post("/register", response_model=APIResponse, status_code=201)
def register(request: RegisterRequest):
    """
    Register a new user account together with its role profile.

    Role-specific fields:
    - student: roll_number, branch, graduation_year
    - company: hr_contact, contact_number
    - tpo: institute_name, contact_number
    """
    user = IdentityService().register(request)
    return APIResponse(message=f"Registered successfully as {user['role']}. Please login.", data=user)


@router.post("/login", response_model=APIResponse)
def login(request: LoginRequest):
    """
    Login and receive JWT access token.

    Include token in requests: Authorization: Bearer <token>
    """
    token = IdentityService().login(request.email, request.password)
    return APIResponse(message="Login successful", data=TokenResponse(**token).model_dump())


@router.get("/me", response_model=APIResponse)
def get_me(user: dict = Depends(get_current_user)):
    """Get current authenticated user info."""
    return APIResponse(data=IdentityService().describe(user))
