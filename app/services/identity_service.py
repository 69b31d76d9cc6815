"""
Identity Service - users and their role profiles.

A user document carries credentials plus a tagged reference to the
role-specific profile:

    {"role": "student", "profile_type": "Student", "profile_id": ObjectId(...)}

PROFILE_REGISTRY is the dispatch table from role to profile collection,
profile tag and the registration fields that role requires.
"""

import logging
from typing import Optional

from pymongo.collection import Collection
from pymongo.errors import DuplicateKeyError

from app.core.auth import hash_password, verify_password, create_access_token
from app.core.errors import AuthenticationError, NotFoundError, StateConflictError, ValidationError
from app.db.mongodb import get_collection, COLLECTIONS
from app.schemas.schemas import RegisterRequest, PlacementStatus
from app.services.mongo_service import serialize_doc, utcnow

logger = logging.getLogger(__name__)


def _student_profile(request: RegisterRequest) -> dict:
    return {
        "roll_number": request.roll_number,
        "branch": request.branch,
        "graduation_year": request.graduation_year,
        "cgpa": None,
        "skills": [],
        "placement_status": PlacementStatus.not_placed.value,
        "placement_details": None,
        "applications": [],
        "resumes": [],
        # Ranking aggregate
        "quiz_scores": [],
        "total_score": 0,
        "total_quizzes_taken": 0,
        "average_score": 0,
        "highest_score": 0,
        "badges": [],
        "rank": 0,
    }


def _company_profile(request: RegisterRequest) -> dict:
    return {
        "hr_contact": request.hr_contact,
        "contact_number": request.contact_number,
        "industry": request.industry,
        "website": request.website,
        "jobs": [],
    }


def _tpo_profile(request: RegisterRequest) -> dict:
    return {
        "institute_name": request.institute_name,
        "contact_number": request.contact_number,
    }


PROFILE_REGISTRY = {
    "student": {
        "collection": COLLECTIONS["students"],
        "profile_type": "Student",
        "required": ["roll_number", "branch", "graduation_year"],
        "build": _student_profile,
    },
    "company": {
        "collection": COLLECTIONS["companies"],
        "profile_type": "Company",
        "required": ["hr_contact", "contact_number"],
        "build": _company_profile,
    },
    "tpo": {
        "collection": COLLECTIONS["tpos"],
        "profile_type": "TPO",
        "required": ["institute_name", "contact_number"],
        "build": _tpo_profile,
    },
}


def profile_collection(role: str) -> Collection:
    """Resolve the profile collection for a role."""
    return get_collection(PROFILE_REGISTRY[role]["collection"])


class IdentityService:
    """Registration, login and profile resolution."""

    def __init__(self):
        self.users: Collection = get_collection(COLLECTIONS["users"])

    def register(self, request: RegisterRequest) -> dict:
        """
        Create the role profile, then the user pointing at it.

        Raises:
            ValidationError: a role-specific field is missing
            StateConflictError: email already registered
        """
        role = request.role.value
        entry = PROFILE_REGISTRY[role]

        missing = [f for f in entry["required"] if getattr(request, f) in (None, "")]
        if missing:
            raise ValidationError(f"{', '.join(missing)} required for {role} registration")

        email = request.email.lower()
        if self.users.find_one({"email": email}):
            raise StateConflictError("User already exists with this email")

        now = utcnow()
        profile = {
            "name": request.name,
            "email": email,
            "phone": request.phone,
            "address": request.address,
            "created_at": now,
            "updated_at": now,
            **entry["build"](request),
        }
        profiles = profile_collection(role)
        profile_id = profiles.insert_one(profile).inserted_id

        user = {
            "name": request.name,
            "email": email,
            "password_hash": hash_password(request.password),
            "role": role,
            "profile_type": entry["profile_type"],
            "profile_id": profile_id,
            "created_at": now,
        }
        try:
            user_id = self.users.insert_one(user).inserted_id
        except DuplicateKeyError:
            # Lost a registration race on the same email
            profiles.delete_one({"_id": profile_id})
            raise StateConflictError("User already exists with this email")

        logger.info("Registered %s user %s", role, user_id)
        return {
            "user_id": str(user_id),
            "name": request.name,
            "email": email,
            "role": role,
            "profile_id": str(profile_id),
        }

    def login(self, email: str, password: str) -> dict:
        """Verify credentials and issue a bearer token."""
        user = self.users.find_one({"email": email.lower()})
        if not user or not verify_password(password, user["password_hash"]):
            raise AuthenticationError("Invalid email or password")

        token = create_access_token(data={
            "sub": str(user["_id"]),
            "role": user["role"],
            "profile_id": str(user["profile_id"]),
        })
        return {
            "access_token": token,
            "token_type": "bearer",
            "user_id": str(user["_id"]),
            "role": user["role"],
            "profile_id": str(user["profile_id"]),
        }

    def get_profile(self, role: str, profile_id) -> Optional[dict]:
        """Fetch the role profile a user points at."""
        return profile_collection(role).find_one({"_id": profile_id})

    def describe(self, user: dict) -> dict:
        """Current user plus the resolved profile (no secrets)."""
        profile = self.get_profile(user["role"], user["profile_id"])
        if profile is None:
            raise NotFoundError("Profile not found")
        profile.pop("quiz_scores", None)
        return {
            "user_id": str(user["user_id"]),
            "name": user["name"],
            "email": user["email"],
            "role": user["role"],
            "profile": serialize_doc(profile),
        }
