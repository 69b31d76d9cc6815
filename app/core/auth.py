"""
Authentication Utility - JWT and Password handling.

Provides:
- Password hashing with bcrypt
- JWT token creation/verification
- FastAPI dependencies for protected routes

The token carries {sub: user id, role, profile_id}; profile_id points at the
role-specific document (students / companies / tpos).
"""

from datetime import datetime, timedelta, timezone
from typing import Optional
from jose import JWTError, jwt
from passlib.context import CryptContext
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from bson.errors import InvalidId
from bson import ObjectId

from app.core.config import get_settings
from app.core.errors import AuthenticationError, AuthorizationError
from app.db.mongodb import get_collection, COLLECTIONS

settings = get_settings()

# Password hashing
pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=settings.bcrypt_rounds
)

# Bearer token extractor (missing header is reported by get_current_user)
bearer_scheme = HTTPBearer(auto_error=False)


def hash_password(password: str) -> str:
    """Hash password with bcrypt."""
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify password against hash."""
    return pwd_context.verify(plain_password, hashed_password)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Create JWT access token."""
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=settings.jwt_expire_minutes))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_token(token: str) -> Optional[dict]:
    """Decode and verify JWT token."""
    try:
        return jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError:
        return None


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme)
) -> dict:
    """
    FastAPI dependency - Get current authenticated user.

    Usage:
        @app.get("/protected")
        async def route(user: dict = Depends(get_current_user)):
            return user
    """
    if credentials is None:
        raise AuthenticationError("Access denied: no token provided")

    payload = decode_token(credentials.credentials)
    if not payload or not payload.get("sub"):
        raise AuthenticationError("Invalid or expired token")

    try:
        user_id = ObjectId(payload["sub"])
    except (InvalidId, TypeError):
        raise AuthenticationError("Invalid or expired token")

    # Verify user still exists
    user = get_collection(COLLECTIONS["users"]).find_one({"_id": user_id})
    if not user:
        raise AuthenticationError("Invalid or expired token")

    return {
        "user_id": user["_id"],
        "name": user["name"],
        "email": user["email"],
        "role": user["role"],
        "profile_id": user["profile_id"]
    }


def require_roles(*roles: str):
    """Dependency factory - allow only the given roles."""
    async def dependency(user: dict = Depends(get_current_user)) -> dict:
        if user["role"] not in roles:
            raise AuthorizationError("Access denied: you do not have the required role")
        return user
    return dependency


async def get_current_student(user: dict = Depends(get_current_user)) -> dict:
    """Dependency - Require student role and expose student_id."""
    if user["role"] != "student":
        raise AuthorizationError("Access denied: student role required")
    user["student_id"] = user["profile_id"]
    return user


async def get_current_company(user: dict = Depends(get_current_user)) -> dict:
    """Dependency - Require company role and expose company_id."""
    if user["role"] != "company":
        raise AuthorizationError("Access denied: company role required")
    user["company_id"] = user["profile_id"]
    return user


async def get_current_tpo(user: dict = Depends(get_current_user)) -> dict:
    """Dependency - Require TPO role and expose tpo_id."""
    if user["role"] != "tpo":
        raise AuthorizationError("Access denied: TPO role required")
    user["tpo_id"] = user["profile_id"]
    return user
