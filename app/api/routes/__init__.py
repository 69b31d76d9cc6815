"""
API Routes - Combines all route modules into single router.
"""

from fastapi import APIRouter

from app.api.routes.auth_routes import router as auth_router
from app.api.routes.student_routes import router as student_router
from app.api.routes.company_routes import router as company_router
from app.api.routes.tpo_routes import router as tpo_router
from app.api.routes.timeline_routes import router as timeline_router
from app.api.routes.question_routes import router as question_router
from app.api.routes.exam_routes import router as exam_router
from app.api.routes.ranking_routes import router as ranking_router

# Main API router
api_router = APIRouter()

# Include all sub-routers
api_router.include_router(auth_router)
api_router.include_router(student_router)
api_router.include_router(company_router)
api_router.include_router(tpo_router)
api_router.include_router(timeline_router)
api_router.include_router(question_router)
api_router.include_router(exam_router)
api_router.include_router(ranking_router)
