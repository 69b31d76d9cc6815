"""
Placement Portal - Main Application

FastAPI backend with:
- MongoDB for every entity (users, jobs, applications, quizzes, notifications)
- JWT authentication for students, companies and the TPO
- Job approval workflow, application timelines, quiz ranking

Run: uvicorn app.main:app --reload
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.api.routes import api_router
from app.core.config import get_settings
from app.core.errors import PlacementError
from app.core.logging import setup_logging
from app.db.mongodb import init_mongo_indexes, test_mongo_connection

settings = get_settings()

setup_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create MongoDB indexes on startup."""
    try:
        init_mongo_indexes()
        logger.info("MongoDB indexes initialized")
    except Exception:
        logger.exception("MongoDB index initialization failed")
    yield


app = FastAPI(
    title="Placement Portal",
    description="""
    Campus placement management backend.

    ## Features
    - **Authentication**: JWT-based auth for students, companies and TPOs
    - **Companies**: Post jobs and track applicants through each stage
    - **TPO**: Approve or reject job postings, manage jobs, reports
    - **Students**: Browse approved jobs, apply, follow the placement timeline
    - **Quizzes**: Timed tests, campus leaderboard and badges
    """,
    version="1.0.0",
    debug=settings.debug,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc"
)

# CORS middleware (allow all for development)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API routes
app.include_router(api_router, prefix="/api")


# ============================================================
# ERROR HANDLERS - every failure uses the {success, message} envelope
# ============================================================

def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "message": message})


@app.exception_handler(PlacementError)
async def placement_error_handler(request: Request, exc: PlacementError):
    return _error(exc.status_code, exc.message)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return _error(exc.status_code, str(exc.detail))


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    problems = "; ".join(
        f"{'.'.join(str(p) for p in err['loc'] if p != 'body')}: {err['msg']}" for err in exc.errors()
    )
    return _error(400, f"Invalid request: {problems}")


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return _error(500, "Internal server error")


@app.get("/health", tags=["Health"])
def health_check():
    """Health check with database status."""
    return {
        "status": "healthy",
        "mongodb": "connected" if test_mongo_connection() else "disconnected"
    }
