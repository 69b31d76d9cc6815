"""
Ranking Routes

GET /ranking/leaderboard - Campus leaderboard, caller first
GET /ranking/my-ranking - Caller's aggregate, recent quizzes and trend
GET /ranking/top-performers - First N students
GET /ranking/stats - Participation and score distribution
POST /ranking/update-score - Record a quiz score manually (TPO)
"""

from fastapi import APIRouter, Depends, Query

from app.core.auth import get_current_student, get_current_tpo, get_current_user
from app.schemas.schemas import APIResponse, ScoreUpdateRequest
from app.services.ranking_service import RankingService

router = APIRouter(prefix="/ranking", tags=["Ranking"])


@router.get("/leaderboard", response_model=APIResponse)
def leaderboard(user: dict = Depends(get_current_user)):
    current = user["profile_id"] if user["role"] == "student" else None
    return APIResponse(data=RankingService().leaderboard(current))


@router.get("/my-ranking", response_model=APIResponse)
def my_ranking(student: dict = Depends(get_current_student)):
    return APIResponse(data=RankingService().my_ranking(student["student_id"]))


@router.get("/top-performers", response_model=APIResponse)
def top_performers(limit: int = Query(10, ge=1, le=100), user: dict = Depends(get_current_user)):
    return APIResponse(data={"top_performers": RankingService().top_performers(limit)})


@router.get("/stats", response_model=APIResponse)
def ranking_stats(user: dict = Depends(get_current_user)):
    return APIResponse(data=RankingService().stats())


@router.post("/update-score", response_model=APIResponse)
def update_score(body: ScoreUpdateRequest, tpo: dict = Depends(get_current_tpo)):
    result = RankingService().record_quiz_completion(body.student_id, body.quiz_id, body.score, body.percentage)
    return APIResponse(message="Student score updated successfully", data=result)
