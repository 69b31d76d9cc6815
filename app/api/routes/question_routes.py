"""
Question Bank Routes

POST /questions/question-sets - Create a question set (TPO)
GET /questions/question-sets - Active question sets
GET /questions/question-sets/{id} - Set with questions (answers hidden from students)
PUT /questions/question-sets/{id} - Update a set (TPO)
DELETE /questions/question-sets/{id} - Deactivate a set (TPO)
POST /questions/questions - Create a question (TPO)
GET /questions/questions - List questions (TPO)
PUT /questions/questions/{id} - Update a question (TPO)
DELETE /questions/questions/{id} - Delete a question (TPO)
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from app.core.auth import get_current_tpo, get_current_user
from app.schemas.schemas import (
    APIResponse, QuestionCreate, QuestionSetCreate, QuestionSetUpdate, QuestionUpdate
)
from app.services.quiz_service import QuizService

router = APIRouter(prefix="/questions", tags=["Questions"])


# ============================================================
# QUESTION SETS
# ============================================================

@router.post("/question-sets", response_model=APIResponse, status_code=201)
def create_question_set(data: QuestionSetCreate, tpo: dict = Depends(get_current_tpo)):
    question_set = QuizService().create_question_set(tpo["tpo_id"], data)
    return APIResponse(message="Question set created successfully", data=question_set)


@router.get("/question-sets", response_model=APIResponse)
def list_question_sets(user: dict = Depends(get_current_user)):
    return APIResponse(data=QuizService().list_question_sets())


@router.get("/question-sets/{question_set_id}", response_model=APIResponse)
def get_question_set(question_set_id: str, user: dict = Depends(get_current_user)):
    question_set = QuizService().get_question_set(question_set_id, include_answers=user["role"] == "tpo")
    return APIResponse(data=question_set)


@router.put("/question-sets/{question_set_id}", response_model=APIResponse)
def update_question_set(question_set_id: str, data: QuestionSetUpdate, tpo: dict = Depends(get_current_tpo)):
    question_set = QuizService().update_question_set(question_set_id, data)
    return APIResponse(message="Question set updated successfully", data=question_set)


@router.delete("/question-sets/{question_set_id}", response_model=APIResponse)
def delete_question_set(question_set_id: str, tpo: dict = Depends(get_current_tpo)):
    QuizService().delete_question_set(question_set_id)
    return APIResponse(message="Question set deleted successfully")


# ============================================================
# QUESTIONS
# ============================================================

@router.post("/questions", response_model=APIResponse, status_code=201)
def create_question(data: QuestionCreate, tpo: dict = Depends(get_current_tpo)):
    question = QuizService().create_question(tpo["tpo_id"], data)
    return APIResponse(message="Question created successfully", data=question)


@router.get("/questions", response_model=APIResponse)
def list_questions(
    question_set_id: Optional[str] = Query(None),
    tpo: dict = Depends(get_current_tpo)
):
    return APIResponse(data=QuizService().list_questions(question_set_id))


@router.put("/questions/{question_id}", response_model=APIResponse)
def update_question(question_id: str, data: QuestionUpdate, tpo: dict = Depends(get_current_tpo)):
    question = QuizService().update_question(question_id, data)
    return APIResponse(message="Question updated successfully", data=question)


@router.delete("/questions/{question_id}", response_model=APIResponse)
def delete_question(question_id: str, tpo: dict = Depends(get_current_tpo)):
    QuizService().delete_question(question_id)
    return APIResponse(message="Question deleted successfully")
