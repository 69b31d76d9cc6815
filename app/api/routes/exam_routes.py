"""
Exam Routes - timed test sessions

POST /tests/start/{question_set_id} - Start a timed test
POST /tests/{session_id}/answer/{question_id} - Answer one question
POST /tests/{session_id}/submit - Finish the test and update ranking
GET /tests/results - All completed tests of the student
GET /tests/results/{session_id} - Detailed result of one test
GET /tests/analytics/{question_set_id} - Results per question set (owning TPO)
"""

from fastapi import APIRouter, Depends

from app.core.auth import get_current_student, get_current_tpo
from app.schemas.schemas import AnswerSubmit, APIResponse
from app.services.quiz_service import QuizService

router = APIRouter(prefix="/tests", tags=["Tests"])


@router.post("/start/{question_set_id}", response_model=APIResponse, status_code=201)
def start_test(question_set_id: str, student: dict = Depends(get_current_student)):
    session = QuizService().start_test(student["student_id"], question_set_id)
    return APIResponse(message="Test started successfully", data=session)


@router.post("/{session_id}/answer/{question_id}", response_model=APIResponse)
def submit_answer(session_id: str, question_id: str, body: AnswerSubmit,
                  student: dict = Depends(get_current_student)):
    result = QuizService().submit_answer(session_id, question_id, student["student_id"], body.selected_answer)
    return APIResponse(message="Answer submitted successfully", data=result)


@router.post("/{session_id}/submit", response_model=APIResponse)
def submit_test(session_id: str, student: dict = Depends(get_current_student)):
    result = QuizService().submit_test(session_id, student["student_id"])
    return APIResponse(message="Test submitted successfully", data=result)


@router.get("/results", response_model=APIResponse)
def list_results(student: dict = Depends(get_current_student)):
    return APIResponse(data=QuizService().list_results(student["student_id"]))


@router.get("/results/{session_id}", response_model=APIResponse)
def get_result(session_id: str, student: dict = Depends(get_current_student)):
    return APIResponse(data=QuizService().get_result(session_id, student["student_id"]))


@router.get("/analytics/{question_set_id}", response_model=APIResponse)
def test_analytics(question_set_id: str, tpo: dict = Depends(get_current_tpo)):
    return APIResponse(data=QuizService().analytics(question_set_id, tpo["tpo_id"]))
