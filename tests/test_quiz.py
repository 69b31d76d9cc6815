import pytest

from app.core.errors import NotFoundError, StateConflictError, ValidationError
from app.schemas.schemas import QuestionCreate, QuestionSetCreate, QuestionSetUpdate
from app.services.quiz_service import QuizService

from tests.conftest import register


@pytest.fixture
def question_set(tpo):
    service = QuizService()
    qs = service.create_question_set(tpo["profile_id"], QuestionSetCreate(
        title="Aptitude Round 1",
        description="Quantitative aptitude",
        maximum_marks=10,
        marks_per_question=5,
        total_questions=2,
        time_limit=20,
    ))
    for text, answer, category in [("2 + 2 = ?", "B", "Arithmetic"), ("Next prime after 7?", "C", None)]:
        service.create_question(tpo["profile_id"], QuestionCreate(
            question_text=text,
            options={"A": "3", "B": "4", "C": "11", "D": "9"},
            correct_answer=answer,
            marks=5,
            category=category,
            question_set_id=qs["_id"],
        ))
    return service.get_question_set(qs["_id"], include_answers=True)


def test_question_set_hides_answers_from_students(question_set):
    student_view = QuizService().get_question_set(question_set["_id"])
    assert len(student_view["questions"]) == 2
    assert all("correct_answer" not in q for q in student_view["questions"])
    assert all("correct_answer" in q for q in question_set["questions"])


def test_deleted_question_set_is_deactivated(question_set, student):
    service = QuizService()
    service.delete_question_set(question_set["_id"])

    assert service.list_question_sets() == []
    with pytest.raises(NotFoundError):
        service.start_test(student["profile_id"], question_set["_id"])


def test_delete_question_removes_it_from_set(question_set, db):
    service = QuizService()
    question_id = question_set["questions"][0]["_id"]
    service.delete_question(question_id)

    assert len(service.get_question_set(question_set["_id"])["questions"]) == 1
    with pytest.raises(NotFoundError):
        service.delete_question(question_id)


def test_update_question_set(question_set):
    updated = QuizService().update_question_set(question_set["_id"], QuestionSetUpdate(time_limit=45))
    assert updated["time_limit"] == 45
    assert updated["title"] == "Aptitude Round 1"


# ============================================================
# sessions
# ============================================================

def test_full_test_session(question_set, student, db):
    service = QuizService()
    started = service.start_test(student["profile_id"], question_set["_id"])
    assert started["question_set"]["maximum_marks"] == 10
    assert all("correct_answer" not in q for q in started["questions"])

    session_id = started["test_session"]
    first, second = (q["_id"] for q in question_set["questions"])

    answer = service.submit_answer(session_id, first, student["profile_id"], "B")
    assert answer == {"is_correct": True, "marks_obtained": 5, "correct_answer": "B"}
    service.submit_answer(session_id, second, student["profile_id"], "A")

    result = service.submit_test(session_id, student["profile_id"])
    assert result["statistics"]["total_score"] == 5
    assert result["statistics"]["percentage"] == 50.0
    assert result["statistics"]["correct_answers"] == 1
    assert result["performance_summary"]["total_score"]["color"] == "red"
    sections = {s["section"]: s for s in result["subject_wise_performance"]}
    assert sections["Arithmetic"]["score_percentage"] == 100
    assert sections["General"]["incorrect"] == 1

    stored = db.students.find_one({"_id": student["profile_id"]})
    assert stored["total_score"] == 5
    assert stored["total_quizzes_taken"] == 1
    assert stored["rank"] == 1


def test_answer_can_be_changed_before_submit(question_set, student):
    service = QuizService()
    session_id = service.start_test(student["profile_id"], question_set["_id"])["test_session"]
    question_id = question_set["questions"][0]["_id"]

    service.submit_answer(session_id, question_id, student["profile_id"], "A")
    service.submit_answer(session_id, question_id, student["profile_id"], "B")
    result = service.submit_test(session_id, student["profile_id"])
    assert result["statistics"]["total_score"] == 5


def test_only_one_open_session_per_set(question_set, student):
    service = QuizService()
    session_id = service.start_test(student["profile_id"], question_set["_id"])["test_session"]
    with pytest.raises(StateConflictError):
        service.start_test(student["profile_id"], question_set["_id"])

    service.submit_test(session_id, student["profile_id"])
    service.start_test(student["profile_id"], question_set["_id"])


def test_invalid_answer_option(question_set, student):
    service = QuizService()
    session_id = service.start_test(student["profile_id"], question_set["_id"])["test_session"]
    with pytest.raises(ValidationError):
        service.submit_answer(session_id, question_set["questions"][0]["_id"], student["profile_id"], "E")


def test_submitted_session_is_closed(question_set, student):
    service = QuizService()
    session_id = service.start_test(student["profile_id"], question_set["_id"])["test_session"]
    service.submit_test(session_id, student["profile_id"])

    with pytest.raises(NotFoundError):
        service.submit_test(session_id, student["profile_id"])
    with pytest.raises(NotFoundError):
        service.submit_answer(session_id, question_set["questions"][0]["_id"], student["profile_id"], "A")


def test_results_are_private(question_set, student):
    service = QuizService()
    session_id = service.start_test(student["profile_id"], question_set["_id"])["test_session"]
    service.submit_test(session_id, student["profile_id"])

    assert service.get_result(session_id, student["profile_id"])["statistics"]["total_questions"] == 2
    assert len(service.list_results(student["profile_id"])) == 1

    other = register("student", "ben@college.edu", "Ben", roll_number="CS002")
    with pytest.raises(NotFoundError):
        service.get_result(session_id, other["profile_id"])


def test_analytics_for_owner_only(question_set, student, tpo):
    service = QuizService()
    session_id = service.start_test(student["profile_id"], question_set["_id"])["test_session"]
    first = question_set["questions"][0]["_id"]
    service.submit_answer(session_id, first, student["profile_id"], "B")
    service.submit_test(session_id, student["profile_id"])

    data = service.analytics(question_set["_id"], tpo["profile_id"])
    assert data["analytics"]["total_students"] == 1
    assert data["analytics"]["average_score"] == 50
    assert data["analytics"]["question_analytics"][first]["success_rate"] == 100

    other_tpo = register("tpo", "tpo2@college.edu", "Second Office")
    with pytest.raises(NotFoundError):
        service.analytics(question_set["_id"], other_tpo["profile_id"])
