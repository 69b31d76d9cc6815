"""
Quiz Service - question banks and timed test sessions.

Question sets and questions are maintained by TPOs. Students take a set
through a test session:

    start_test()    one open session per (student, set)
    submit_answer() per question, marks recalculated every time
    submit_test()   closes the session and feeds the ranking service

Correct answers are never sent to the student before an answer is given.
"""

import logging
from typing import List, Optional

from bson import ObjectId
from pymongo import ReturnDocument
from pymongo.collection import Collection

from app.core.errors import NotFoundError, StateConflictError, ValidationError
from app.db.mongodb import get_collection, COLLECTIONS
from app.schemas.schemas import (
    AnswerOption, QuestionCreate, QuestionSetCreate, QuestionSetUpdate, QuestionUpdate
)
from app.services.mongo_service import serialize_doc, serialize_docs, to_object_id, utcnow
from app.services.ranking_service import RankingService

logger = logging.getLogger(__name__)

VALID_ANSWERS = [option.value for option in AnswerOption]


def percentage(obtained: float, possible: float) -> float:
    return obtained / possible * 100 if possible else 0


def score_color(pct: float) -> str:
    if pct >= 80:
        return "green"
    if pct >= 60:
        return "blue"
    return "red"


class QuizService:

    def __init__(self):
        self.question_sets: Collection = get_collection(COLLECTIONS["question_sets"])
        self.questions: Collection = get_collection(COLLECTIONS["questions"])
        self.sessions: Collection = get_collection(COLLECTIONS["test_sessions"])
        self.ranking = RankingService()

    # ============================================================
    # QUESTION SETS
    # ============================================================

    def create_question_set(self, tpo_id: ObjectId, data: QuestionSetCreate) -> dict:
        now = utcnow()
        question_set = {
            **data.model_dump(),
            "is_active": True,
            "created_by": tpo_id,
            "questions": [],
            "created_at": now,
            "updated_at": now,
        }
        question_set["_id"] = self.question_sets.insert_one(question_set).inserted_id
        logger.info("TPO %s created question set %s", tpo_id, question_set["_id"])
        return serialize_doc(question_set)

    def list_question_sets(self) -> list:
        """Active sets only, newest first."""
        return serialize_docs(self.question_sets.find({"is_active": True}).sort("created_at", -1))

    def get_question_set(self, question_set_id, include_answers: bool = False) -> dict:
        """Set with its questions; answers and explanations only for TPO views."""
        question_set = self.question_sets.find_one({"_id": to_object_id(question_set_id, "Question set")})
        if not question_set:
            raise NotFoundError("Question set not found")

        projection = None if include_answers else {"correct_answer": 0, "explanation": 0}
        question_set["questions"] = list(
            self.questions.find({"_id": {"$in": question_set["questions"]}}, projection)
        )
        return serialize_doc(question_set)

    def update_question_set(self, question_set_id, update: QuestionSetUpdate) -> dict:
        changes = update.model_dump(exclude_none=True)
        changes["updated_at"] = utcnow()
        question_set = self.question_sets.find_one_and_update(
            {"_id": to_object_id(question_set_id, "Question set")},
            {"$set": changes},
            return_document=ReturnDocument.AFTER
        )
        if not question_set:
            raise NotFoundError("Question set not found")
        return serialize_doc(question_set)

    def delete_question_set(self, question_set_id) -> None:
        """Soft delete: the set is deactivated so past sessions keep their reference."""
        result = self.question_sets.update_one(
            {"_id": to_object_id(question_set_id, "Question set")},
            {"$set": {"is_active": False, "updated_at": utcnow()}}
        )
        if result.matched_count == 0:
            raise NotFoundError("Question set not found")

    # ============================================================
    # QUESTIONS
    # ============================================================

    def create_question(self, tpo_id: ObjectId, data: QuestionCreate) -> dict:
        set_id = None
        if data.question_set_id:
            set_id = to_object_id(data.question_set_id, "Question set")
            if not self.question_sets.find_one({"_id": set_id}, {"_id": 1}):
                raise NotFoundError("Question set not found")

        question = {
            **data.model_dump(mode="json", exclude={"question_set_id"}),
            "question_set_id": set_id,
            "created_by": tpo_id,
            "created_at": utcnow(),
        }
        question["_id"] = self.questions.insert_one(question).inserted_id
        if set_id:
            self.question_sets.update_one({"_id": set_id}, {"$push": {"questions": question["_id"]}})
        return serialize_doc(question)

    def list_questions(self, question_set_id: Optional[str] = None) -> list:
        query = {}
        if question_set_id:
            query["question_set_id"] = to_object_id(question_set_id, "Question set")
        return serialize_docs(self.questions.find(query).sort("created_at", -1))

    def update_question(self, question_id, update: QuestionUpdate) -> dict:
        changes = update.model_dump(mode="json", exclude_none=True)
        if not changes:
            raise ValidationError("Nothing to update")
        question = self.questions.find_one_and_update(
            {"_id": to_object_id(question_id, "Question")},
            {"$set": changes},
            return_document=ReturnDocument.AFTER
        )
        if not question:
            raise NotFoundError("Question not found")
        return serialize_doc(question)

    def delete_question(self, question_id) -> None:
        question = self.questions.find_one_and_delete({"_id": to_object_id(question_id, "Question")})
        if not question:
            raise NotFoundError("Question not found")
        if question.get("question_set_id"):
            self.question_sets.update_one(
                {"_id": question["question_set_id"]},
                {"$pull": {"questions": question["_id"]}}
            )

    # ============================================================
    # TEST SESSIONS
    # ============================================================

    def start_test(self, student_id: ObjectId, question_set_id) -> dict:
        """
        Raises:
            NotFoundError: set missing or inactive
            StateConflictError: an unfinished session for this set exists
        """
        set_id = to_object_id(question_set_id, "Question set")
        question_set = self.question_sets.find_one({"_id": set_id, "is_active": True})
        if not question_set:
            raise NotFoundError("Question set not found or inactive")

        if self.sessions.find_one({"student_id": student_id, "question_set_id": set_id, "is_completed": False}):
            raise StateConflictError("You have already started this test")

        questions = list(self.questions.find(
            {"_id": {"$in": question_set["questions"]}},
            {"question_text": 1, "options": 1, "marks": 1}
        ))
        session = {
            "student_id": student_id,
            "question_set_id": set_id,
            "answers": [{
                "question_id": q["_id"],
                "selected_answer": None,
                "is_correct": False,
                "marks_obtained": 0,
                "time_taken": None,
            } for q in questions],
            "total_marks_obtained": 0,
            "total_marks_possible": question_set["maximum_marks"],
            "percentage": 0,
            "start_time": utcnow(),
            "end_time": None,
            "duration": None,
            "is_completed": False,
            "is_submitted": False,
        }
        session["_id"] = self.sessions.insert_one(session).inserted_id

        return {
            "test_session": str(session["_id"]),
            "question_set": {
                "title": question_set["title"],
                "description": question_set["description"],
                "time_limit": question_set["time_limit"],
                "total_questions": question_set["total_questions"],
                "maximum_marks": question_set["maximum_marks"],
            },
            "questions": serialize_docs(questions),
            "start_time": session["start_time"],
        }

    def _open_session(self, session_id, student_id: ObjectId) -> dict:
        session = self.sessions.find_one({
            "_id": to_object_id(session_id, "Test session"),
            "student_id": student_id,
            "is_completed": False,
        })
        if not session:
            raise NotFoundError("Test session not found or already completed")
        return session

    def submit_answer(self, session_id, question_id, student_id: ObjectId, selected_answer: str) -> dict:
        if selected_answer not in VALID_ANSWERS:
            raise ValidationError("Invalid answer format")

        session = self._open_session(session_id, student_id)
        question = self.questions.find_one({"_id": to_object_id(question_id, "Question")})
        if not question:
            raise NotFoundError("Question not found")

        answers = session["answers"]
        index = next((i for i, a in enumerate(answers) if a["question_id"] == question["_id"]), None)
        if index is None:
            raise NotFoundError("Question not found in this test")

        is_correct = selected_answer == question["correct_answer"]
        marks = question["marks"] if is_correct else 0
        answers[index] = {
            "question_id": question["_id"],
            "selected_answer": selected_answer,
            "is_correct": is_correct,
            "marks_obtained": marks,
            "time_taken": (utcnow() - session["start_time"]).total_seconds(),
        }
        obtained = sum(a["marks_obtained"] for a in answers)
        self.sessions.update_one({"_id": session["_id"]}, {"$set": {
            "answers": answers,
            "total_marks_obtained": obtained,
            "percentage": percentage(obtained, session["total_marks_possible"]),
        }})

        return {"is_correct": is_correct, "marks_obtained": marks, "correct_answer": question["correct_answer"]}

    def submit_test(self, session_id, student_id: ObjectId) -> dict:
        """Close the session, record the score for ranking, return the result view."""
        session = self._open_session(session_id, student_id)
        end_time = utcnow()
        duration = (end_time - session["start_time"]).total_seconds() / 60

        self.sessions.update_one({"_id": session["_id"]}, {"$set": {
            "end_time": end_time,
            "duration": duration,
            "is_completed": True,
            "is_submitted": True,
        }})
        session.update(end_time=end_time, duration=duration, is_completed=True, is_submitted=True)

        try:
            self.ranking.record_quiz_completion(
                student_id, session["question_set_id"],
                session["total_marks_obtained"], session["percentage"]
            )
        except Exception:
            logger.exception("Failed to update ranking for student %s after session %s",
                             student_id, session["_id"])

        logger.info("Student %s submitted test session %s (%.1f%%)",
                    student_id, session["_id"], session["percentage"])
        return self._result_view(session)

    # ============================================================
    # RESULTS
    # ============================================================

    def _result_view(self, session: dict) -> dict:
        questions = {
            q["_id"]: q for q in self.questions.find(
                {"_id": {"$in": [a["question_id"] for a in session["answers"]]}}
            )
        }
        question_set = self.question_sets.find_one(
            {"_id": session["question_set_id"]}, {"title": 1, "description": 1, "maximum_marks": 1}
        )

        by_category = {}
        analysis = []
        for answer in session["answers"]:
            question = questions.get(answer["question_id"], {})
            category = question.get("category") or "General"
            total_marks = question.get("marks", 0)

            section = by_category.setdefault(
                category, {"section": category, "correct": 0, "incorrect": 0, "total": 0,
                           "score": 0, "total_marks": 0}
            )
            section["total"] += 1
            section["total_marks"] += total_marks
            if answer["is_correct"]:
                section["correct"] += 1
                section["score"] += answer["marks_obtained"]
            else:
                section["incorrect"] += 1

            analysis.append({
                "question_id": str(answer["question_id"]),
                "question_text": question.get("question_text"),
                "selected_answer": answer["selected_answer"],
                "correct_answer": question.get("correct_answer"),
                "is_correct": answer["is_correct"],
                "marks_obtained": answer["marks_obtained"],
                "total_marks": total_marks,
                "category": category,
                "difficulty": question.get("difficulty"),
                "explanation": question.get("explanation"),
                "time_taken": answer.get("time_taken"),
            })

        for section in by_category.values():
            section["score_percentage"] = (
                round(section["score"] / section["total_marks"] * 100) if section["total_marks"] else 0
            )

        total_questions = len(session["answers"])
        correct = sum(1 for a in session["answers"] if a["is_correct"])
        pct = session["percentage"]
        return {
            "performance_summary": {
                "total_score": {"value": round(pct, 1), "unit": "%", "label": "Total Score",
                                "color": score_color(pct)},
                "correct_answers": {"value": f"{correct}/{total_questions}", "label": "Correct Answers",
                                    "color": "blue"},
                "wrong_answers": {"value": total_questions - correct, "label": "Wrong Answers",
                                  "color": "red"},
            },
            "subject_wise_performance": list(by_category.values()),
            "statistics": {
                "total_questions": total_questions,
                "correct_answers": correct,
                "wrong_answers": total_questions - correct,
                "total_score": session["total_marks_obtained"],
                "total_possible": session["total_marks_possible"],
                "percentage": round(pct, 1),
                "duration": session["duration"],
                "average_time_per_question": (
                    session["duration"] / total_questions if total_questions and session["duration"] else None
                ),
            },
            "question_analysis": analysis,
            "test_details": {
                "question_set": serialize_doc(question_set),
                "start_time": session["start_time"],
                "end_time": session["end_time"],
                "duration": session["duration"],
            },
        }

    def get_result(self, session_id, student_id: ObjectId) -> dict:
        session = self.sessions.find_one({
            "_id": to_object_id(session_id, "Test result"),
            "student_id": student_id,
            "is_completed": True,
        })
        if not session:
            raise NotFoundError("Test result not found")
        return self._result_view(session)

    def list_results(self, student_id: ObjectId) -> List[dict]:
        sessions = list(self.sessions.find(
            {"student_id": student_id, "is_completed": True}, {"answers": 0}
        ).sort("start_time", -1))
        sets = {
            s["_id"]: s for s in self.question_sets.find(
                {"_id": {"$in": [s["question_set_id"] for s in sessions]}}, {"title": 1, "maximum_marks": 1}
            )
        }
        for session in sessions:
            session["question_set"] = sets.get(session["question_set_id"])
        return serialize_docs(sessions)

    def analytics(self, question_set_id, tpo_id: ObjectId) -> dict:
        """Per-set results for the TPO who created it."""
        question_set = self.question_sets.find_one({
            "_id": to_object_id(question_set_id, "Question set"),
            "created_by": tpo_id,
        })
        if not question_set:
            raise NotFoundError("Question set not found")

        sessions = list(self.sessions.find({"question_set_id": question_set["_id"], "is_completed": True}))
        total = len(sessions)

        questions = {
            q["_id"]: q for q in self.questions.find(
                {"_id": {"$in": question_set["questions"]}}, {"question_text": 1}
            )
        }
        question_analytics = {}
        for qid, question in questions.items():
            correct = sum(
                1 for s in sessions
                if any(a["question_id"] == qid and a["is_correct"] for a in s["answers"])
            )
            question_analytics[str(qid)] = {
                "question_text": question["question_text"],
                "correct_answers": correct,
                "total_attempts": total,
                "success_rate": correct / total * 100 if total else 0,
            }

        return {
            "question_set": {
                "title": question_set["title"],
                "description": question_set["description"],
                "maximum_marks": question_set["maximum_marks"],
            },
            "analytics": {
                "total_students": total,
                "average_score": sum(s["percentage"] for s in sessions) / total if total else 0,
                "question_analytics": question_analytics,
            },
            "results": [{
                "session_id": str(s["_id"]),
                "student_id": str(s["student_id"]),
                "total_marks_obtained": s["total_marks_obtained"],
                "percentage": s["percentage"],
                "end_time": s["end_time"],
            } for s in sessions],
        }
