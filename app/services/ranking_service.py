"""
Ranking Service - quiz score aggregates, badges and the campus leaderboard.

Every student carries a ranking aggregate:

    quiz_scores         append-only [{quiz_id, score, percentage, completed_at}]
    total_score         sum of scores
    total_quizzes_taken len(quiz_scores)
    average_score       total_score / total_quizzes_taken
    highest_score       running max
    rank                position by (total_score desc, average_score desc, _id asc)
    badges              grows only, written with $addToSet

A quiz completion changes one student's totals but can move everyone's
rank, so the whole ordering is rewritten after each completion. Those
re-rank passes are serialized with a process-wide lock.
"""

import logging
import threading
from typing import Iterable, List, Optional, Set

from bson import ObjectId
from pymongo import UpdateOne
from pymongo.collection import Collection

from app.core.errors import NotFoundError
from app.db.mongodb import get_collection, COLLECTIONS
from app.services.mongo_service import serialize_doc, to_object_id, utcnow

logger = logging.getLogger(__name__)

_rank_lock = threading.Lock()

# Global ordering, shared by re-rank and every leaderboard read
RANK_SORT = [("total_score", -1), ("average_score", -1), ("_id", 1)]

SCORE_BUCKETS = [
    (100, "0-100"),
    (500, "100-500"),
    (1000, "500-1000"),
    (2000, "1000-2000"),
]


# ============================================================
# PURE HELPERS
# ============================================================

def compute_aggregates(quiz_scores: List[dict]) -> dict:
    total = sum(q["score"] for q in quiz_scores)
    count = len(quiz_scores)
    return {
        "total_score": total,
        "total_quizzes_taken": count,
        "average_score": total / count if count else 0,
        "highest_score": max((q["score"] for q in quiz_scores), default=0),
    }


def is_rising(quiz_scores: List[dict]) -> bool:
    """The three latest percentages, oldest to newest, never go down."""
    if len(quiz_scores) < 3:
        return False
    latest = sorted(quiz_scores, key=lambda q: q["completed_at"])[-3:]
    return all(a["percentage"] <= b["percentage"] for a, b in zip(latest, latest[1:]))


def compute_badges(existing: Iterable[str], aggregates: dict, rank: int,
                   quiz_scores: List[dict]) -> Set[str]:
    """Badges earned so far. Never smaller than `existing`."""
    badges = set(existing)

    if aggregates["highest_score"] >= 100:
        badges.add("Perfect Score")
    if rank == 1:
        badges.update({"Top Scorer", "First Place"})
    if 1 <= rank <= 10:
        badges.add("Top 10")
    if 1 <= rank <= 25:
        badges.add("Top 25")
    if aggregates["average_score"] >= 80:
        badges.add("Consistent Performer")
    if aggregates["total_quizzes_taken"] >= 10:
        badges.add("Quiz Master")
    if aggregates["total_quizzes_taken"] >= 5:
        badges.add("Knowledge Seeker")
    if is_rising(quiz_scores):
        badges.add("Rising Star")
    return badges


def performance_trend(quiz_scores: List[dict]) -> dict:
    """Compare consecutive percentages of the last 5 quizzes."""
    if len(quiz_scores) < 2:
        return {"trend": "stable", "message": "Need more quizzes to determine trend"}

    recent = sorted(quiz_scores, key=lambda q: q["completed_at"])[-5:]
    percentages = [q["percentage"] for q in recent]
    improving = sum(1 for a, b in zip(percentages, percentages[1:]) if b > a)
    declining = sum(1 for a, b in zip(percentages, percentages[1:]) if b < a)

    if improving > declining:
        return {"trend": "improving", "message": "Your performance is improving!"}
    if declining > improving:
        return {"trend": "declining", "message": "Consider reviewing your study strategy"}
    return {"trend": "stable", "message": "Your performance is consistent"}


def score_bucket(total_score: float) -> str:
    for upper, label in SCORE_BUCKETS:
        if total_score < upper:
            return label
    return "2000+"


# ============================================================
# SERVICE
# ============================================================

class RankingService:

    def __init__(self):
        self.students: Collection = get_collection(COLLECTIONS["students"])

    def record_quiz_completion(self, student_id, quiz_id, score: float, percentage: float) -> dict:
        """
        Append a quiz score, refresh the student's aggregates, re-rank
        everyone, then award badges against the new rank.
        """
        student_oid = to_object_id(student_id, "Student")
        student = self.students.find_one({"_id": student_oid}, {"quiz_scores": 1, "badges": 1, "rank": 1})
        if not student:
            raise NotFoundError("Student not found")

        entry = {
            "quiz_id": to_object_id(quiz_id, "Quiz"),
            "score": score,
            "percentage": percentage,
            "completed_at": utcnow(),
        }
        quiz_scores = student.get("quiz_scores", []) + [entry]
        aggregates = compute_aggregates(quiz_scores)

        self.students.update_one(
            {"_id": student_oid},
            {"$push": {"quiz_scores": entry}, "$set": aggregates}
        )

        # Score is already stored; re-rank failures are only logged
        rank = student.get("rank", 0)
        badges = set(student.get("badges", []))
        try:
            with _rank_lock:
                ranks = self.rerank_all()
                rank = ranks.get(student_oid, 0)
                badges = compute_badges(student.get("badges", []), aggregates, rank, quiz_scores)
                if badges:
                    self.students.update_one(
                        {"_id": student_oid},
                        {"$addToSet": {"badges": {"$each": sorted(badges)}}}
                    )
        except Exception:
            logger.exception("Failed to re-rank after quiz %s for student %s", entry["quiz_id"], student_oid)

        logger.info("Recorded quiz %s for student %s: score=%s rank=%s",
                    entry["quiz_id"], student_oid, score, rank)
        return {
            "student_id": str(student_oid),
            "total_score": aggregates["total_score"],
            "average_score": aggregates["average_score"],
            "badges": sorted(badges),
            "rank": rank,
        }

    def rerank_all(self) -> dict:
        """Rewrite rank = position + 1 for every student. Returns {_id: rank}."""
        ordered = [s["_id"] for s in self.students.find({}, {"_id": 1}).sort(RANK_SORT)]
        ranks = {sid: position + 1 for position, sid in enumerate(ordered)}
        if ordered:
            self.students.bulk_write(
                [UpdateOne({"_id": sid}, {"$set": {"rank": rank}}) for sid, rank in ranks.items()],
                ordered=False
            )
        logger.info("Re-ranked %d students", len(ordered))
        return ranks

    # ------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------

    def _ordered_students(self, limit: int = 0) -> list:
        cursor = self.students.find({}, {
            "name": 1, "total_score": 1, "average_score": 1, "highest_score": 1,
            "total_quizzes_taken": 1, "badges": 1
        }).sort(RANK_SORT)
        if limit:
            cursor = cursor.limit(limit)
        return list(cursor)

    def leaderboard(self, current_student_id: Optional[ObjectId] = None) -> dict:
        """
        Everyone in rank order. The requesting student, when on the board,
        is moved to the front; the others keep their order.
        """
        students = self._ordered_students()
        entries = [{
            "rank": position + 1,
            "student_id": str(s["_id"]),
            "student_name": s["name"],
            "score": s.get("total_score", 0),
            "badges": s.get("badges", []),
            "total_quizzes_taken": s.get("total_quizzes_taken", 0),
            "average_score": s.get("average_score", 0),
            "highest_score": s.get("highest_score", 0),
            "is_current_user": s["_id"] == current_student_id,
        } for position, s in enumerate(students)]

        current = next((e for e in entries if e["is_current_user"]), None)
        if current is not None:
            entries = [current] + [e for e in entries if not e["is_current_user"]]

        return {
            "total_students": len(students),
            "current_user_rank": current["rank"] if current else None,
            "current_user_score": current["score"] if current else 0,
            "leaderboard": entries,
        }

    def my_ranking(self, student_id: ObjectId) -> dict:
        student = self.students.find_one({"_id": student_id})
        if not student:
            raise NotFoundError("Student not found")

        quiz_scores = student.get("quiz_scores", [])
        recent = sorted(quiz_scores, key=lambda q: q["completed_at"], reverse=True)[:5]
        return {
            "student": {
                "name": student["name"],
                "total_score": student.get("total_score", 0),
                "rank": student.get("rank", 0),
                "total_students": self.students.count_documents({}),
                "badges": student.get("badges", []),
                "total_quizzes_taken": student.get("total_quizzes_taken", 0),
                "average_score": student.get("average_score", 0),
                "highest_score": student.get("highest_score", 0),
            },
            "recent_quizzes": [serialize_doc(q) for q in recent],
            "performance_trend": performance_trend(quiz_scores),
        }

    def top_performers(self, limit: int = 10) -> list:
        return [{
            "rank": position + 1,
            "student_id": str(s["_id"]),
            "student_name": s["name"],
            "score": s.get("total_score", 0),
            "badges": s.get("badges", []),
        } for position, s in enumerate(self._ordered_students(limit))]

    def stats(self) -> dict:
        scores = [s.get("total_score", 0) for s in self.students.find(
            {"total_quizzes_taken": {"$gt": 0}}, {"total_score": 1}
        )]

        distribution = {}
        for score in scores:
            if score > 0:
                bucket = score_bucket(score)
                distribution[bucket] = distribution.get(bucket, 0) + 1

        labels = [label for _, label in SCORE_BUCKETS] + ["2000+"]
        return {
            "total_students": self.students.count_documents({}),
            "active_students": len(scores),
            "average_score": round(sum(scores) / len(scores)) if scores else 0,
            "score_distribution": [
                {"range": label, "count": distribution[label]} for label in labels if label in distribution
            ],
        }
