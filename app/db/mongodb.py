"""
MongoDB Connection Utility

MongoDB stores every entity of the placement portal:
- users plus the role profiles they point at (students, companies, tpos)
- jobs and applications (the placement lifecycle), offers and placement history
- notifications
- question sets, questions and test sessions

WHY MongoDB for these?
- Application timelines are nested per-stage sub-documents
- Role profiles have different shapes behind one users collection
- Ranking aggregates live next to the student they describe
"""
import logging

from pymongo import ASCENDING, DESCENDING, MongoClient
from pymongo.errors import PyMongoError
from pymongo.database import Database
from pymongo.collection import Collection
from app.core.config import get_settings

settings = get_settings()
logger = logging.getLogger(__name__)

# Global client (connection pooling handled internally by pymongo)
_client: MongoClient = None
_db: Database = None


def get_mongo_client() -> MongoClient:
    """Get or create MongoDB client (singleton pattern)"""
    global _client
    if _client is None:
        _client = MongoClient(settings.mongodb_uri)
    return _client


def get_mongo_db() -> Database:
    """Get the placement database"""
    global _db
    if _db is None:
        client = get_mongo_client()
        _db = client[settings.mongodb_db]
    return _db


def set_mongo_db(db: Database) -> None:
    """
    Swap the active database.
    Tests use this to point every service at an in-memory database.
    """
    global _db
    _db = db


def get_collection(name: str) -> Collection:
    """
    Get a specific collection.
    Use the COLLECTIONS names below rather than string literals.
    """
    db = get_mongo_db()
    return db[name]


def test_mongo_connection() -> bool:
    """
    Test if MongoDB is reachable.
    Returns True if connection successful, False otherwise.
    """
    try:
        get_mongo_db().command("ping")
        return True
    except PyMongoError:
        logger.exception("MongoDB connection failed")
        return False


# Collection name constants (avoid typos)
COLLECTIONS = {
    "users": "users",
    "students": "students",
    "companies": "companies",
    "tpos": "tpos",
    "jobs": "jobs",
    "applications": "applications",
    "notifications": "notifications",
    "offers": "offers",
    "placement_history": "placement_history",
    "question_sets": "question_sets",
    "questions": "questions",
    "test_sessions": "test_sessions"
}


def init_mongo_indexes():
    """
    Create indexes for better query performance.
    Call this once during app startup.
    """
    db = get_mongo_db()

    db[COLLECTIONS["users"]].create_index("email", unique=True)

    # At most one application per (student, job)
    db[COLLECTIONS["applications"]].create_index([
        ("student_id", ASCENDING),
        ("job_id", ASCENDING)
    ], unique=True)
    db[COLLECTIONS["applications"]].create_index("job_id")

    # Job listings filter on both status axes
    db[COLLECTIONS["jobs"]].create_index([
        ("approval_status", ASCENDING),
        ("status", ASCENDING)
    ])
    db[COLLECTIONS["jobs"]].create_index("company_id")

    # Feed reads: unread first, newest first
    db[COLLECTIONS["notifications"]].create_index([
        ("student_id", ASCENDING),
        ("is_read", ASCENDING),
        ("created_at", DESCENDING)
    ])
    db[COLLECTIONS["notifications"]].create_index([
        ("type", ASCENDING),
        ("created_at", DESCENDING)
    ])

    # Leaderboard ordering
    db[COLLECTIONS["students"]].create_index([
        ("total_score", DESCENDING),
        ("average_score", DESCENDING)
    ])

    # One offer letter per (student, job)
    db[COLLECTIONS["offers"]].create_index([
        ("student_id", ASCENDING),
        ("job_id", ASCENDING)
    ], unique=True)
    db[COLLECTIONS["offers"]].create_index("company_id")

    db[COLLECTIONS["placement_history"]].create_index("application_id", unique=True)
    db[COLLECTIONS["placement_history"]].create_index([
        ("student_id", ASCENDING),
        ("placement_date", DESCENDING)
    ])

    db[COLLECTIONS["test_sessions"]].create_index([
        ("student_id", ASCENDING),
        ("question_set_id", ASCENDING)
    ])
