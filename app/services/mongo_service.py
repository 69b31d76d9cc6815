"""
MongoDB Service helpers shared by every domain service.

- serialize_doc / serialize_docs: make documents JSON-safe (ObjectId -> str)
- to_object_id: parse ids coming from URLs and request bodies
- utcnow / as_naive_utc: all datetimes are stored as naive UTC, which is
  what pymongo hands back on reads
"""

from datetime import datetime, timezone
from typing import Any, Optional
from bson import ObjectId
from bson.errors import InvalidId

from app.core.errors import NotFoundError


# ============================================================
# HELPER: Convert ObjectId to string for JSON serialization
# ============================================================

def _serialize_value(value: Any) -> Any:
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, dict):
        return {k: _serialize_value(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_serialize_value(v) for v in value]
    return value


def serialize_doc(doc: dict) -> dict:
    """Convert MongoDB document to JSON-serializable dict (nested ids too)."""
    if doc is None:
        return None
    return _serialize_value(doc)


def serialize_docs(docs: list) -> list:
    """Convert list of MongoDB documents to JSON-serializable list."""
    return [serialize_doc(doc) for doc in docs]


# ============================================================
# HELPER: ids and timestamps
# ============================================================

def to_object_id(value: Any, label: str = "Document") -> ObjectId:
    """
    Parse an id. A malformed id cannot match any document, so it is
    reported the same way as a missing one.
    """
    if isinstance(value, ObjectId):
        return value
    try:
        return ObjectId(str(value))
    except (InvalidId, TypeError):
        raise NotFoundError(f"{label} not found")


def utcnow() -> datetime:
    """Current time as naive UTC (matches what pymongo returns)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def as_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Normalize an incoming datetime to naive UTC before storing/comparing."""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)
