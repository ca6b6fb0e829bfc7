import logging
from datetime import datetime
from typing import List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pydantic import BaseModel, Field

from academy.core.database import generate_id, serialize_many

logger = logging.getLogger(__name__)

ACTIVITY_COLORS = {
    "Course": "#1b65d4",
    "Lesson": "#27c5aa",
    "Quiz": "#f1c40f",
    "Certificate": "#28a745",
    "Achievement": "#9b59b6",
}
DEFAULT_ACTIVITY_COLOR = "#1b65d4"


class ActivityLog(BaseModel):
    log_id: str = Field(default_factory=lambda: generate_id("LOG"))
    action: str  # "Quiz Passed", "Course Enrolled", "admin.updateUser", ...
    performed_by: Optional[str] = None
    target_type: Optional[str] = None  # Course, Lesson, Quiz, Certificate, User, ...
    target_id: Optional[str] = None
    details: dict = {}
    created_at: datetime = Field(default_factory=datetime.utcnow)


async def log_activity(
    db: AsyncIOMotorDatabase,
    user_id: Optional[str],
    action: str,
    target_type: str = None,
    target_id: str = None,
    details: dict = None
):
    """
    Append an audit entry. Never breaks the calling request.

    Args:
        user_id: Who performed the action
        action: Short label (e.g. 'Course Enrolled', 'Certificate Downloaded')
        target_type: Domain type of the target
        target_id: ID of the target
        details: Additional context (optional)
    """
    entry = ActivityLog(
        action=action,
        performed_by=user_id,
        target_type=target_type,
        target_id=target_id,
        details=details or {},
    )
    try:
        await db.activity_logs.insert_one(entry.model_dump())
    except Exception as e:
        logger.error("Failed to log activity %s: %s", action, e)


def with_color(entry: dict) -> dict:
    entry["color"] = ACTIVITY_COLORS.get(entry.get("target_type"), DEFAULT_ACTIVITY_COLOR)
    return entry


async def get_recent_activity(db: AsyncIOMotorDatabase, user_id: str, limit: int = 10) -> List[dict]:
    cursor = db.activity_logs.find({"performed_by": user_id}).sort("created_at", -1).limit(limit)
    logs = serialize_many(await cursor.to_list(length=limit))
    return [with_color(log) for log in logs]
