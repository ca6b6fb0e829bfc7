import logging
from datetime import datetime
from enum import Enum
from typing import List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pydantic import BaseModel, ConfigDict, Field

from academy.core.activity import log_activity
from academy.core.database import fetch_by_ids, generate_id, serialize_many

logger = logging.getLogger(__name__)

COMPLETION_POINTS = 100
LEADERBOARD_SIZE = 10


class AchievementType(str, Enum):
    COURSE_COMPLETION = "Course Completion"
    ASSESSMENT_SCORE = "Assessment Score"
    PARTICIPATION = "Participation"
    SPECIAL = "Special"


class Achievement(BaseModel):
    model_config = ConfigDict(use_enum_values=True, validate_default=True)

    achievement_id: str = Field(default_factory=lambda: generate_id("ACH"))
    user_id: str
    title: str
    description: str = ""
    type: AchievementType = AchievementType.SPECIAL
    points: int = 0
    course_id: Optional[str] = None
    icon: Optional[str] = None
    earned_at: datetime = Field(default_factory=datetime.utcnow)


async def award_achievement(db: AsyncIOMotorDatabase, achievement: Achievement) -> dict:
    doc = achievement.model_dump()
    await db.achievements.insert_one(doc)
    await db.users.update_one(
        {"user_id": achievement.user_id},
        {"$addToSet": {"achievements": achievement.achievement_id}}
    )
    doc.pop("_id", None)
    return doc


async def ensure_completion_achievement(db: AsyncIOMotorDatabase, user_id: str, course: dict) -> dict:
    """
    Exactly one "Course Completion" achievement per (user, course).
    A second call finds the first one and only repairs the link on the user.
    """
    existing = await db.achievements.find_one(
        {
            "user_id": user_id,
            "course_id": course["course_id"],
            "type": AchievementType.COURSE_COMPLETION.value,
        },
        {"_id": 0}
    )
    if existing:
        await db.users.update_one(
            {"user_id": user_id},
            {"$addToSet": {"achievements": existing["achievement_id"]}}
        )
        return existing

    achievement = await award_achievement(db, Achievement(
        user_id=user_id,
        title=f"{course['title']} Completed",
        description=f"Successfully completed {course['title']}",
        type=AchievementType.COURSE_COMPLETION,
        course_id=course["course_id"],
        points=COMPLETION_POINTS,
    ))
    logger.info("Completion achievement %s for %s", achievement["achievement_id"], user_id)

    await log_activity(
        db, user_id, "Achievement Earned", "Achievement", achievement["achievement_id"],
        {"description": achievement["title"], "course_id": course["course_id"]}
    )
    return achievement


async def get_user_achievements(db: AsyncIOMotorDatabase, user_id: str, limit: int = 0) -> List[dict]:
    cursor = db.achievements.find({"user_id": user_id}).sort("earned_at", -1)
    if limit:
        cursor = cursor.limit(limit)
    return serialize_many(await cursor.to_list(None))


async def get_total_points(db: AsyncIOMotorDatabase, user_id: str) -> int:
    pipeline = [
        {"$match": {"user_id": user_id}},
        {"$group": {"_id": None, "total_points": {"$sum": "$points"}}}
    ]
    results = await db.achievements.aggregate(pipeline).to_list(None)
    return results[0]["total_points"] if results else 0


async def get_leaderboard(db: AsyncIOMotorDatabase, limit: int = LEADERBOARD_SIZE) -> List[dict]:
    pipeline = [
        {"$group": {
            "_id": "$user_id",
            "total_points": {"$sum": "$points"},
            "achievements": {"$sum": 1}
        }},
        {"$sort": {"total_points": -1}},
        {"$limit": limit}
    ]
    results = await db.achievements.aggregate(pipeline).to_list(None)

    users = await fetch_by_ids(
        db, "users", "user_id", [r["_id"] for r in results], {"full_name": 1, "avatar": 1}
    )

    leaderboard = []
    for rank, row in enumerate(results, start=1):
        user = users.get(row["_id"], {})
        leaderboard.append({
            "rank": rank,
            "user_id": row["_id"],
            "full_name": user.get("full_name", "Unknown"),
            "avatar": user.get("avatar"),
            "total_points": row["total_points"],
            "achievements": row["achievements"],
        })
    return leaderboard


def group_by_type(achievements: List[dict]) -> dict:
    grouped = {
        "course_completions": [],
        "assessment_scores": [],
        "participation": [],
        "special": [],
    }
    keys = {
        AchievementType.COURSE_COMPLETION.value: "course_completions",
        AchievementType.ASSESSMENT_SCORE.value: "assessment_scores",
        AchievementType.PARTICIPATION.value: "participation",
        AchievementType.SPECIAL.value: "special",
    }
    for achievement in achievements:
        grouped[keys.get(achievement.get("type"), "special")].append(achievement)
    return grouped
