from datetime import datetime
from typing import List

from fastapi import HTTPException
from motor.motor_asyncio import AsyncIOMotorDatabase

from academy.core.database import fetch_by_ids

COURSE_SUMMARY_FIELDS = {
    "course_id": 1, "title": 1, "description": 1, "thumbnail": 1,
    "level": 1, "category": 1, "instructor_id": 1, "lessons": 1,
}


async def get_user_doc(db: AsyncIOMotorDatabase, user_id: str) -> dict:
    user = await db.users.find_one({"user_id": user_id}, {"_id": 0, "password": 0})
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user


async def get_enrolled_courses(db: AsyncIOMotorDatabase, user: dict) -> List[dict]:
    """Progress entries of a user joined with the course they refer to"""
    entries = user.get("enrolled_courses", [])
    courses = await fetch_by_ids(
        db, "courses", "course_id", [e["course_id"] for e in entries], COURSE_SUMMARY_FIELDS
    )

    result = []
    for entry in entries:
        course = courses.get(entry["course_id"])
        if course is None:
            continue
        result.append({
            **course,
            "total_lessons": len(course.get("lessons", [])),
            "completed_lessons": entry.get("completed_lessons", []),
            "completion_percentage": entry.get("completion_percentage", 0),
            "hours_spent": entry.get("hours_spent", 0),
            "enrollment_date": entry.get("enrollment_date"),
        })
    return result


def summarize_stats(user: dict) -> dict:
    entries = user.get("enrolled_courses", [])
    return {
        "enrolled_courses": len(entries),
        "completed_courses": sum(1 for e in entries if (e.get("completion_percentage") or 0) >= 100),
        "total_hours_learned": user.get("total_hours_learned") or 0,
        "achievements": len(user.get("achievements", [])),
        "streak_days": user.get("streak_days") or 0,
    }


async def update_weekly_stats(db: AsyncIOMotorDatabase, user_id: str, updates: dict) -> dict:
    user = await get_user_doc(db, user_id)
    stats = {**(user.get("weekly_stats") or {}), **updates}
    await db.users.update_one(
        {"user_id": user_id},
        {"$set": {"weekly_stats": stats, "updated_at": datetime.utcnow()}}
    )
    return stats
