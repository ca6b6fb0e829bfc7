"""
Per-student progress accounting.
The student's `enrolled_courses` entries are the source of truth for lesson
progress; the Enrollment document and achievements are derived from them.
"""

import logging
from datetime import datetime
from typing import List, Optional

from fastapi import HTTPException
from motor.motor_asyncio import AsyncIOMotorDatabase

from academy.achievements.service import ensure_completion_achievement
from academy.core.activity import get_recent_activity, log_activity
from academy.core.database import fetch_by_ids
from academy.enrollments.service import sync_enrollment_progress

logger = logging.getLogger(__name__)

SKILL_BANDS = [(40, "Beginner"), (70, "Intermediate"), (90, "Advanced")]
ENGAGEMENT_TARGET_HOURS = 50


def completion_percentage(completed: int, total: int) -> int:
    if total <= 0:
        return 0
    return max(0, min(100, round(completed / total * 100)))


def derive_skill_level(percent: Optional[float]) -> dict:
    """Map an overall percentage onto a skill label"""
    if not percent or percent <= 0:
        return {"label": "Beginner", "percent": 0}
    for upper, label in SKILL_BANDS:
        if percent < upper:
            return {"label": label, "percent": round(percent)}
    return {"label": "Expert", "percent": round(percent)}


def find_entry(user: dict, course_id: str) -> Optional[dict]:
    for entry in user.get("enrolled_courses", []):
        if entry.get("course_id") == course_id:
            return entry
    return None

# ==================== LESSON COMPLETION ====================

async def complete_lesson(
    db: AsyncIOMotorDatabase,
    user_id: str,
    course_id: str,
    lesson_id: str,
    hours_spent: float = 0
) -> dict:
    course = await db.courses.find_one({"course_id": course_id}, {"_id": 0})
    if not course:
        raise HTTPException(status_code=404, detail="Course not found")

    if lesson_id not in course.get("lessons", []):
        raise HTTPException(status_code=404, detail="Lesson not found in this course")

    user = await db.users.find_one({"user_id": user_id}, {"_id": 0})
    if not user:
        raise HTTPException(status_code=404, detail="User not found")

    entry = find_entry(user, course_id)
    if entry is None:
        raise HTTPException(status_code=400, detail="Not enrolled in this course")

    was_complete = (entry.get("completion_percentage") or 0) >= 100
    completed = entry.setdefault("completed_lessons", [])
    if lesson_id not in completed:
        completed.append(lesson_id)

    total_hours = user.get("total_hours_learned") or 0
    if hours_spent and hours_spent > 0:
        entry["hours_spent"] = (entry.get("hours_spent") or 0) + hours_spent
        total_hours += hours_spent

    total_lessons = len(course.get("lessons", []))
    entry["completion_percentage"] = completion_percentage(len(completed), total_lessons)

    # Single write of the user document
    await db.users.update_one(
        {"user_id": user_id},
        {"$set": {
            "enrolled_courses": user["enrolled_courses"],
            "total_hours_learned": total_hours,
            "updated_at": datetime.utcnow(),
        }}
    )

    await sync_enrollment_progress(db, user_id, course_id, entry["completion_percentage"])
    await log_activity(
        db, user_id, "Lesson Completed", "Lesson", lesson_id,
        {"course_id": course_id, "description": f"Completed a lesson in {course['title']}"}
    )

    achievement = None
    if entry["completion_percentage"] >= 100:
        achievement = await ensure_completion_achievement(db, user_id, course)
        if not was_complete:
            await log_activity(
                db, user_id, "Course Completed", "Course", course_id,
                {"description": f"Completed {course['title']}"}
            )

    return {
        "message": "Lesson marked as complete",
        "completion_percentage": entry["completion_percentage"],
        "hours_spent": entry.get("hours_spent", 0),
        "completed_lessons": len(completed),
        "total_lessons": total_lessons,
        "achievement": achievement,
    }

# ==================== CERTIFICATES ====================

async def mark_certificate_downloaded(db: AsyncIOMotorDatabase, user_id: str, course_id: str, when: datetime):
    """Stamp the first download on the user's progress entry and the enrollment"""
    user = await db.users.find_one({"user_id": user_id}, {"_id": 0, "enrolled_courses": 1})
    if user:
        entry = find_entry(user, course_id)
        if entry is not None and not entry.get("certificate_downloaded_at"):
            entry["certificate_downloaded_at"] = when
            await db.users.update_one(
                {"user_id": user_id},
                {"$set": {"enrolled_courses": user["enrolled_courses"]}}
            )

    await db.enrollments.update_one(
        {"student_id": user_id, "course_id": course_id, "certificate_downloaded_at": None},
        {"$set": {"certificate_downloaded_at": when}}
    )


def certificate_status(entry: dict) -> str:
    if (entry.get("completion_percentage") or 0) < 100:
        return "Pending"
    if entry.get("certificate_downloaded_at"):
        return "Downloaded"
    return "Available"

# ==================== OVERVIEW ====================

async def average_quiz_score(db: AsyncIOMotorDatabase, user_id: str) -> int:
    pipeline = [
        {"$match": {"attempts.student_id": user_id}},
        {"$unwind": "$attempts"},
        {"$match": {"attempts.student_id": user_id}},
        {"$project": {
            "percentage": {
                "$cond": [
                    {"$gt": ["$attempts.total_marks", 0]},
                    {"$multiply": [{"$divide": ["$attempts.score", "$attempts.total_marks"]}, 100]},
                    0
                ]
            }
        }},
        {"$group": {"_id": None, "avg_percentage": {"$avg": "$percentage"}}}
    ]
    results = await db.quizzes.aggregate(pipeline).to_list(None)
    if not results:
        return 0
    return round(results[0].get("avg_percentage") or 0)


async def get_overview(db: AsyncIOMotorDatabase, user_id: str) -> dict:
    user = await db.users.find_one({"user_id": user_id}, {"_id": 0, "password": 0})
    if not user:
        raise HTTPException(status_code=404, detail="User not found")

    entries: List[dict] = user.get("enrolled_courses", [])
    learning_hours = sum(e.get("hours_spent") or 0 for e in entries) or user.get("total_hours_learned") or 0

    avg_completion = 0
    if entries:
        avg_completion = round(sum(e.get("completion_percentage") or 0 for e in entries) / len(entries))

    avg_score = await average_quiz_score(db, user_id)
    skill = derive_skill_level(avg_score or avg_completion)

    skills = [
        {"name": "Course Progress", "percent": avg_completion, "color": "#1b65d4"},
        {"name": "Quiz Performance", "percent": avg_score, "color": "#2db88e"},
        {
            "name": "Engagement",
            "percent": max(0, min(100, round(learning_hours / ENGAGEMENT_TARGET_HOURS * 100))),
            "color": "#4acb9a",
        },
        {"name": "Overall Skill", "percent": skill["percent"], "color": "#27c5aa"},
    ]

    courses = await fetch_by_ids(db, "courses", "course_id", [e["course_id"] for e in entries], {"title": 1})
    certificates = [
        {
            "course_id": entry["course_id"],
            "title": courses.get(entry["course_id"], {}).get("title", "Course"),
            "enrolled_at": entry.get("enrollment_date"),
            "status": certificate_status(entry),
        }
        for entry in entries
    ]

    return {
        "stats": {
            "enrolled_courses": len(entries),
            "learning_hours": learning_hours,
            "achievements": len(user.get("achievements", [])),
            "avg_score": avg_score,
            "avg_completion": avg_completion,
            "skill_level_label": skill["label"],
            "skill_level_percent": skill["percent"],
        },
        "skills": skills,
        "certificates": certificates,
        "recent_activity": await get_recent_activity(db, user_id, 10),
    }
