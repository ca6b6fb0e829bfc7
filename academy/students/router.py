from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException
from motor.motor_asyncio import AsyncIOMotorDatabase
from pydantic import BaseModel, Field

from academy.achievements.service import get_user_achievements, group_by_type
from academy.auth import service as auth_service
from academy.auth.models import ProfileUpdate
from academy.auth.permissions import CurrentUser, require_roles
from academy.core.activity import get_recent_activity
from academy.core.dependencies import get_db
from academy.courses.course_router import enroll_in_course
from academy.courses.database import get_course_lessons, get_course_or_404
from academy.courses.models import EventStatus
from academy.progress.service import complete_lesson, find_entry
from academy.users import service as users_service

router = APIRouter(tags=["Student"])

student_only = require_roles("student")


class LessonProgress(BaseModel):
    hours_spent: float = Field(0, ge=0)


@router.get("/dashboard")
async def get_dashboard(
    user: CurrentUser = Depends(student_only),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    """
    Course summaries, learning totals and the next scheduled events
    """
    doc = await users_service.get_user_doc(db, user.user_id)
    courses = await users_service.get_enrolled_courses(db, doc)

    upcoming = await db.events.find(
        {
            "status": EventStatus.SCHEDULED.value,
            "date": {"$gte": datetime.utcnow()},
            "$or": [
                {"enrolled_students": user.user_id},
                {"course_id": {"$in": [c["course_id"] for c in courses]}},
            ],
        },
        {"_id": 0}
    ).sort("date", 1).limit(5).to_list(5)

    return {
        "user": {"user_id": user.user_id, "full_name": user.full_name, "avatar": doc.get("avatar")},
        "stats": users_service.summarize_stats(doc),
        "weekly_stats": doc.get("weekly_stats"),
        "courses": courses,
        "upcoming_events": upcoming,
    }


@router.get("/profile")
async def get_profile(
    user: CurrentUser = Depends(student_only),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    return await auth_service.get_profile(db, user.user_id)


@router.put("/profile")
async def update_profile(
    data: ProfileUpdate,
    user: CurrentUser = Depends(student_only),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    return await auth_service.update_profile(db, user.user_id, data)

# ==================== COURSES ====================

@router.get("/courses")
async def get_courses(
    user: CurrentUser = Depends(student_only),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    doc = await users_service.get_user_doc(db, user.user_id)
    return await users_service.get_enrolled_courses(db, doc)


@router.get("/courses/{course_id}")
async def get_course(
    course_id: str,
    user: CurrentUser = Depends(student_only),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    doc = await users_service.get_user_doc(db, user.user_id)
    entry = find_entry(doc, course_id)
    if entry is None:
        raise HTTPException(status_code=404, detail="Not enrolled in this course")

    course = await get_course_or_404(db, course_id)
    course["lesson_list"] = await get_course_lessons(db, course_id)
    course["progress"] = entry
    return course


@router.post("/enroll/{course_id}")
async def enroll(
    course_id: str,
    user: CurrentUser = Depends(student_only),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    return await enroll_in_course(db, user, course_id)


@router.post("/courses/{course_id}/lessons/{lesson_id}/complete")
async def mark_lesson_complete(
    course_id: str,
    lesson_id: str,
    data: LessonProgress = None,
    user: CurrentUser = Depends(student_only),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    hours = data.hours_spent if data else 0
    return await complete_lesson(db, user.user_id, course_id, lesson_id, hours)

# ==================== ACHIEVEMENTS / ACTIVITY ====================

@router.get("/achievements")
async def get_achievements(
    user: CurrentUser = Depends(student_only),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    return group_by_type(await get_user_achievements(db, user.user_id))


@router.get("/activity")
async def get_activity(
    user: CurrentUser = Depends(student_only),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    return await get_recent_activity(db, user.user_id, 20)
