import asyncio
import logging
import math
import re
from datetime import datetime
from typing import Optional

from fastapi import HTTPException
from motor.motor_asyncio import AsyncIOMotorDatabase

from academy.auth.permissions import CurrentUser
from academy.core.database import fetch_by_ids, generate_id, serialize_many, serialize_mongo
from academy.enrollments.service import sync_enrollment_progress
from academy.progress.service import completion_percentage, find_entry

logger = logging.getLogger(__name__)

COURSE_PAGE_SIZE = 10
INSTRUCTOR_FIELDS = {"user_id": 1, "full_name": 1, "email": 1}

# ==================== COURSE CRUD ====================

async def create_course(db: AsyncIOMotorDatabase, course_data: dict, instructor_id: str) -> dict:
    """Create new course owned by `instructor_id`"""
    now = datetime.utcnow()
    course = {
        "course_id": generate_id("COURSE"),
        "title": course_data["title"],
        "description": course_data["description"],
        "instructor_id": instructor_id,
        "price": course_data.get("price", 0),
        "duration": course_data.get("duration", ""),
        "level": course_data.get("level", "Beginner"),
        "category": course_data.get("category") or "General",
        "thumbnail": course_data.get("thumbnail", ""),
        "is_published": course_data.get("is_published", False),
        "lessons": [],
        "enrolled_students": [],
        "reviews": [],
        "rating": 0.0,
        "num_reviews": 0,
        "created_at": now,
        "updated_at": now,
    }

    await db.courses.insert_one(course)
    logger.info("Course %s created by %s", course["course_id"], instructor_id)
    return serialize_mongo(course)


async def get_course(db: AsyncIOMotorDatabase, course_id: str) -> Optional[dict]:
    """Get course by ID"""
    return await db.courses.find_one({"course_id": course_id}, {"_id": 0})


async def get_course_or_404(db: AsyncIOMotorDatabase, course_id: str) -> dict:
    course = await get_course(db, course_id)
    if not course:
        raise HTTPException(status_code=404, detail="Course not found")
    return course


async def verify_course_owner(
    db: AsyncIOMotorDatabase,
    course_id: str,
    user: CurrentUser,
    detail: str = "Not authorized to modify this course"
) -> dict:
    """
    Validates the caller owns this course (admin overrides)

    Raises:
        404: Course not found
        403: Not the owner
    """
    course = await get_course_or_404(db, course_id)
    if not user.is_admin and course["instructor_id"] != user.user_id:
        raise HTTPException(status_code=403, detail=detail)
    return course


async def list_courses(
    db: AsyncIOMotorDatabase,
    page: int = 1,
    keyword: Optional[str] = None,
    category: Optional[str] = None,
    level: Optional[str] = None,
    instructor_id: Optional[str] = None,
    page_size: int = COURSE_PAGE_SIZE
) -> dict:
    query = {}
    if keyword:
        pattern = {"$regex": re.escape(keyword), "$options": "i"}
        query["$or"] = [{"title": pattern}, {"description": pattern}]
    if category:
        query["category"] = category
    if level:
        query["level"] = level
    if instructor_id:
        query["instructor_id"] = instructor_id

    cursor = (
        db.courses.find(query, {"_id": 0, "reviews": 0})
        .sort("created_at", -1)
        .skip(page_size * (page - 1))
        .limit(page_size)
    )
    courses, total = await asyncio.gather(
        cursor.to_list(page_size),
        db.courses.count_documents(query)
    )

    instructors = await fetch_by_ids(
        db, "users", "user_id", [c["instructor_id"] for c in courses], INSTRUCTOR_FIELDS
    )
    for course in courses:
        course["instructor"] = instructors.get(course["instructor_id"])

    return {
        "courses": courses,
        "page": page,
        "pages": math.ceil(total / page_size),
        "total": total,
    }


async def get_course_detail(db: AsyncIOMotorDatabase, course_id: str) -> dict:
    """Course with instructor, ordered lessons and reviewer names attached"""
    course = await get_course_or_404(db, course_id)

    instructors = await fetch_by_ids(db, "users", "user_id", [course["instructor_id"]], INSTRUCTOR_FIELDS)
    course["instructor"] = instructors.get(course["instructor_id"])

    lessons = await db.lessons.find({"course_id": course_id}, {"_id": 0}).sort("order", 1).to_list(None)
    course["lesson_list"] = lessons

    reviewers = await fetch_by_ids(
        db, "users", "user_id",
        [r["user_id"] for r in course.get("reviews", [])],
        {"full_name": 1, "avatar": 1}
    )
    for review in course.get("reviews", []):
        reviewer = reviewers.get(review["user_id"], {})
        review["name"] = reviewer.get("full_name", review.get("name"))
        review["avatar"] = reviewer.get("avatar")

    return course


async def update_course(db: AsyncIOMotorDatabase, course_id: str, updates: dict) -> dict:
    updates["updated_at"] = datetime.utcnow()
    await db.courses.update_one({"course_id": course_id}, {"$set": updates})
    return await get_course_or_404(db, course_id)

# ==================== CASCADE ====================

async def delete_course_cascade(db: AsyncIOMotorDatabase, course_id: str) -> dict:
    """
    Remove a course and everything that depends on it.

    Policy per relationship:
        lessons, quizzes, assignments, enrollments -> deleted
        events                                     -> course_id unset
        users.enrolled_courses / assigned_courses  -> course pulled
        payments, achievements, activity logs      -> kept as history
    """
    lessons = await db.lessons.delete_many({"course_id": course_id})
    quizzes = await db.quizzes.delete_many({"course_id": course_id})
    assignments = await db.assignments.delete_many({"course_id": course_id})
    enrollments = await db.enrollments.delete_many({"course_id": course_id})

    await db.events.update_many({"course_id": course_id}, {"$set": {"course_id": None}})
    await db.users.update_many(
        {"enrolled_courses.course_id": course_id},
        {"$pull": {"enrolled_courses": {"course_id": course_id}}}
    )
    await db.users.update_many(
        {"assigned_courses": course_id},
        {"$pull": {"assigned_courses": course_id}}
    )

    await db.courses.delete_one({"course_id": course_id})

    summary = {
        "lessons": lessons.deleted_count,
        "quizzes": quizzes.deleted_count,
        "assignments": assignments.deleted_count,
        "enrollments": enrollments.deleted_count,
    }
    logger.info("Course %s deleted with cascade %s", course_id, summary)
    return summary


async def delete_lesson_cascade(db: AsyncIOMotorDatabase, lesson: dict):
    """Remove a lesson plus its references, then re-derive progress for the course"""
    lesson_id = lesson["lesson_id"]
    course_id = lesson["course_id"]
    await db.lessons.delete_one({"lesson_id": lesson_id})
    await db.courses.update_one({"course_id": course_id}, {"$pull": {"lessons": lesson_id}})
    await db.quizzes.update_many({"lesson_id": lesson_id}, {"$set": {"lesson_id": None}})

    course = await get_course(db, course_id)
    total_lessons = len(course.get("lessons", [])) if course else 0

    # Every enrolled student's percentage depends on the lesson count
    users = await db.users.find(
        {"enrolled_courses.course_id": course_id},
        {"_id": 0, "user_id": 1, "enrolled_courses": 1}
    ).to_list(None)
    for user in users:
        entry = find_entry(user, course_id)
        completed = [done for done in entry.get("completed_lessons", []) if done != lesson_id]
        entry["completed_lessons"] = completed
        entry["completion_percentage"] = completion_percentage(len(completed), total_lessons)

        await db.users.update_one(
            {"user_id": user["user_id"]},
            {"$set": {"enrolled_courses": user["enrolled_courses"]}}
        )
        await sync_enrollment_progress(db, user["user_id"], course_id, entry["completion_percentage"])

# ==================== REVIEWS ====================

async def add_review(db: AsyncIOMotorDatabase, course_id: str, user: CurrentUser, rating: int, comment: str) -> dict:
    """One review per user; rating is the mean of all reviews"""
    await get_course_or_404(db, course_id)

    review = {
        "user_id": user.user_id,
        "name": user.full_name,
        "rating": rating,
        "comment": comment,
        "created_at": datetime.utcnow(),
    }
    result = await db.courses.update_one(
        {"course_id": course_id, "reviews.user_id": {"$ne": user.user_id}},
        {"$push": {"reviews": review}}
    )
    if result.modified_count == 0:
        raise HTTPException(status_code=400, detail="Course already reviewed")

    return await recompute_rating(db, course_id)


async def recompute_rating(db: AsyncIOMotorDatabase, course_id: str) -> dict:
    course = await get_course_or_404(db, course_id)
    reviews = course.get("reviews", [])
    rating = round(sum(r["rating"] for r in reviews) / len(reviews), 2) if reviews else 0.0

    await db.courses.update_one(
        {"course_id": course_id},
        {"$set": {"rating": rating, "num_reviews": len(reviews)}}
    )
    return {"rating": rating, "num_reviews": len(reviews)}

# ==================== LOOKUPS ====================

async def get_course_lessons(db: AsyncIOMotorDatabase, course_id: str) -> list:
    lessons = await db.lessons.find({"course_id": course_id}).sort("order", 1).to_list(None)
    return serialize_many(lessons)


async def get_instructor_course_ids(db: AsyncIOMotorDatabase, instructor_id: str) -> list:
    courses = await db.courses.find({"instructor_id": instructor_id}, {"_id": 0, "course_id": 1}).to_list(None)
    return [c["course_id"] for c in courses]
