from typing import List

from fastapi import APIRouter, Depends, HTTPException
from motor.motor_asyncio import AsyncIOMotorDatabase
from pydantic import BaseModel

from academy.achievements.service import get_user_achievements
from academy.auth.models import UserStatus
from academy.auth.permissions import CurrentUser, require_roles
from academy.core.activity import log_activity
from academy.core.dependencies import get_db
from academy.courses import database as courses_db
from academy.progress.service import find_entry
from academy.users.service import summarize_stats

router = APIRouter(tags=["Instructor"])

instructor_only = require_roles("instructor", "admin")

STUDENT_FIELDS = {"_id": 0, "password": 0}


class StudentStatusUpdate(BaseModel):
    status: UserStatus


async def _students_of(db: AsyncIOMotorDatabase, course_ids: List[str]) -> List[dict]:
    return await db.users.find(
        {"role": "student", "enrolled_courses.course_id": {"$in": course_ids}},
        STUDENT_FIELDS
    ).to_list(None)


async def _get_own_student(db: AsyncIOMotorDatabase, instructor: CurrentUser, student_id: str) -> dict:
    """
    Raises:
        404: No such student
        403: Student not enrolled in any of the instructor's courses
    """
    student = await db.users.find_one({"user_id": student_id, "role": "student"}, STUDENT_FIELDS)
    if not student:
        raise HTTPException(status_code=404, detail="Student not found")

    if instructor.is_admin:
        return student

    course_ids = set(await courses_db.get_instructor_course_ids(db, instructor.user_id))
    if not any(e.get("course_id") in course_ids for e in student.get("enrolled_courses", [])):
        raise HTTPException(status_code=403, detail="Student is not enrolled in your courses")
    return student

# ==================== COURSES ====================

@router.get("/courses")
async def get_courses(
    user: CurrentUser = Depends(instructor_only),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    courses = await db.courses.find({"instructor_id": user.user_id}, {"_id": 0, "reviews": 0}).to_list(None)
    for course in courses:
        course["student_count"] = len(course.get("enrolled_students", []))
        course["lesson_count"] = len(course.get("lessons", []))
    return {"count": len(courses), "data": courses}


@router.get("/courses/{course_id}")
async def get_course(
    course_id: str,
    user: CurrentUser = Depends(instructor_only),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    course = await courses_db.verify_course_owner(db, course_id, user, "Not authorized")
    course["lesson_list"] = await courses_db.get_course_lessons(db, course_id)
    return course


@router.get("/courses/{course_id}/lessons")
async def get_course_lessons(
    course_id: str,
    user: CurrentUser = Depends(instructor_only),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    await courses_db.verify_course_owner(db, course_id, user, "Not authorized")
    lessons = await courses_db.get_course_lessons(db, course_id)
    return {"count": len(lessons), "data": lessons}

# ==================== STUDENTS ====================

@router.get("/students")
async def get_students(
    user: CurrentUser = Depends(instructor_only),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    course_ids = await courses_db.get_instructor_course_ids(db, user.user_id)
    owned = set(course_ids)

    students = []
    for student in await _students_of(db, course_ids):
        entries = [e for e in student.get("enrolled_courses", []) if e.get("course_id") in owned]
        students.append({
            "user_id": student["user_id"],
            "full_name": student.get("full_name"),
            "email": student.get("email"),
            "avatar": student.get("avatar"),
            "status": student.get("status"),
            "enrolled_in_course_count": len(entries),
        })
    return {"count": len(students), "data": students}


@router.get("/students/{student_id}")
async def get_student(
    student_id: str,
    user: CurrentUser = Depends(instructor_only),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    student = await _get_own_student(db, user, student_id)
    achievements = await get_user_achievements(db, student_id)
    return {**student, "stats": summarize_stats(student), "achievement_list": achievements}


@router.put("/students/{student_id}")
async def update_student(
    student_id: str,
    data: StudentStatusUpdate,
    user: CurrentUser = Depends(instructor_only),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    await _get_own_student(db, user, student_id)
    await db.users.update_one({"user_id": student_id}, {"$set": {"status": data.status.value}})
    await log_activity(db, user.user_id, "Student Status Updated", "User", student_id, {"status": data.status.value})
    return await db.users.find_one({"user_id": student_id}, STUDENT_FIELDS)


@router.get("/students/{student_id}/progress/{course_id}")
async def get_student_progress(
    student_id: str,
    course_id: str,
    user: CurrentUser = Depends(instructor_only),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    student = await _get_own_student(db, user, student_id)
    course = await courses_db.verify_course_owner(db, course_id, user, "Not authorized")

    entry = find_entry(student, course_id)
    if entry is None:
        raise HTTPException(status_code=404, detail="Student is not enrolled in this course")

    return {
        "student": {"user_id": student_id, "full_name": student.get("full_name"), "email": student.get("email")},
        "course": {"course_id": course_id, "title": course["title"], "total_lessons": len(course.get("lessons", []))},
        "progress": entry,
    }
