from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from motor.motor_asyncio import AsyncIOMotorDatabase

from academy.auth.permissions import CurrentUser, get_current_user, require_roles
from academy.core.activity import log_activity
from academy.core.dependencies import get_db
from academy.courses import database as courses_db
from academy.courses.models import CourseCreate, CourseUpdate, ReviewCreate
from academy.enrollments.models import ACCESS_STATUSES
from academy.enrollments.service import enroll_directly
from academy.progress.service import mark_certificate_downloaded

router = APIRouter(tags=["Courses"])


# ==================== HELPER: ACCESS CONTROL ====================

def check_course_access(course: dict) -> dict:
    """
    Direct enrollment is only open for free courses

    Returns:
    {
        "has_access": bool,
        "access_reason": str | None,
        "message": str
    }
    """
    if not course.get("price"):
        return {
            "has_access": True,
            "access_reason": "free_course",
            "message": "Free course - access granted"
        }

    return {
        "has_access": False,
        "access_reason": None,
        "message": "Payment required to access this course",
        "pricing": {"price": course["price"], "currency": "INR"}
    }


async def enroll_in_course(db: AsyncIOMotorDatabase, user: CurrentUser, course_id: str) -> dict:
    course = await courses_db.get_course_or_404(db, course_id)

    access = check_course_access(course)
    if not access["has_access"]:
        raise HTTPException(status_code=402, detail=access)

    enrollment = await enroll_directly(db, user.user_id, course_id)
    await log_activity(
        db, user.user_id, "Course Enrolled", "Course", course_id,
        {"title": course["title"]}
    )
    return {"message": "Successfully enrolled in course", "enrollment": enrollment}


# ==================== COURSE ENDPOINTS ====================

@router.post("", status_code=201)
async def create_course(
    data: CourseCreate,
    user: CurrentUser = Depends(require_roles("instructor", "admin")),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    return await courses_db.create_course(db, data.model_dump(mode="json"), user.user_id)


@router.get("")
async def list_courses(
    page: int = Query(1, ge=1),
    keyword: Optional[str] = None,
    category: Optional[str] = None,
    level: Optional[str] = None,
    instructor: Optional[str] = None,
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    """
    Public catalog, 10 per page, newest first
    """
    return await courses_db.list_courses(db, page, keyword, category, level, instructor)


@router.get("/{course_id}")
async def get_course(course_id: str, db: AsyncIOMotorDatabase = Depends(get_db)):
    return await courses_db.get_course_detail(db, course_id)


@router.put("/{course_id}")
async def update_course(
    course_id: str,
    data: CourseUpdate,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    await courses_db.verify_course_owner(db, course_id, user, "Not authorized to update this course")
    return await courses_db.update_course(db, course_id, data.model_dump(mode="json", exclude_none=True))


@router.delete("/{course_id}")
async def delete_course(
    course_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    await courses_db.verify_course_owner(db, course_id, user, "Not authorized to delete this course")
    removed = await courses_db.delete_course_cascade(db, course_id)
    await log_activity(db, user.user_id, "Course Deleted", "Course", course_id, removed)
    return {"message": "Course removed", "removed": removed}


@router.post("/{course_id}/enroll")
async def enroll_course(
    course_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    return await enroll_in_course(db, user, course_id)


@router.post("/{course_id}/reviews", status_code=201)
async def review_course(
    course_id: str,
    data: ReviewCreate,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    rating = await courses_db.add_review(db, course_id, user, data.rating, data.comment)
    return {"message": "Review added", **rating}


@router.get("/{course_id}/certificate")
async def get_certificate(
    course_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    """
    Certificate metadata for a completed enrollment
    """
    course = await courses_db.get_course_or_404(db, course_id)

    enrollment = await db.enrollments.find_one({
        "student_id": user.user_id,
        "course_id": course_id,
        "enrollment_status": {"$in": ACCESS_STATUSES}
    })
    if not enrollment:
        raise HTTPException(
            status_code=403,
            detail="You must be enrolled in this course to download certificate"
        )

    if enrollment.get("progress_percentage", 0) < 100:
        raise HTTPException(status_code=400, detail={
            "message": "Course not completed. Completion required: 100%",
            "current_progress": enrollment.get("progress_percentage", 0),
        })

    instructor = await db.users.find_one({"user_id": course["instructor_id"]}, {"full_name": 1})

    if not enrollment.get("certificate_downloaded_at"):
        await mark_certificate_downloaded(db, user.user_id, course_id, datetime.utcnow())

    return {
        "message": "Certificate ready for download",
        "certificate": {
            "certificate_id": f"CERT-{enrollment['enrollment_id']}",
            "student_name": user.full_name,
            "course_title": course["title"],
            "instructor_name": (instructor or {}).get("full_name", "Instructor"),
            "issued_at": enrollment.get("updated_at") or datetime.utcnow(),
            "completion_percentage": enrollment.get("progress_percentage", 0),
            "course_id": course_id,
            "enrollment_id": enrollment["enrollment_id"],
        },
        "download_url": f"/api/progress/certificates/{course_id}/download",
    }

