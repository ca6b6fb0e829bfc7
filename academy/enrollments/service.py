"""
Enrollment lifecycle: pending -> active -> completed.

An enrollment is mirrored onto two other documents: the student's
`enrolled_courses` entry and the course's `enrolled_students` list.
Mirror writes are idempotent, so any read or retry can repair a
partially applied activation.
"""

import logging
from datetime import datetime
from typing import Optional

from fastapi import HTTPException
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import DuplicateKeyError

from academy.auth.models import EnrolledCourse
from academy.core.activity import log_activity
from academy.core.database import serialize_mongo
from academy.enrollments.models import (
    ACCESS_STATUSES, OPEN_STATUSES, Enrollment, EnrollmentStatus
)

logger = logging.getLogger(__name__)

# ==================== MIRRORS ====================

async def mirror_enrollment(db: AsyncIOMotorDatabase, student_id: str, course_id: str):
    """Make sure the user and course documents both reflect the enrollment"""
    entry = EnrolledCourse(course_id=course_id).model_dump()
    await db.users.update_one(
        {"user_id": student_id, "enrolled_courses.course_id": {"$ne": course_id}},
        {"$push": {"enrolled_courses": entry}}
    )
    await db.courses.update_one(
        {"course_id": course_id},
        {"$addToSet": {"enrolled_students": student_id}}
    )


async def unmirror_enrollment(db: AsyncIOMotorDatabase, student_id: str, course_id: str):
    await db.users.update_one(
        {"user_id": student_id},
        {"$pull": {"enrolled_courses": {"course_id": course_id}}}
    )
    await db.courses.update_one(
        {"course_id": course_id},
        {"$pull": {"enrolled_students": student_id}}
    )


async def reconcile_enrollment(db: AsyncIOMotorDatabase, enrollment: dict):
    """Repair mirrors of an active/completed enrollment left behind by a partial write"""
    if enrollment.get("enrollment_status") in ACCESS_STATUSES:
        await mirror_enrollment(db, enrollment["student_id"], enrollment["course_id"])

# ==================== LIFECYCLE ====================

async def get_enrollment_for(db: AsyncIOMotorDatabase, student_id: str, course_id: str) -> Optional[dict]:
    return await db.enrollments.find_one(
        {"student_id": student_id, "course_id": course_id},
        {"_id": 0}
    )


async def create_enrollment(db: AsyncIOMotorDatabase, student_id: str, course_id: Optional[str]) -> dict:
    """Open a pending enrollment for the pair"""
    if not course_id:
        raise HTTPException(status_code=400, detail="Course ID is required")

    course = await db.courses.find_one({"course_id": course_id})
    if not course:
        raise HTTPException(status_code=404, detail="Course not found")

    existing = await db.enrollments.find_one({
        "student_id": student_id,
        "course_id": course_id,
        "enrollment_status": {"$in": OPEN_STATUSES}
    })
    if existing:
        raise HTTPException(status_code=400, detail={
            "message": "Enrollment already exists",
            "enrollment_id": existing["enrollment_id"],
            "enrollment_status": existing["enrollment_status"],
        })

    enrollment = Enrollment(student_id=student_id, course_id=course_id).model_dump()
    try:
        await db.enrollments.insert_one(enrollment)
    except DuplicateKeyError:
        raise HTTPException(status_code=400, detail="Enrollment already exists")

    logger.info("Pending enrollment %s for %s in %s", enrollment["enrollment_id"], student_id, course_id)
    return serialize_mongo(enrollment)


async def activate_enrollment(
    db: AsyncIOMotorDatabase,
    student_id: str,
    enrollment_id: str,
    payment_id: Optional[str]
) -> dict:
    """
    Move a pending enrollment to active once a matching completed payment exists.

    Checks, in order:
        400: no payment_id
        404: enrollment not found
        403: enrollment belongs to someone else
        404: payment not found
        400: payment not completed
        403: payment made by someone else
        400: payment for another course
    """
    if not payment_id:
        raise HTTPException(status_code=400, detail="Payment ID is required")

    enrollment = await db.enrollments.find_one({"enrollment_id": enrollment_id})
    if not enrollment:
        raise HTTPException(status_code=404, detail="Enrollment not found")

    if enrollment["student_id"] != student_id:
        raise HTTPException(status_code=403, detail="Not authorized to activate this enrollment")

    payment = await db.payments.find_one({"payment_id": payment_id})
    if not payment:
        raise HTTPException(status_code=404, detail="Payment not found")

    if payment.get("status") != "completed":
        raise HTTPException(status_code=400, detail="Payment has not been completed")

    if payment.get("user_id") != student_id:
        raise HTTPException(status_code=403, detail="Payment does not belong to this user")

    if payment.get("course_id") != enrollment["course_id"]:
        raise HTTPException(status_code=400, detail="Payment is for a different course")

    status = enrollment.get("enrollment_status")
    if status == EnrollmentStatus.COMPLETED.value:
        raise HTTPException(status_code=400, detail="Enrollment is already completed")
    if status == EnrollmentStatus.ACTIVE.value and enrollment.get("payment_id") not in (None, payment_id):
        raise HTTPException(status_code=400, detail="Enrollment is already active")

    now = datetime.utcnow()
    if status != EnrollmentStatus.ACTIVE.value:
        await db.enrollments.update_one(
            {"enrollment_id": enrollment_id},
            {"$set": {
                "enrollment_status": EnrollmentStatus.ACTIVE.value,
                "payment_id": payment_id,
                "enrolled_at": now,
                "updated_at": now,
            }}
        )

    # Re-running on an already active enrollment repairs missing mirrors
    await mirror_enrollment(db, student_id, enrollment["course_id"])

    await log_activity(
        db, student_id, "Enrollment Activated", "Course", enrollment["course_id"],
        {"enrollment_id": enrollment_id, "payment_id": payment_id}
    )

    return serialize_mongo(await db.enrollments.find_one({"enrollment_id": enrollment_id}))


async def enroll_directly(
    db: AsyncIOMotorDatabase,
    student_id: str,
    course_id: str,
    status: str = EnrollmentStatus.ACTIVE.value,
    payment_id: Optional[str] = None
) -> dict:
    """Create an enrollment that skips the pending state (free courses, admin)"""
    existing = await get_enrollment_for(db, student_id, course_id)
    if existing and existing.get("enrollment_status") in ACCESS_STATUSES:
        raise HTTPException(status_code=400, detail="Already enrolled in this course")

    now = datetime.utcnow()
    if existing:
        await db.enrollments.update_one(
            {"enrollment_id": existing["enrollment_id"]},
            {"$set": {"enrollment_status": status, "payment_id": payment_id, "enrolled_at": now, "updated_at": now}}
        )
        enrollment_id = existing["enrollment_id"]
    else:
        enrollment = Enrollment(
            student_id=student_id,
            course_id=course_id,
            enrollment_status=status,
            payment_id=payment_id,
            enrolled_at=now,
        ).model_dump()
        try:
            await db.enrollments.insert_one(enrollment)
        except DuplicateKeyError:
            raise HTTPException(status_code=400, detail="Already enrolled in this course")
        enrollment_id = enrollment["enrollment_id"]

    if status in ACCESS_STATUSES:
        await mirror_enrollment(db, student_id, course_id)

    return serialize_mongo(await db.enrollments.find_one({"enrollment_id": enrollment_id}))


async def sync_enrollment_progress(db: AsyncIOMotorDatabase, student_id: str, course_id: str, percentage: int):
    """Carry lesson-based progress onto the enrollment record"""
    updates = {"progress_percentage": percentage, "last_accessed": datetime.utcnow()}
    if percentage >= 100:
        updates["enrollment_status"] = EnrollmentStatus.COMPLETED.value
        updates["completed"] = True

    await db.enrollments.update_one(
        {"student_id": student_id, "course_id": course_id, "enrollment_status": {"$in": ACCESS_STATUSES}},
        {"$set": updates}
    )


async def update_enrollment(db: AsyncIOMotorDatabase, student_id: str, enrollment_id: str, data: dict) -> dict:
    enrollment = await db.enrollments.find_one({"enrollment_id": enrollment_id})
    if not enrollment:
        raise HTTPException(status_code=404, detail="Enrollment not found")

    if enrollment["student_id"] != student_id:
        raise HTTPException(status_code=403, detail="Not authorized to update this enrollment")

    updates = {"last_accessed": datetime.utcnow(), "updated_at": datetime.utcnow()}
    if data.get("progress_percentage") is not None:
        updates["progress_percentage"] = int(min(100, max(0, round(data["progress_percentage"]))))
    if data.get("watch_hours") is not None:
        updates["watch_hours"] = data["watch_hours"]
    if data.get("completed") is not None:
        updates["completed"] = data["completed"]
        if data["completed"]:
            if enrollment.get("enrollment_status") not in ACCESS_STATUSES:
                raise HTTPException(status_code=400, detail="Enrollment is not active")
            updates["enrollment_status"] = EnrollmentStatus.COMPLETED.value

    await db.enrollments.update_one({"enrollment_id": enrollment_id}, {"$set": updates})
    return serialize_mongo(await db.enrollments.find_one({"enrollment_id": enrollment_id}))
