from fastapi import APIRouter, Depends
from motor.motor_asyncio import AsyncIOMotorDatabase

from academy.auth.permissions import CurrentUser, require_roles
from academy.core.database import fetch_by_ids
from academy.core.dependencies import get_db
from academy.enrollments import service
from academy.enrollments.models import EnrollmentActivate, EnrollmentCreate, EnrollmentUpdate

router = APIRouter(tags=["Enrollments"])

student_only = require_roles("student")

COURSE_FIELDS = {"course_id": 1, "title": 1, "thumbnail": 1, "price": 1, "level": 1, "instructor_id": 1}


@router.post("/create", status_code=201)
async def create_enrollment(
    data: EnrollmentCreate,
    user: CurrentUser = Depends(student_only),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    """
    Open a pending enrollment; it becomes active once a payment is attached
    """
    enrollment = await service.create_enrollment(db, user.user_id, data.course_id)
    return {"message": "Enrollment created", "enrollment": enrollment}


@router.post("/activate/{enrollment_id}")
async def activate_enrollment(
    enrollment_id: str,
    data: EnrollmentActivate,
    user: CurrentUser = Depends(student_only),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    enrollment = await service.activate_enrollment(db, user.user_id, enrollment_id, data.payment_id)
    return {"message": "Enrollment activated", "enrollment": enrollment}


@router.get("/course/{course_id}")
async def get_course_enrollment(
    course_id: str,
    user: CurrentUser = Depends(student_only),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    enrollment = await service.get_enrollment_for(db, user.user_id, course_id)
    if not enrollment:
        return {"enrolled": False}

    await service.reconcile_enrollment(db, enrollment)
    return {"enrolled": True, "enrollment": enrollment}


@router.get("")
async def list_my_enrollments(
    user: CurrentUser = Depends(student_only),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    enrollments = await db.enrollments.find(
        {"student_id": user.user_id}, {"_id": 0}
    ).sort("created_at", -1).to_list(None)

    for enrollment in enrollments:
        await service.reconcile_enrollment(db, enrollment)

    courses = await fetch_by_ids(db, "courses", "course_id", [e["course_id"] for e in enrollments], COURSE_FIELDS)
    for enrollment in enrollments:
        enrollment["course"] = courses.get(enrollment["course_id"])
    return enrollments


@router.put("/{enrollment_id}")
async def update_enrollment(
    enrollment_id: str,
    data: EnrollmentUpdate,
    user: CurrentUser = Depends(student_only),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    return await service.update_enrollment(db, user.user_id, enrollment_id, data.model_dump(exclude_none=True))
