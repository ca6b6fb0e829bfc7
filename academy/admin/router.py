"""
Admin API
User, course, enrollment, announcement and sub-admin management plus audit logs.
Sub-admins reach these routes through their permission allow-list; deletes are admin only.
"""

import re
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from motor.motor_asyncio import AsyncIOMotorDatabase

from academy.admin.models import (
    AdminCourseCreate, AdminEnrollmentCreate, AdminEnrollmentUpdate, AdminUserCreate, AdminUserUpdate,
    Announcement, AnnouncementCreate, SubAdminCreate, SubAdminUpdate
)
from academy.auth.models import PRIVILEGED_ROLES
from academy.auth.permissions import CurrentUser, require_permission, require_roles
from academy.auth.service import create_user
from academy.core.activity import log_activity
from academy.core.database import fetch_by_ids, paginate, public_user
from academy.core.dependencies import get_db
from academy.courses import database as courses_db
from academy.courses.models import CourseUpdate
from academy.enrollments.models import ACCESS_STATUSES, EnrollmentStatus
from academy.enrollments.service import enroll_directly, mirror_enrollment, unmirror_enrollment

router = APIRouter(tags=["Admin"])

manage_students = require_permission("manageStudents")
manage_courses = require_permission("manageCourses")
view_reports = require_permission("viewReports")
admin_only = require_roles("admin")

USER_PROJECTION = {"_id": 0, "password": 0}


PRIVILEGED_ROLE_VALUES = {role.value for role in PRIVILEGED_ROLES}


def _search(q: Optional[str], *fields: str) -> dict:
    if not q:
        return {}
    pattern = {"$regex": re.escape(q), "$options": "i"}
    return {"$or": [{field: pattern} for field in fields]}


def _check_privilege_grant(caller: CurrentUser, payload: dict):
    """Only admins may hand out privileged roles or permissions"""
    if caller.is_admin:
        return
    if payload.get("role") in PRIVILEGED_ROLE_VALUES or payload.get("permissions") is not None:
        raise HTTPException(status_code=403, detail="Only admins can grant admin roles or permissions")


async def _get_user_or_404(db: AsyncIOMotorDatabase, user_id: str) -> dict:
    user = await db.users.find_one({"user_id": user_id}, USER_PROJECTION)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user


async def _get_enrollment_or_404(db: AsyncIOMotorDatabase, enrollment_id: str) -> dict:
    enrollment = await db.enrollments.find_one({"enrollment_id": enrollment_id}, {"_id": 0})
    if not enrollment:
        raise HTTPException(status_code=404, detail="Enrollment not found")
    return enrollment


async def _get_subadmin_or_404(db: AsyncIOMotorDatabase, user_id: str) -> dict:
    user = await db.users.find_one({"user_id": user_id, "role": "sub-admin"}, USER_PROJECTION)
    if not user:
        raise HTTPException(status_code=404, detail="Sub-admin not found")
    return user


# ============================================================================
# USERS
# ============================================================================

@router.post("/users", status_code=201)
async def create_user_admin(
    data: AdminUserCreate,
    admin: CurrentUser = Depends(manage_students),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    payload = data.model_dump(mode="json")
    _check_privilege_grant(admin, payload)
    user = await create_user(db, payload)
    await log_activity(db, admin.user_id, "admin.createUser", "User", user["user_id"], {"email": user["email"]})
    return public_user(user)


@router.get("/users")
async def list_users(
    role: Optional[str] = None,
    q: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    admin: CurrentUser = Depends(manage_students),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    query = _search(q, "full_name", "email")
    if role:
        query["role"] = role

    users, total = await paginate(db.users, query, page, limit, [("created_at", -1)], USER_PROJECTION)
    return {"data": users, "total": total}


@router.get("/users/{user_id}")
async def get_user(
    user_id: str,
    admin: CurrentUser = Depends(manage_students),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    return await _get_user_or_404(db, user_id)


@router.put("/users/{user_id}")
async def update_user(
    user_id: str,
    data: AdminUserUpdate,
    admin: CurrentUser = Depends(manage_students),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    target = await _get_user_or_404(db, user_id)
    if not admin.is_admin and target.get("role") in PRIVILEGED_ROLE_VALUES:
        raise HTTPException(status_code=403, detail="Only admins can modify admin accounts")

    updates = data.model_dump(mode="json", exclude_none=True)
    _check_privilege_grant(admin, updates)

    updates["updated_at"] = datetime.utcnow()
    await db.users.update_one({"user_id": user_id}, {"$set": updates})
    await log_activity(
        db, admin.user_id, "admin.updateUser", "User", user_id,
        {k: v for k, v in updates.items() if k != "updated_at"}
    )
    return await _get_user_or_404(db, user_id)


@router.delete("/users/{user_id}")
async def delete_user(
    user_id: str,
    admin: CurrentUser = Depends(admin_only),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    await _get_user_or_404(db, user_id)
    if user_id == admin.user_id:
        raise HTTPException(status_code=400, detail="You cannot delete your own account")

    await db.users.delete_one({"user_id": user_id})
    await db.enrollments.delete_many({"student_id": user_id})
    await db.courses.update_many({"enrolled_students": user_id}, {"$pull": {"enrolled_students": user_id}})
    await db.users.update_many({"children": user_id}, {"$pull": {"children": user_id}})

    await log_activity(db, admin.user_id, "admin.deleteUser", "User", user_id)
    return {"message": "User deleted"}


# ============================================================================
# COURSES
# ============================================================================

@router.post("/courses", status_code=201)
async def create_course_admin(
    data: AdminCourseCreate,
    admin: CurrentUser = Depends(manage_courses),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    instructor = await db.users.find_one({"user_id": data.instructor_id})
    if not instructor:
        raise HTTPException(status_code=404, detail="Instructor not found")

    course = await courses_db.create_course(
        db, data.model_dump(mode="json", exclude={"instructor_id"}), data.instructor_id
    )
    await log_activity(db, admin.user_id, "admin.createCourse", "Course", course["course_id"], {"title": course["title"]})
    return course


@router.get("/courses")
async def list_courses_admin(
    category: Optional[str] = None,
    q: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    admin: CurrentUser = Depends(manage_courses),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    query = _search(q, "title", "description")
    if category:
        query["category"] = category

    courses, total = await paginate(db.courses, query, page, limit, [("created_at", -1)])
    return {"data": courses, "total": total}


@router.get("/courses/{course_id}")
async def get_course_admin(
    course_id: str,
    admin: CurrentUser = Depends(manage_courses),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    return await courses_db.get_course_detail(db, course_id)


@router.put("/courses/{course_id}")
async def update_course_admin(
    course_id: str,
    data: CourseUpdate,
    admin: CurrentUser = Depends(manage_courses),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    await courses_db.get_course_or_404(db, course_id)
    updates = data.model_dump(mode="json", exclude_none=True)
    course = await courses_db.update_course(db, course_id, dict(updates))
    await log_activity(db, admin.user_id, "admin.updateCourse", "Course", course_id, updates)
    return course


@router.delete("/courses/{course_id}")
async def delete_course_admin(
    course_id: str,
    admin: CurrentUser = Depends(admin_only),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    await courses_db.get_course_or_404(db, course_id)
    removed = await courses_db.delete_course_cascade(db, course_id)
    await log_activity(db, admin.user_id, "admin.deleteCourse", "Course", course_id, removed)
    return {"message": "Course deleted", "removed": removed}


# ============================================================================
# ENROLLMENTS
# ============================================================================

@router.post("/enrollments", status_code=201)
async def create_enrollment_admin(
    data: AdminEnrollmentCreate,
    admin: CurrentUser = Depends(manage_students),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    student = await db.users.find_one({"user_id": data.student_id})
    if not student:
        raise HTTPException(status_code=404, detail="User not found")
    await courses_db.get_course_or_404(db, data.course_id)

    enrollment = await enroll_directly(db, data.student_id, data.course_id, status=data.enrollment_status.value)
    await log_activity(
        db, admin.user_id, "admin.createEnrollment", "Enrollment", enrollment["enrollment_id"],
        {"student_id": data.student_id, "course_id": data.course_id}
    )
    return enrollment


@router.get("/enrollments")
async def list_enrollments_admin(
    student_id: Optional[str] = None,
    course_id: Optional[str] = None,
    status: Optional[EnrollmentStatus] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    admin: CurrentUser = Depends(manage_students),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    query = {}
    if student_id:
        query["student_id"] = student_id
    if course_id:
        query["course_id"] = course_id
    if status:
        query["enrollment_status"] = status.value

    enrollments, total = await paginate(db.enrollments, query, page, limit, [("created_at", -1)])

    students = await fetch_by_ids(
        db, "users", "user_id", [e["student_id"] for e in enrollments], {"full_name": 1, "email": 1}
    )
    courses = await fetch_by_ids(db, "courses", "course_id", [e["course_id"] for e in enrollments], {"title": 1})
    for enrollment in enrollments:
        enrollment["student"] = students.get(enrollment["student_id"])
        enrollment["course"] = courses.get(enrollment["course_id"])

    return {"data": enrollments, "total": total}


@router.get("/enrollments/{enrollment_id}")
async def get_enrollment_admin(
    enrollment_id: str,
    admin: CurrentUser = Depends(manage_students),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    return await _get_enrollment_or_404(db, enrollment_id)


@router.put("/enrollments/{enrollment_id}")
async def update_enrollment_admin(
    enrollment_id: str,
    data: AdminEnrollmentUpdate,
    admin: CurrentUser = Depends(manage_students),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    enrollment = await _get_enrollment_or_404(db, enrollment_id)

    updates = data.model_dump(mode="json", exclude_none=True)
    if updates.get("completed"):
        updates["enrollment_status"] = EnrollmentStatus.COMPLETED.value
    updates["updated_at"] = datetime.utcnow()
    await db.enrollments.update_one({"enrollment_id": enrollment_id}, {"$set": updates})

    new_status = updates.get("enrollment_status", enrollment["enrollment_status"])
    if new_status in ACCESS_STATUSES:
        await mirror_enrollment(db, enrollment["student_id"], enrollment["course_id"])

    await log_activity(
        db, admin.user_id, "admin.updateEnrollment", "Enrollment", enrollment_id,
        {k: v for k, v in updates.items() if k != "updated_at"}
    )
    return await _get_enrollment_or_404(db, enrollment_id)


@router.delete("/enrollments/{enrollment_id}")
async def delete_enrollment_admin(
    enrollment_id: str,
    admin: CurrentUser = Depends(admin_only),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    enrollment = await _get_enrollment_or_404(db, enrollment_id)
    await db.enrollments.delete_one({"enrollment_id": enrollment_id})
    await unmirror_enrollment(db, enrollment["student_id"], enrollment["course_id"])

    await log_activity(db, admin.user_id, "admin.deleteEnrollment", "Enrollment", enrollment_id)
    return {"message": "Enrollment deleted"}


# ============================================================================
# ANNOUNCEMENTS
# ============================================================================

@router.post("/announcements", status_code=201)
async def create_announcement(
    data: AnnouncementCreate,
    admin: CurrentUser = Depends(manage_courses),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    announcement = Announcement(**data.model_dump(), created_by=admin.user_id).model_dump()
    await db.announcements.insert_one(announcement)
    announcement.pop("_id", None)

    await log_activity(
        db, admin.user_id, "admin.createAnnouncement", "Announcement", announcement["announcement_id"],
        {"title": data.title, "target_role": announcement["target_role"]}
    )
    return announcement


@router.get("/announcements")
async def list_announcements(
    admin: CurrentUser = Depends(manage_courses),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    return await db.announcements.find({}, {"_id": 0}).sort("created_at", -1).to_list(100)


@router.delete("/announcements/{announcement_id}")
async def delete_announcement(
    announcement_id: str,
    admin: CurrentUser = Depends(admin_only),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    result = await db.announcements.delete_one({"announcement_id": announcement_id})
    if result.deleted_count == 0:
        raise HTTPException(status_code=404, detail="Announcement not found")

    await log_activity(db, admin.user_id, "admin.deleteAnnouncement", "Announcement", announcement_id)
    return {"message": "Announcement deleted"}


# ============================================================================
# SUB-ADMINS
# ============================================================================

@router.post("/subadmins", status_code=201)
async def create_subadmin(
    data: SubAdminCreate,
    admin: CurrentUser = Depends(admin_only),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    payload = {**data.model_dump(), "role": "sub-admin"}
    user = await create_user(db, payload)
    await log_activity(
        db, admin.user_id, "admin.createSubAdmin", "User", user["user_id"],
        {"permissions": data.permissions}
    )
    return public_user(user)


@router.get("/subadmins")
async def list_subadmins(
    admin: CurrentUser = Depends(admin_only),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    return await db.users.find({"role": "sub-admin"}, USER_PROJECTION).to_list(None)


@router.put("/subadmins/{user_id}")
async def update_subadmin(
    user_id: str,
    data: SubAdminUpdate,
    admin: CurrentUser = Depends(admin_only),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    await _get_subadmin_or_404(db, user_id)

    updates = data.model_dump(mode="json", exclude_none=True)
    updates["updated_at"] = datetime.utcnow()
    await db.users.update_one({"user_id": user_id}, {"$set": updates})

    await log_activity(
        db, admin.user_id, "admin.updateSubAdmin", "User", user_id,
        {k: v for k, v in updates.items() if k != "updated_at"}
    )
    return await _get_subadmin_or_404(db, user_id)


@router.delete("/subadmins/{user_id}")
async def delete_subadmin(
    user_id: str,
    admin: CurrentUser = Depends(admin_only),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    await _get_subadmin_or_404(db, user_id)
    await db.users.delete_one({"user_id": user_id})
    await log_activity(db, admin.user_id, "admin.deleteSubAdmin", "User", user_id)
    return {"message": "Sub-admin deleted"}


# ============================================================================
# REPORTS
# ============================================================================

@router.get("/logs")
async def list_logs(
    action: Optional[str] = None,
    user_id: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    admin: CurrentUser = Depends(view_reports),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    query = {}
    if action:
        query["action"] = action
    if user_id:
        query["performed_by"] = user_id

    logs, total = await paginate(db.activity_logs, query, page, limit, [("created_at", -1)])

    actors = await fetch_by_ids(
        db, "users", "user_id", [log.get("performed_by") for log in logs], {"full_name": 1, "email": 1}
    )
    for log in logs:
        log["performed_by_user"] = actors.get(log.get("performed_by"))

    return {"data": logs, "total": total}


@router.get("/dashboard/summary")
async def dashboard_summary(
    admin: CurrentUser = Depends(view_reports),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    """
    Counts by role and status, completed-payment revenue and the latest audit entries
    """
    role_counts = await db.users.aggregate([
        {"$group": {"_id": "$role", "count": {"$sum": 1}}}
    ]).to_list(None)
    status_counts = await db.enrollments.aggregate([
        {"$group": {"_id": "$enrollment_status", "count": {"$sum": 1}}}
    ]).to_list(None)
    revenue = await db.payments.aggregate([
        {"$match": {"status": "completed"}},
        {"$group": {"_id": None, "total": {"$sum": "$amount"}}}
    ]).to_list(None)

    users_by_role = {r["_id"]: r["count"] for r in role_counts}
    enrollments_by_status = {s["_id"]: s["count"] for s in status_counts}

    recent_logs = await db.activity_logs.find({}, {"_id": 0}).sort("created_at", -1).limit(5).to_list(5)

    return {
        "users_by_role": users_by_role,
        "total_students": users_by_role.get("student", 0),
        "total_parents": users_by_role.get("parent", 0),
        "total_instructors": users_by_role.get("instructor", 0),
        "total_courses": await db.courses.count_documents({}),
        "total_enrollments": sum(enrollments_by_status.values()),
        "enrollments_by_status": enrollments_by_status,
        "completed_courses": enrollments_by_status.get(EnrollmentStatus.COMPLETED.value, 0),
        "total_revenue": revenue[0]["total"] if revenue else 0,
        "recent_logs": recent_logs,
    }
