from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Response
from motor.motor_asyncio import AsyncIOMotorDatabase

from academy.auth.permissions import CurrentUser, get_current_user
from academy.core.activity import get_recent_activity, log_activity
from academy.core.dependencies import get_db
from academy.progress import service
from academy.progress.certificate import render_certificate_pdf, safe_filename

router = APIRouter(tags=["Progress"])


@router.get("/overview")
async def get_progress_overview(
    user: CurrentUser = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    """
    Learning stats, skills, certificates and the last 10 activity entries
    """
    return await service.get_overview(db, user.user_id)


@router.get("/activity")
async def get_activity(
    user: CurrentUser = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    return {"recent_activity": await get_recent_activity(db, user.user_id, 20)}


@router.get("/certificates/{course_id}/download")
async def download_certificate(
    course_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    profile = await db.users.find_one({"user_id": user.user_id}, {"_id": 0, "enrolled_courses": 1})
    entry = service.find_entry(profile or {}, course_id)
    if entry is None:
        raise HTTPException(status_code=404, detail="Enrollment for this course not found")

    if (entry.get("completion_percentage") or 0) < 100:
        raise HTTPException(status_code=400, detail="Certificate is only available after course completion")

    course = await db.courses.find_one({"course_id": course_id}, {"_id": 0, "title": 1, "instructor_id": 1})
    course_title = (course or {}).get("title", "Course")
    instructor = None
    if course:
        instructor = await db.users.find_one({"user_id": course.get("instructor_id")}, {"_id": 0, "full_name": 1})

    now = datetime.utcnow()
    pdf = render_certificate_pdf(
        user.full_name,
        course_title,
        entry.get("certificate_downloaded_at") or now,
        f"CERT-{user.user_id}-{course_id}",
        (instructor or {}).get("full_name", "Instructor"),
    )

    if not entry.get("certificate_downloaded_at"):
        await service.mark_certificate_downloaded(db, user.user_id, course_id, now)
    await log_activity(
        db, user.user_id, "Certificate Downloaded", "Certificate", course_id,
        {"description": f"Downloaded certificate for {course_title}"}
    )

    return Response(
        content=pdf,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{safe_filename(course_title)}_Certificate.pdf"'}
    )
