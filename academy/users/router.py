from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from motor.motor_asyncio import AsyncIOMotorDatabase
from pydantic import BaseModel, Field

from academy.auth import service as auth_service
from academy.auth.models import LoginRequest, ProfileUpdate, RegisterRequest
from academy.auth.permissions import CurrentUser, get_current_user
from academy.core.dependencies import get_db, get_services
from academy.core.rate_limit import rate_limit
from academy.progress.service import complete_lesson
from academy.users import service
from academy.users.storage import validate_image

router = APIRouter(tags=["Users"])


class WeeklyStatsUpdate(BaseModel):
    attended: Optional[int] = Field(None, ge=0)
    study_hours: Optional[float] = Field(None, ge=0)
    upcoming: Optional[int] = Field(None, ge=0)


class LessonCompleteRequest(BaseModel):
    course_id: str
    hours_spent: float = Field(0, ge=0)

# ==================== ACCOUNT ====================

@router.post("/register", status_code=201)
async def register(data: RegisterRequest, services=Depends(get_services)):
    return await auth_service.register_user(services, data)


@router.post("/login", dependencies=[Depends(rate_limit("login"))])
async def login(data: LoginRequest, services=Depends(get_services)):
    return await auth_service.login_user(services, data.email, data.password)


@router.get("/profile")
async def get_profile(
    user: CurrentUser = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    return await auth_service.get_profile(db, user.user_id)


@router.put("/profile")
async def update_profile(
    data: ProfileUpdate,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    return await auth_service.update_profile(db, user.user_id, data)


@router.post("/upload-photo")
async def upload_photo(
    profile_photo: Optional[UploadFile] = File(None),
    user: CurrentUser = Depends(get_current_user),
    services=Depends(get_services)
):
    """
    Store a profile photo on Cloudinary and save its URL as the avatar
    """
    if profile_photo is None:
        raise HTTPException(status_code=400, detail="No file uploaded")

    content = await profile_photo.read()
    validate_image(profile_photo.content_type, content)

    url = await services.storage.upload_image(content, f"avatar_{user.user_id}")
    await services.db.users.update_one(
        {"user_id": user.user_id},
        {"$set": {"avatar": url, "updated_at": datetime.utcnow()}}
    )
    return {"message": "Profile photo updated", "avatar": url}

# ==================== STATS ====================

@router.get("/streak")
async def get_streak(
    user: CurrentUser = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    doc = await service.get_user_doc(db, user.user_id)
    return {"streak_days": doc.get("streak_days") or 0, "last_login_date": doc.get("last_login_date")}


@router.get("/weekly-stats")
async def get_weekly_stats(
    user: CurrentUser = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    doc = await service.get_user_doc(db, user.user_id)
    return doc.get("weekly_stats") or {"attended": 0, "study_hours": 0, "upcoming": 0}


@router.put("/weekly-stats")
async def put_weekly_stats(
    data: WeeklyStatsUpdate,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    return await service.update_weekly_stats(db, user.user_id, data.model_dump(exclude_none=True))


@router.get("/stats")
async def get_stats(
    user: CurrentUser = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    return service.summarize_stats(await service.get_user_doc(db, user.user_id))


@router.get("/courses")
async def get_my_courses(
    user: CurrentUser = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    doc = await service.get_user_doc(db, user.user_id)
    return await service.get_enrolled_courses(db, doc)


@router.post("/lesson/{lesson_id}/complete")
async def mark_lesson_complete(
    lesson_id: str,
    data: LessonCompleteRequest,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    return await complete_lesson(db, user.user_id, data.course_id, lesson_id, data.hours_spent)
