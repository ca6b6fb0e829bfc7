from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from motor.motor_asyncio import AsyncIOMotorDatabase
from pydantic import BaseModel, Field

from academy.achievements import service
from academy.achievements.service import Achievement, AchievementType
from academy.auth.permissions import CurrentUser, get_current_user, require_roles
from academy.core.activity import log_activity
from academy.core.dependencies import get_db

router = APIRouter(tags=["Achievements"])


class AchievementCreate(BaseModel):
    user_id: str
    title: str = Field(..., min_length=1)
    description: str = ""
    type: AchievementType = AchievementType.SPECIAL
    points: int = Field(0, ge=0)
    course_id: Optional[str] = None
    icon: Optional[str] = None


@router.post("", status_code=201)
async def create_achievement(
    data: AchievementCreate,
    admin: CurrentUser = Depends(require_roles("admin")),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    if not await db.users.find_one({"user_id": data.user_id}):
        raise HTTPException(status_code=404, detail="User not found")

    achievement = await service.award_achievement(db, Achievement(**data.model_dump()))
    await log_activity(
        db, admin.user_id, "admin.createAchievement", "Achievement", achievement["achievement_id"],
        {"user_id": data.user_id, "title": data.title}
    )
    return achievement


@router.get("/my-achievements")
async def my_achievements(
    user: CurrentUser = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    return await service.get_user_achievements(db, user.user_id)


@router.get("/recent")
async def recent_achievements(
    user: CurrentUser = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    return await service.get_user_achievements(db, user.user_id, limit=5)


@router.get("/points")
async def achievement_points(
    user: CurrentUser = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    return {"total_points": await service.get_total_points(db, user.user_id)}


@router.get("/leaderboard")
async def leaderboard(
    user: CurrentUser = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    return await service.get_leaderboard(db)
