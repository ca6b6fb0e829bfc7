from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from motor.motor_asyncio import AsyncIOMotorDatabase

from academy.auth.permissions import CurrentUser, get_current_user, require_roles
from academy.core.database import generate_id
from academy.core.dependencies import get_db
from academy.courses import database as courses_db
from academy.courses.models import LessonCreate, LessonUpdate

router = APIRouter(tags=["Lessons"])


async def _get_lesson_or_404(db: AsyncIOMotorDatabase, lesson_id: str) -> dict:
    lesson = await db.lessons.find_one({"lesson_id": lesson_id}, {"_id": 0})
    if not lesson:
        raise HTTPException(status_code=404, detail="Lesson not found")
    return lesson


@router.post("", status_code=201)
async def create_lesson(
    data: LessonCreate,
    user: CurrentUser = Depends(require_roles("instructor", "admin")),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    await courses_db.verify_course_owner(db, data.course_id, user, "Not authorized to add lessons to this course")

    now = datetime.utcnow()
    lesson = {
        "lesson_id": generate_id("LSN"),
        **data.model_dump(),
        "created_at": now,
        "updated_at": now,
    }
    await db.lessons.insert_one(lesson)
    await db.courses.update_one(
        {"course_id": data.course_id},
        {"$addToSet": {"lessons": lesson["lesson_id"]}, "$set": {"updated_at": now}}
    )

    lesson.pop("_id", None)
    return lesson


@router.get("")
async def list_lessons(
    course_id: Optional[str] = Query(None),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    query = {"course_id": course_id} if course_id else {}
    return await db.lessons.find(query, {"_id": 0}).sort("order", 1).to_list(None)


@router.get("/{lesson_id}")
async def get_lesson(lesson_id: str, db: AsyncIOMotorDatabase = Depends(get_db)):
    return await _get_lesson_or_404(db, lesson_id)


@router.put("/{lesson_id}")
async def update_lesson(
    lesson_id: str,
    data: LessonUpdate,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    lesson = await _get_lesson_or_404(db, lesson_id)
    await courses_db.verify_course_owner(db, lesson["course_id"], user, "Not authorized to update this lesson")

    updates = data.model_dump(exclude_none=True)
    updates["updated_at"] = datetime.utcnow()
    await db.lessons.update_one({"lesson_id": lesson_id}, {"$set": updates})
    return await _get_lesson_or_404(db, lesson_id)


@router.delete("/{lesson_id}")
async def delete_lesson(
    lesson_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    lesson = await _get_lesson_or_404(db, lesson_id)
    await courses_db.verify_course_owner(db, lesson["course_id"], user, "Not authorized to delete this lesson")

    await courses_db.delete_lesson_cascade(db, lesson)
    return {"message": "Lesson removed"}
