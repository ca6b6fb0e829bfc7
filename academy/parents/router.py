from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from motor.motor_asyncio import AsyncIOMotorDatabase
from pydantic import BaseModel

from academy.achievements.service import get_user_achievements
from academy.auth.permissions import CurrentUser, require_roles
from academy.core.activity import get_recent_activity
from academy.core.database import fetch_by_ids
from academy.core.dependencies import get_db

router = APIRouter(tags=["Parents"])

parent_only = require_roles("parent")

CHILD_FIELDS = {"_id": 0, "user_id": 1, "full_name": 1, "email": 1, "avatar": 1, "enrolled_courses": 1}


class LinkChildRequest(BaseModel):
    student_email: Optional[str] = None
    student_id: Optional[str] = None


def average_progress(student: dict) -> int:
    entries = student.get("enrolled_courses", [])
    if not entries:
        return 0
    return round(sum(e.get("completion_percentage") or 0 for e in entries) / len(entries))


async def _children_ids(db: AsyncIOMotorDatabase, parent_id: str) -> list:
    parent = await db.users.find_one({"user_id": parent_id}, {"_id": 0, "children": 1})
    if not parent:
        raise HTTPException(status_code=404, detail="Parent not found")
    return parent.get("children", [])


@router.get("/students")
async def get_children(
    user: CurrentUser = Depends(parent_only),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    children = await db.users.find(
        {"user_id": {"$in": await _children_ids(db, user.user_id)}}, CHILD_FIELDS
    ).to_list(None)

    return {
        "children": [
            {
                "user_id": child["user_id"],
                "full_name": child.get("full_name"),
                "email": child.get("email"),
                "avatar": child.get("avatar"),
                "enrolled_count": len(child.get("enrolled_courses", [])),
                "avg_progress": average_progress(child),
            }
            for child in children
        ]
    }


@router.get("/student/{student_id}/report")
async def get_student_report(
    student_id: str,
    user: CurrentUser = Depends(parent_only),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    if student_id not in await _children_ids(db, user.user_id):
        raise HTTPException(status_code=403, detail="Student not linked to this parent")

    student = await db.users.find_one({"user_id": student_id}, {"_id": 0, "password": 0})
    if not student:
        raise HTTPException(status_code=404, detail="Student not found")

    entries = student.get("enrolled_courses", [])
    courses = await fetch_by_ids(db, "courses", "course_id", [e["course_id"] for e in entries], {"title": 1})

    return {
        "report": {
            "user_id": student_id,
            "full_name": student.get("full_name"),
            "email": student.get("email"),
            "total_hours_learned": student.get("total_hours_learned") or 0,
            "avg_progress": average_progress(student),
            "achievements": await get_user_achievements(db, student_id),
            "enrolled_courses": [
                {
                    "course_id": e["course_id"],
                    "course_title": courses.get(e["course_id"], {}).get("title", "Unknown"),
                    "completion_percentage": e.get("completion_percentage") or 0,
                    "completed_lessons_count": len(e.get("completed_lessons", [])),
                    "enrollment_date": e.get("enrollment_date"),
                }
                for e in entries
            ],
            "recent_activity": await get_recent_activity(db, student_id, 10),
        }
    }


@router.post("/link", status_code=201)
async def link_child(
    data: LinkChildRequest,
    user: CurrentUser = Depends(parent_only),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    if not data.student_email and not data.student_id:
        raise HTTPException(status_code=400, detail="Provide student email or student_id")

    if data.student_id:
        student = await db.users.find_one({"user_id": data.student_id})
    else:
        student = await db.users.find_one({"email": data.student_email.strip().lower()})

    if not student:
        raise HTTPException(status_code=404, detail="Student not found")
    if student.get("role") != "student":
        raise HTTPException(status_code=400, detail="Can only link users with role student")

    result = await db.users.update_one(
        {"user_id": user.user_id, "children": {"$ne": student["user_id"]}},
        {"$push": {"children": student["user_id"]}}
    )
    if result.modified_count == 0:
        raise HTTPException(status_code=400, detail="Student already linked")

    return {
        "message": "Student linked",
        "student": {"user_id": student["user_id"], "full_name": student["full_name"], "email": student["email"]},
    }


@router.delete("/child/{student_id}")
async def unlink_child(
    student_id: str,
    user: CurrentUser = Depends(parent_only),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    if student_id not in await _children_ids(db, user.user_id):
        raise HTTPException(status_code=404, detail="Student not linked")

    await db.users.update_one({"user_id": user.user_id}, {"$pull": {"children": student_id}})
    return {"message": "Student unlinked"}
