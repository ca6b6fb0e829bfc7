from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from motor.motor_asyncio import AsyncIOMotorDatabase

from academy.auth.permissions import CurrentUser, get_current_user, require_roles
from academy.core.database import generate_id, utc_naive
from academy.core.dependencies import get_db
from academy.courses import database as courses_db
from academy.courses.models import (
    AssignmentCreate, AssignmentGrade, AssignmentSubmit, AssignmentUpdate, SubmissionStatus
)

router = APIRouter(tags=["Assignments"])


async def _get_assignment_or_404(db: AsyncIOMotorDatabase, assignment_id: str) -> dict:
    assignment = await db.assignments.find_one({"assignment_id": assignment_id}, {"_id": 0})
    if not assignment:
        raise HTTPException(status_code=404, detail="Assignment not found")
    return assignment


@router.post("", status_code=201)
async def create_assignment(
    data: AssignmentCreate,
    user: CurrentUser = Depends(require_roles("instructor", "admin")),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    await courses_db.verify_course_owner(
        db, data.course_id, user, "Not authorized to add assignments to this course"
    )

    now = datetime.utcnow()
    assignment = {
        "assignment_id": generate_id("ASG"),
        **data.model_dump(),
        "due_date": utc_naive(data.due_date),
        "submissions": [],
        "created_by": user.user_id,
        "created_at": now,
        "updated_at": now,
    }
    await db.assignments.insert_one(assignment)
    assignment.pop("_id", None)
    return assignment


@router.get("")
async def list_assignments(
    course_id: Optional[str] = Query(None),
    user: CurrentUser = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    query = {"course_id": course_id} if course_id else {}
    return await db.assignments.find(query, {"_id": 0}).sort("due_date", 1).to_list(None)


@router.get("/{assignment_id}")
async def get_assignment(
    assignment_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    return await _get_assignment_or_404(db, assignment_id)


@router.put("/{assignment_id}")
async def update_assignment(
    assignment_id: str,
    data: AssignmentUpdate,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    assignment = await _get_assignment_or_404(db, assignment_id)
    await courses_db.verify_course_owner(
        db, assignment["course_id"], user, "Not authorized to update this assignment"
    )

    updates = data.model_dump(exclude_none=True)
    if "due_date" in updates:
        updates["due_date"] = utc_naive(updates["due_date"])
    updates["updated_at"] = datetime.utcnow()

    await db.assignments.update_one({"assignment_id": assignment_id}, {"$set": updates})
    return await _get_assignment_or_404(db, assignment_id)


@router.delete("/{assignment_id}")
async def delete_assignment(
    assignment_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    assignment = await _get_assignment_or_404(db, assignment_id)
    await courses_db.verify_course_owner(
        db, assignment["course_id"], user, "Not authorized to delete this assignment"
    )
    await db.assignments.delete_one({"assignment_id": assignment_id})
    return {"message": "Assignment removed"}

# ==================== SUBMISSIONS ====================

@router.post("/{assignment_id}/submit")
async def submit_assignment(
    assignment_id: str,
    data: AssignmentSubmit,
    user: CurrentUser = Depends(require_roles("student")),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    """One submission per student; resubmitting replaces the previous one"""
    await _get_assignment_or_404(db, assignment_id)

    submission = {
        "student_id": user.user_id,
        "submission_url": data.submission_url,
        "submitted_at": datetime.utcnow(),
        "marks": None,
        "feedback": "",
        "status": SubmissionStatus.SUBMITTED.value,
    }
    await db.assignments.update_one(
        {"assignment_id": assignment_id},
        {"$pull": {"submissions": {"student_id": user.user_id}}}
    )
    await db.assignments.update_one(
        {"assignment_id": assignment_id},
        {"$push": {"submissions": submission}}
    )
    return {"message": "Assignment submitted", "submission": submission}


@router.put("/{assignment_id}/grade/{student_id}")
async def grade_assignment(
    assignment_id: str,
    student_id: str,
    data: AssignmentGrade,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    assignment = await _get_assignment_or_404(db, assignment_id)
    await courses_db.verify_course_owner(
        db, assignment["course_id"], user, "Not authorized to grade this assignment"
    )

    submissions = assignment.get("submissions", [])
    submission = next((s for s in submissions if s["student_id"] == student_id), None)
    if submission is None:
        raise HTTPException(status_code=404, detail="Submission not found")

    submission["marks"] = min(data.marks, assignment["total_marks"])
    submission["feedback"] = data.feedback
    submission["status"] = SubmissionStatus.GRADED.value
    submission["graded_at"] = datetime.utcnow()

    await db.assignments.update_one(
        {"assignment_id": assignment_id},
        {"$set": {"submissions": submissions, "updated_at": datetime.utcnow()}}
    )
    return {"message": "Submission graded", "submission": submission}
