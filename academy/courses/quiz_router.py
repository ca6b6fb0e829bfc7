from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from motor.motor_asyncio import AsyncIOMotorDatabase

from academy.auth.permissions import CurrentUser, get_current_user, require_roles
from academy.core.activity import log_activity
from academy.core.database import generate_id
from academy.core.dependencies import get_db
from academy.courses import database as courses_db
from academy.courses.grading import (
    DEFAULT_PASSING_PERCENTAGE, build_questions, grade_quiz, hide_answers, total_marks_for
)
from academy.courses.models import QuizCreate, QuizSubmission, QuizUpdate

router = APIRouter(tags=["Quizzes"])

AUTHOR_ROLES = ("instructor", "admin")


def _for_viewer(quiz: dict, user: CurrentUser) -> dict:
    if user.role in AUTHOR_ROLES:
        return quiz
    return hide_answers(quiz)


async def _get_quiz_or_404(db: AsyncIOMotorDatabase, quiz_id: str) -> dict:
    quiz = await db.quizzes.find_one({"quiz_id": quiz_id}, {"_id": 0})
    if not quiz:
        raise HTTPException(status_code=404, detail="Quiz not found")
    return quiz

# ==================== AUTHORING ====================

@router.post("", status_code=201)
async def create_quiz(
    data: QuizCreate,
    user: CurrentUser = Depends(require_roles(*AUTHOR_ROLES)),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    await courses_db.verify_course_owner(db, data.course_id, user, "Not authorized to add quizzes to this course")

    if data.lesson_id:
        lesson = await db.lessons.find_one({"lesson_id": data.lesson_id, "course_id": data.course_id})
        if not lesson:
            raise HTTPException(status_code=404, detail="Lesson not found")

    questions = build_questions([q.model_dump() for q in data.questions])
    now = datetime.utcnow()
    quiz = {
        "quiz_id": generate_id("QUIZ"),
        "course_id": data.course_id,
        "lesson_id": data.lesson_id,
        "title": data.title,
        "description": data.description,
        "questions": questions,
        "total_marks": total_marks_for(questions),
        "passing_percentage": data.passing_score or DEFAULT_PASSING_PERCENTAGE,
        "duration": data.duration,
        "attempts": [],
        "created_by": user.user_id,
        "created_at": now,
        "updated_at": now,
    }
    await db.quizzes.insert_one(quiz)

    if data.lesson_id:
        await db.lessons.update_one({"lesson_id": data.lesson_id}, {"$set": {"quiz_id": quiz["quiz_id"]}})

    quiz.pop("_id", None)
    return quiz


@router.get("")
async def list_quizzes(
    course_id: Optional[str] = Query(None),
    user: CurrentUser = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    query = {"course_id": course_id} if course_id else {}
    quizzes = await db.quizzes.find(query, {"_id": 0}).sort("created_at", -1).to_list(None)
    return [_for_viewer(q, user) for q in quizzes]


@router.get("/{quiz_id}")
async def get_quiz(
    quiz_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    return _for_viewer(await _get_quiz_or_404(db, quiz_id), user)


@router.put("/{quiz_id}")
async def update_quiz(
    quiz_id: str,
    data: QuizUpdate,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    quiz = await _get_quiz_or_404(db, quiz_id)
    await courses_db.verify_course_owner(db, quiz["course_id"], user, "Not authorized to update this quiz")

    updates = data.model_dump(exclude_none=True, exclude={"questions", "passing_score"})
    if data.questions is not None:
        questions = build_questions([q.model_dump() for q in data.questions])
        updates["questions"] = questions
        updates["total_marks"] = total_marks_for(questions)
    if data.passing_score is not None:
        updates["passing_percentage"] = data.passing_score or DEFAULT_PASSING_PERCENTAGE
    updates["updated_at"] = datetime.utcnow()

    await db.quizzes.update_one({"quiz_id": quiz_id}, {"$set": updates})
    return await _get_quiz_or_404(db, quiz_id)


@router.delete("/{quiz_id}")
async def delete_quiz(
    quiz_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    quiz = await _get_quiz_or_404(db, quiz_id)
    await courses_db.verify_course_owner(db, quiz["course_id"], user, "Not authorized to delete this quiz")

    await db.quizzes.delete_one({"quiz_id": quiz_id})
    await db.lessons.update_many({"quiz_id": quiz_id}, {"$set": {"quiz_id": None}})
    return {"message": "Quiz removed"}

# ==================== ATTEMPTS ====================

@router.post("/{quiz_id}/submit")
async def submit_quiz(
    quiz_id: str,
    data: QuizSubmission,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    """
    Grade the answers and record the attempt on the quiz document
    """
    quiz = await _get_quiz_or_404(db, quiz_id)
    result = grade_quiz(quiz, [a.model_dump() for a in data.answers])

    attempt = {
        "student_id": user.user_id,
        "score": result["score"],
        "total_marks": result["total_marks"],
        "percentage": result["percentage"],
        "passed": result["passed"],
        "submitted_at": datetime.utcnow(),
    }
    await db.quizzes.update_one({"quiz_id": quiz_id}, {"$push": {"attempts": attempt}})

    await log_activity(
        db, user.user_id, "Quiz Passed" if result["passed"] else "Quiz Completed", "Quiz", quiz_id,
        {
            "course_id": quiz["course_id"],
            "score": result["score"],
            "percentage": result["percentage"],
            "description": f"Scored {result['percentage']}% on {quiz['title']}",
        }
    )
    return result
