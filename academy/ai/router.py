from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from motor.motor_asyncio import AsyncIOMotorDatabase
from pydantic import BaseModel, Field

from academy.ai.tutor import canned_response
from academy.auth.permissions import CurrentUser, ensure_owner_or_admin, get_current_user
from academy.core.database import fetch_by_ids, generate_id
from academy.core.dependencies import get_db, get_services
from academy.core.rate_limit import rate_limit

router = APIRouter(tags=["AI Tutor"])

CHAT_FLAG = "ai_chat_enabled"


class ChatRequest(BaseModel):
    message: Optional[str] = None
    model: Optional[str] = None
    max_tokens: Optional[int] = Field(None, gt=0)
    temperature: Optional[float] = Field(None, ge=0, le=2)


class TutorQuery(BaseModel):
    course_id: Optional[str] = None
    query: Optional[str] = None


async def _get_interaction_or_404(db: AsyncIOMotorDatabase, interaction_id: str) -> dict:
    interaction = await db.ai_interactions.find_one({"interaction_id": interaction_id}, {"_id": 0})
    if not interaction:
        raise HTTPException(status_code=404, detail="Interaction not found")
    return interaction


@router.post("/chat", dependencies=[Depends(rate_limit("ai"))])
async def chat(
    data: ChatRequest,
    user: CurrentUser = Depends(get_current_user),
    services=Depends(get_services)
):
    """
    Free-form tutor chat. Always answers, falling back to a demo reply.
    """
    if not data.message:
        raise HTTPException(status_code=400, detail="Message is required")

    # Enabled unless an admin explicitly turned the flag off
    flag = await services.db.feature_flags.find_one({"key": CHAT_FLAG})
    enabled = flag is None or bool(flag.get("value"))

    return await services.tutor.reply(
        data.message,
        model=data.model,
        max_tokens=data.max_tokens,
        temperature=data.temperature,
        enabled=enabled,
    )


@router.post("/query", status_code=201)
async def query_tutor(
    data: TutorQuery,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    if not data.query or not data.query.strip():
        raise HTTPException(status_code=400, detail="Query cannot be empty")

    interaction = {
        "interaction_id": generate_id("AI"),
        "user_id": user.user_id,
        "course_id": data.course_id,
        "query": data.query,
        "response": canned_response(data.query),
        "rating": None,
        "timestamp": datetime.utcnow(),
    }
    await db.ai_interactions.insert_one(interaction)
    interaction.pop("_id", None)
    return interaction


@router.get("/history")
async def get_history(
    course_id: Optional[str] = Query(None),
    user: CurrentUser = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    query = {"user_id": user.user_id}
    if course_id:
        query["course_id"] = course_id

    interactions = await db.ai_interactions.find(query, {"_id": 0}).sort("timestamp", -1).to_list(None)
    courses = await fetch_by_ids(
        db, "courses", "course_id", [i["course_id"] for i in interactions if i.get("course_id")], {"title": 1}
    )
    for interaction in interactions:
        interaction["course"] = courses.get(interaction.get("course_id"))
    return interactions


@router.get("/{interaction_id}")
async def get_interaction(
    interaction_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    interaction = await _get_interaction_or_404(db, interaction_id)
    ensure_owner_or_admin(user, interaction["user_id"], "Not authorized to view this interaction")
    return interaction


@router.delete("/{interaction_id}")
async def delete_interaction(
    interaction_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    interaction = await _get_interaction_or_404(db, interaction_id)
    ensure_owner_or_admin(user, interaction["user_id"], "Not authorized")
    await db.ai_interactions.delete_one({"interaction_id": interaction_id})
    return {"message": "Interaction deleted"}
