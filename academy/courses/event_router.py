from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException
from motor.motor_asyncio import AsyncIOMotorDatabase

from academy.auth.permissions import CurrentUser, ensure_owner_or_admin, get_current_user, require_roles
from academy.core.activity import log_activity
from academy.core.database import generate_id, utc_naive
from academy.core.dependencies import get_db
from academy.courses.models import EventCreate, EventStatus, EventUpdate

router = APIRouter(tags=["Events"])

UPCOMING_LIMIT = 5


async def _get_event_or_404(db: AsyncIOMotorDatabase, event_id: str) -> dict:
    event = await db.events.find_one({"event_id": event_id}, {"_id": 0})
    if not event:
        raise HTTPException(status_code=404, detail="Event not found")
    return event


@router.post("", status_code=201)
async def create_event(
    data: EventCreate,
    user: CurrentUser = Depends(require_roles("instructor", "admin")),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    if data.course_id and not await db.courses.find_one({"course_id": data.course_id}):
        raise HTTPException(status_code=404, detail="Course not found")

    now = datetime.utcnow()
    event = {
        "event_id": generate_id("EVT"),
        **data.model_dump(mode="json", exclude={"date"}),
        "date": utc_naive(data.date),
        "instructor_id": user.user_id,
        "enrolled_students": [],
        "status": EventStatus.SCHEDULED.value,
        "created_at": now,
        "updated_at": now,
    }
    await db.events.insert_one(event)
    event.pop("_id", None)
    return event


@router.get("")
async def list_events(
    user: CurrentUser = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    return await db.events.find({}, {"_id": 0}).sort("date", 1).to_list(None)


@router.get("/my")
async def my_events(
    user: CurrentUser = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    """Instructors see the events they run, everyone else the events they joined"""
    if user.role in ("instructor", "admin"):
        query = {"instructor_id": user.user_id}
    else:
        query = {"enrolled_students": user.user_id}
    return await db.events.find(query, {"_id": 0}).sort("date", 1).to_list(None)


@router.get("/upcoming")
async def upcoming_events(
    user: CurrentUser = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    cursor = (
        db.events.find({"status": EventStatus.SCHEDULED.value, "date": {"$gte": datetime.utcnow()}}, {"_id": 0})
        .sort("date", 1)
        .limit(UPCOMING_LIMIT)
    )
    return await cursor.to_list(UPCOMING_LIMIT)


@router.post("/{event_id}/enroll")
async def enroll_in_event(
    event_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    event = await _get_event_or_404(db, event_id)

    enrolled = event.get("enrolled_students", [])
    if user.user_id in enrolled:
        raise HTTPException(status_code=400, detail="Already enrolled in this event")
    if len(enrolled) >= event.get("max_students", 30):
        raise HTTPException(status_code=400, detail="Event is full")

    result = await db.events.update_one(
        {"event_id": event_id, "enrolled_students": {"$ne": user.user_id}},
        {"$push": {"enrolled_students": user.user_id}}
    )
    if result.modified_count == 0:
        raise HTTPException(status_code=400, detail="Already enrolled in this event")

    await log_activity(db, user.user_id, "Event Enrolled", "Event", event_id, {"title": event["title"]})
    return {"message": "Successfully enrolled in event"}


@router.put("/{event_id}")
async def update_event(
    event_id: str,
    data: EventUpdate,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    event = await _get_event_or_404(db, event_id)
    ensure_owner_or_admin(user, event["instructor_id"], "Not authorized to update this event")

    updates = data.model_dump(mode="json", exclude_none=True, exclude={"date"})
    if data.date is not None:
        updates["date"] = utc_naive(data.date)
    updates["updated_at"] = datetime.utcnow()

    await db.events.update_one({"event_id": event_id}, {"$set": updates})
    return await _get_event_or_404(db, event_id)


@router.delete("/{event_id}")
async def delete_event(
    event_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    event = await _get_event_or_404(db, event_id)
    ensure_owner_or_admin(user, event["instructor_id"], "Not authorized to delete this event")
    await db.events.delete_one({"event_id": event_id})
    return {"message": "Event removed"}
