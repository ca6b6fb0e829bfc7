import logging
from datetime import datetime
from typing import Optional

from fastapi import HTTPException
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import DuplicateKeyError

from academy.auth.models import PRIVILEGED_ROLES, ProfileUpdate, RegisterRequest, User
from academy.auth.security import create_access_token, hash_password, verify_password
from academy.core.database import generate_id, public_user

logger = logging.getLogger(__name__)


def calculate_streak(last_login: Optional[datetime], current_streak: int, now: Optional[datetime] = None) -> int:
    """
    Daily login streak.
    First login is 0, same day keeps it, next day adds one, any gap resets to 1.
    """
    if not last_login:
        return 0

    now = now or datetime.utcnow()
    diff_days = (now.date() - last_login.date()).days

    if diff_days == 0:
        return current_streak
    if diff_days == 1:
        return current_streak + 1
    return 1


def issue_token(services, user: dict) -> str:
    return create_access_token(
        user["user_id"],
        user.get("role", "student"),
        services.settings.jwt_secret,
        services.settings.token_ttl_days,
    )


async def create_user(db: AsyncIOMotorDatabase, data: dict) -> dict:
    """Insert a new user; 400 when the email is taken"""
    if await db.users.find_one({"email": data["email"]}):
        raise HTTPException(status_code=400, detail="User already exists")

    user = User(
        user_id=generate_id("USR"),
        full_name=data["full_name"],
        email=data["email"],
        password=hash_password(data["password"]),
        role=data.get("role") or "student",
        phone=data.get("phone"),
        permissions=data.get("permissions") or [],
        status=data.get("status") or "active",
    )
    doc = user.model_dump()

    try:
        await db.users.insert_one(doc)
    except DuplicateKeyError:
        raise HTTPException(status_code=400, detail="User already exists")

    return doc


async def register_user(services, data: RegisterRequest) -> dict:
    if data.role in PRIVILEGED_ROLES and not services.settings.allow_privileged_signup:
        raise HTTPException(
            status_code=403,
            detail=f"Role '{data.role.value}' cannot be self-assigned at registration"
        )

    user = await create_user(services.db, data.model_dump(mode="json"))
    logger.info("Registered user %s with role %s", user["user_id"], user["role"])

    await services.mailer.send_welcome(user["email"], user["full_name"])

    return {
        "message": "Account successfully created",
        "user": {
            "user_id": user["user_id"],
            "full_name": user["full_name"],
            "email": user["email"],
            "role": user["role"],
            "token": issue_token(services, user),
        },
    }


async def login_user(services, email: str, password: str) -> dict:
    db = services.db
    user = await db.users.find_one({"email": email})

    if not user or not verify_password(password, user.get("password")):
        raise HTTPException(status_code=401, detail="Invalid email or password")

    now = datetime.utcnow()
    streak = calculate_streak(user.get("last_login_date"), user.get("streak_days") or 0, now)
    await db.users.update_one(
        {"user_id": user["user_id"]},
        {"$set": {"last_login_date": now, "streak_days": streak}}
    )

    return {
        "message": "Login successful",
        "user": {
            "user_id": user["user_id"],
            "full_name": user["full_name"],
            "email": user["email"],
            "phone": user.get("phone"),
            "role": user.get("role", "student"),
            "streak_days": streak,
            "token": issue_token(services, user),
        },
    }


async def get_profile(db: AsyncIOMotorDatabase, user_id: str) -> dict:
    user = await db.users.find_one({"user_id": user_id})
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return public_user(user)


async def update_profile(db: AsyncIOMotorDatabase, user_id: str, data: ProfileUpdate) -> dict:
    updates = data.model_dump(exclude_none=True)

    if "email" in updates:
        taken = await db.users.find_one({"email": updates["email"], "user_id": {"$ne": user_id}})
        if taken:
            raise HTTPException(status_code=400, detail="Email already in use")

    if "password" in updates:
        updates["password"] = hash_password(updates["password"])

    updates["updated_at"] = datetime.utcnow()
    result = await db.users.update_one({"user_id": user_id}, {"$set": updates})
    if result.matched_count == 0:
        raise HTTPException(status_code=404, detail="User not found")

    return await get_profile(db, user_id)
