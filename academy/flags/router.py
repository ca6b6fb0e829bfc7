"""
Runtime feature flags stored in Mongo.
Unknown keys read as false and are created on first read.
"""

from datetime import datetime
from typing import Any

from fastapi import APIRouter, Depends
from motor.motor_asyncio import AsyncIOMotorDatabase
from pydantic import BaseModel

from academy.auth.permissions import CurrentUser, require_roles
from academy.core.dependencies import get_db

router = APIRouter(tags=["Feature Flags"])


class FlagUpdate(BaseModel):
    value: Any = False


async def get_flag_value(db: AsyncIOMotorDatabase, key: str, default: Any = False) -> Any:
    """Read a flag, creating it with `default` when missing"""
    await db.feature_flags.update_one(
        {"key": key},
        {"$setOnInsert": {"key": key, "value": default, "updated_by": None, "updated_at": datetime.utcnow()}},
        upsert=True
    )
    flag = await db.feature_flags.find_one({"key": key}, {"_id": 0})
    return flag.get("value")


@router.get("/{key}")
async def get_flag(key: str, db: AsyncIOMotorDatabase = Depends(get_db)):
    return {"key": key, "value": await get_flag_value(db, key)}


@router.get("")
async def list_flags(
    admin: CurrentUser = Depends(require_roles("admin")),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    return await db.feature_flags.find({}, {"_id": 0}).to_list(None)


@router.put("/{key}")
async def set_flag(
    key: str,
    data: FlagUpdate,
    admin: CurrentUser = Depends(require_roles("admin")),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    await db.feature_flags.update_one(
        {"key": key},
        {"$set": {"value": data.value, "updated_by": admin.user_id, "updated_at": datetime.utcnow()}},
        upsert=True
    )
    return await db.feature_flags.find_one({"key": key}, {"_id": 0})
