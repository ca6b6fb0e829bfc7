import asyncio
import logging
import secrets
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING

logger = logging.getLogger(__name__)


def generate_id(prefix: str) -> str:
    """Generate unique ID with prefix"""
    return f"{prefix}_{secrets.token_hex(8).upper()}"


# ==================== SERIALIZATION HELPERS ====================

def utc_naive(value: Optional[datetime]) -> Optional[datetime]:
    """Mongo hands back naive UTC datetimes; store them the same way"""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def serialize_mongo(doc: Optional[dict]) -> Optional[dict]:
    """Strip the storage-internal _id so documents can be returned as JSON"""
    if doc is None:
        return None
    doc.pop("_id", None)
    return doc


def serialize_many(docs: List[dict]) -> List[dict]:
    return [serialize_mongo(doc) for doc in docs]


def public_user(user: Optional[dict]) -> Optional[dict]:
    """User document without credentials"""
    if user is None:
        return None
    user = serialize_mongo(dict(user))
    user.pop("password", None)
    return user


# ==================== BATCH JOINS ====================

async def fetch_by_ids(
    db: AsyncIOMotorDatabase,
    collection: str,
    key: str,
    ids: Iterable[str],
    projection: Optional[dict] = None
) -> Dict[str, dict]:
    """
    Load every document of `collection` whose `key` is in `ids`
    and return them keyed by that field.
    """
    unique_ids = list({i for i in ids if i})
    if not unique_ids:
        return {}

    if projection is not None:
        projection = {**projection, "_id": 0, key: 1}
    else:
        projection = {"_id": 0}

    docs = await db[collection].find({key: {"$in": unique_ids}}, projection).to_list(None)
    return {doc[key]: doc for doc in docs}


async def paginate(
    collection,
    query: dict,
    page: int,
    page_size: int,
    sort: Optional[list] = None,
    projection: Optional[dict] = None
) -> tuple:
    """Run a page query and its total count side by side"""
    cursor = collection.find(query, projection or {"_id": 0})
    if sort:
        cursor = cursor.sort(sort)
    cursor = cursor.skip(page_size * (page - 1)).limit(page_size)

    docs, total = await asyncio.gather(
        cursor.to_list(page_size),
        collection.count_documents(query)
    )
    return serialize_many(docs), total


# ==================== CONNECTION ====================

def connect(mongo_url: str, db_name: str) -> tuple:
    client = AsyncIOMotorClient(mongo_url)
    return client, client[db_name]


async def create_indexes(db: AsyncIOMotorDatabase):
    """Create indexes that back lookups and the unique constraints"""
    try:
        await db.users.create_index("user_id", unique=True)
        await db.users.create_index("email", unique=True)
        await db.users.create_index("role")

        await db.courses.create_index("course_id", unique=True)
        await db.courses.create_index([("instructor_id", ASCENDING), ("created_at", DESCENDING)])

        await db.lessons.create_index("lesson_id", unique=True)
        await db.lessons.create_index([("course_id", ASCENDING), ("order", ASCENDING)])

        await db.quizzes.create_index("quiz_id", unique=True)
        await db.quizzes.create_index("course_id")

        await db.assignments.create_index("assignment_id", unique=True)
        await db.events.create_index("event_id", unique=True)

        await db.enrollments.create_index("enrollment_id", unique=True)
        await db.enrollments.create_index(
            [("student_id", ASCENDING), ("course_id", ASCENDING)],
            unique=True
        )

        await db.payments.create_index("payment_id", unique=True)
        await db.payments.create_index("transaction_id", unique=True)
        await db.payments.create_index([("user_id", ASCENDING), ("created_at", DESCENDING)])

        await db.achievements.create_index("achievement_id", unique=True)
        await db.achievements.create_index([("user_id", ASCENDING), ("course_id", ASCENDING)])

        await db.activity_logs.create_index([("performed_by", ASCENDING), ("created_at", DESCENDING)])
        await db.feature_flags.create_index("key", unique=True)
        await db.ai_interactions.create_index([("user_id", ASCENDING), ("timestamp", DESCENDING)])
        await db.announcements.create_index("announcement_id", unique=True)

        logger.info("Database indexes created")
    except Exception as e:
        logger.warning("Index creation warning: %s", e)
