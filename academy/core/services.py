"""
Process-wide service handles.
Constructed in the application lifespan and reached from routes through dependencies.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import httpx
from motor.motor_asyncio import AsyncIOMotorDatabase

from academy.config import Settings
from academy.core.database import connect
from academy.core.rate_limit import FixedWindowLimiter, build_limiters

logger = logging.getLogger(__name__)


@dataclass
class Services:
    settings: Settings
    db: AsyncIOMotorDatabase
    mailer: Any
    tutor: Any
    storage: Any
    limiters: Dict[str, FixedWindowLimiter] = field(default_factory=dict)
    http: Optional[httpx.AsyncClient] = None
    mongo_client: Any = None


def build_services(
    settings: Settings,
    db: Optional[AsyncIOMotorDatabase] = None,
    mailer=None,
    tutor=None,
    storage=None
) -> Services:
    """Wire up every handle, using the given overrides where supplied"""
    from academy.ai.tutor import TutorClient
    from academy.notifications.mailer import Mailer
    from academy.users.storage import CloudinaryStorage

    mongo_client = None
    if db is None:
        mongo_client, db = connect(settings.mongo_url, settings.db_name)

    http = httpx.AsyncClient(timeout=settings.claude_timeout)

    return Services(
        settings=settings,
        db=db,
        mailer=mailer or Mailer(settings),
        tutor=tutor or TutorClient(settings, http),
        storage=storage or CloudinaryStorage(settings),
        limiters=build_limiters(settings),
        http=http,
        mongo_client=mongo_client,
    )


async def close_services(services: Services):
    if services.http is not None:
        await services.http.aclose()
    if services.mongo_client is not None:
        services.mongo_client.close()
    logger.info("Services closed")
