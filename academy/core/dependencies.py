from fastapi import Request
from motor.motor_asyncio import AsyncIOMotorDatabase

from academy.config import Settings
from academy.core.services import Services

# ==================== DEPENDENCY FUNCTIONS ====================

def get_services(request: Request) -> Services:
    return request.app.state.services


async def get_db(request: Request) -> AsyncIOMotorDatabase:
    """Database dependency"""
    return request.app.state.services.db


async def get_settings(request: Request) -> Settings:
    return request.app.state.services.settings
