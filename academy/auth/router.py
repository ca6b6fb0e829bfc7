from fastapi import APIRouter, Depends
from motor.motor_asyncio import AsyncIOMotorDatabase

from academy.auth import service
from academy.auth.models import LoginRequest, ProfileUpdate, RegisterRequest
from academy.auth.permissions import CurrentUser, get_current_user
from academy.core.dependencies import get_db, get_services
from academy.core.rate_limit import rate_limit

router = APIRouter(tags=["Auth"])


@router.post("/register", status_code=201)
async def register(data: RegisterRequest, services=Depends(get_services)):
    """
    Create an account and return it with a fresh token
    """
    return await service.register_user(services, data)


@router.post("/login", dependencies=[Depends(rate_limit("login"))])
async def login(data: LoginRequest, services=Depends(get_services)):
    return await service.login_user(services, data.email, data.password)


@router.get("/profile")
async def get_profile(
    user: CurrentUser = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    return await service.get_profile(db, user.user_id)


@router.put("/profile")
async def update_profile(
    data: ProfileUpdate,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    return await service.update_profile(db, user.user_id, data)
