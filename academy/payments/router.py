import asyncio
import logging
import secrets

from fastapi import APIRouter, Depends, HTTPException
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import DuplicateKeyError

from academy.auth.permissions import CurrentUser, ensure_owner_or_admin, get_current_user, require_roles
from academy.config import Settings
from academy.core.database import fetch_by_ids, serialize_mongo
from academy.core.dependencies import get_db, get_settings
from academy.courses.database import get_course_or_404, get_instructor_course_ids
from academy.payments.models import (
    Payment, PaymentCreate, PaymentStatus, PaymentUpdate, ProcessPaymentRequest, UpiVerifyRequest
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Payments"])


async def _get_payment_or_404(db: AsyncIOMotorDatabase, payment_id: str) -> dict:
    payment = await db.payments.find_one({"payment_id": payment_id}, {"_id": 0})
    if not payment:
        raise HTTPException(status_code=404, detail="Payment not found")
    return payment


@router.post("", status_code=201)
async def create_payment(
    data: PaymentCreate,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    """
    Record a completed payment from the mock gateway.
    Enrollment activation is a separate step.
    """
    course = await get_course_or_404(db, data.course_id)

    fields = data.model_dump(exclude_none=True)
    if data.amount is None:
        fields["amount"] = course.get("price", 0)

    payment = Payment(user_id=user.user_id, **fields).model_dump()
    try:
        await db.payments.insert_one(payment)
    except DuplicateKeyError:
        raise HTTPException(status_code=400, detail="Duplicate transaction ID")

    logger.info("Payment %s recorded for %s on %s", payment["payment_id"], user.user_id, data.course_id)
    return serialize_mongo(payment)


@router.get("")
async def list_my_payments(
    user: CurrentUser = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    payments = await db.payments.find({"user_id": user.user_id}, {"_id": 0}).sort("created_at", -1).to_list(None)
    courses = await fetch_by_ids(
        db, "courses", "course_id", [p["course_id"] for p in payments if p.get("course_id")],
        {"title": 1, "price": 1}
    )
    for payment in payments:
        payment["course"] = courses.get(payment.get("course_id"))
    return payments


@router.get("/instructor/revenue")
async def instructor_revenue(
    user: CurrentUser = Depends(require_roles("instructor", "admin")),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    course_ids = await get_instructor_course_ids(db, user.user_id)
    pipeline = [
        {"$match": {"course_id": {"$in": course_ids}, "status": PaymentStatus.COMPLETED.value}},
        {"$group": {"_id": "$course_id", "revenue": {"$sum": "$amount"}, "payments": {"$sum": 1}}},
        {"$sort": {"revenue": -1}},
    ]
    groups = await db.payments.aggregate(pipeline).to_list(None)

    return {
        "total_revenue": sum(g["revenue"] for g in groups),
        "payments_count": sum(g["payments"] for g in groups),
        "by_course": [
            {"course_id": g["_id"], "revenue": g["revenue"], "payments": g["payments"]}
            for g in groups
        ],
    }

# ==================== MOCK GATEWAY ====================

@router.post("/verify-upi")
async def verify_upi(data: UpiVerifyRequest, settings: Settings = Depends(get_settings)):
    if not data.upi:
        raise HTTPException(status_code=400, detail="UPI ID is required")

    parts = data.upi.split("@")
    if len(parts) != 2 or not parts[0] or not parts[1]:
        raise HTTPException(status_code=400, detail="Invalid UPI ID format")

    await asyncio.sleep(settings.mock_upi_delay)

    name = parts[0]
    return {"verified": True, "name": name[:1].upper() + name[1:], "gateway": data.gateway}


@router.post("/process-payment")
async def process_payment(data: ProcessPaymentRequest, settings: Settings = Depends(get_settings)):
    if not data.method or not data.amount:
        raise HTTPException(status_code=400, detail="method and amount required")

    await asyncio.sleep(settings.mock_payment_delay)

    return {
        "success": True,
        "tx_id": f"TXN-{secrets.randbelow(10 ** 6):06d}",
        "method": data.method,
        "amount": data.amount,
        "details": data.details,
    }

# ==================== SINGLE PAYMENT ====================

@router.get("/{payment_id}")
async def get_payment(
    payment_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    payment = await _get_payment_or_404(db, payment_id)
    ensure_owner_or_admin(user, payment["user_id"], "Not authorized to view this payment")
    return payment


@router.put("/{payment_id}")
async def update_payment(
    payment_id: str,
    data: PaymentUpdate,
    user: CurrentUser = Depends(require_roles("admin")),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    await _get_payment_or_404(db, payment_id)
    updates = data.model_dump(mode="json", exclude_none=True)
    if updates:
        await db.payments.update_one({"payment_id": payment_id}, {"$set": updates})
    return await _get_payment_or_404(db, payment_id)
