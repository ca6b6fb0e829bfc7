from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from academy.core.database import generate_id


class PaymentType(str, Enum):
    COURSE_PURCHASE = "course_purchase"
    SUBSCRIPTION = "subscription"

class PaymentStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"

# ==================== DATABASE MODELS ====================

class Payment(BaseModel):
    model_config = ConfigDict(use_enum_values=True, validate_default=True)

    payment_id: str = Field(default_factory=lambda: generate_id("PAY"))
    user_id: str
    course_id: Optional[str] = None
    amount: float
    currency: str = "INR"
    type: PaymentType = PaymentType.COURSE_PURCHASE
    status: PaymentStatus = PaymentStatus.COMPLETED
    payment_method: Optional[str] = None
    transaction_id: str = Field(default_factory=lambda: generate_id("TXN"))
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

# ==================== REQUEST MODELS ====================

class PaymentCreate(BaseModel):
    course_id: str
    amount: Optional[float] = Field(None, ge=0)
    currency: str = "INR"
    type: PaymentType = PaymentType.COURSE_PURCHASE
    payment_method: Optional[str] = None
    transaction_id: Optional[str] = None

class PaymentUpdate(BaseModel):
    status: Optional[PaymentStatus] = None
    amount: Optional[float] = Field(None, ge=0)

class UpiVerifyRequest(BaseModel):
    upi: Optional[str] = None
    gateway: Optional[str] = None

class ProcessPaymentRequest(BaseModel):
    method: Optional[str] = None
    amount: Optional[float] = None
    details: Optional[Any] = None
