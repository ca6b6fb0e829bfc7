from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from academy.core.database import generate_id


class EnrollmentStatus(str, Enum):
    PENDING = "pending"
    ACTIVE = "active"
    COMPLETED = "completed"

OPEN_STATUSES = [EnrollmentStatus.PENDING.value, EnrollmentStatus.ACTIVE.value, EnrollmentStatus.COMPLETED.value]
ACCESS_STATUSES = [EnrollmentStatus.ACTIVE.value, EnrollmentStatus.COMPLETED.value]

# ==================== DATABASE MODELS ====================

class Enrollment(BaseModel):
    model_config = ConfigDict(use_enum_values=True, validate_default=True)

    enrollment_id: str = Field(default_factory=lambda: generate_id("ENR"))
    student_id: str
    course_id: str
    enrollment_status: EnrollmentStatus = EnrollmentStatus.PENDING
    progress_percentage: int = 0
    watch_hours: float = 0
    completed: bool = False
    payment_id: Optional[str] = None  # set only once active
    enrolled_at: Optional[datetime] = None
    last_accessed: Optional[datetime] = None
    certificate_downloaded_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

# ==================== REQUEST MODELS ====================

class EnrollmentCreate(BaseModel):
    course_id: Optional[str] = None

class EnrollmentActivate(BaseModel):
    payment_id: Optional[str] = None

class EnrollmentUpdate(BaseModel):
    progress_percentage: Optional[float] = None
    watch_hours: Optional[float] = Field(None, ge=0)
    completed: Optional[bool] = None
