import re
from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[A-Za-z]{2,}$")

# ==================== ENUMS ====================

class UserRole(str, Enum):
    STUDENT = "student"
    PARENT = "parent"
    INSTRUCTOR = "instructor"
    ADMIN = "admin"
    SUB_ADMIN = "sub-admin"

class UserStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"

PRIVILEGED_ROLES = {UserRole.ADMIN, UserRole.SUB_ADMIN}


def normalize_email(value: str) -> str:
    value = (value or "").strip().lower()
    if not EMAIL_RE.match(value):
        raise ValueError("Please enter a valid email")
    return value

# ==================== DATABASE MODELS ====================

class Address(BaseModel):
    street: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip: Optional[str] = None
    country: Optional[str] = None

class WeeklyStats(BaseModel):
    attended: int = 0
    study_hours: float = 0
    upcoming: int = 0

class EnrolledCourse(BaseModel):
    """Per-course progress embedded in the user document"""
    course_id: str
    completed_lessons: List[str] = []
    hours_spent: float = 0
    enrollment_date: datetime = Field(default_factory=datetime.utcnow)
    completion_percentage: int = 0
    certificate_downloaded_at: Optional[datetime] = None

class User(BaseModel):
    model_config = ConfigDict(use_enum_values=True, validate_default=True)

    user_id: str  # USR_XXXXXX
    full_name: str
    email: str
    password: str  # bcrypt hash
    role: UserRole = UserRole.STUDENT
    phone: Optional[str] = None
    bio: Optional[str] = None
    location: Optional[str] = None
    address: Address = Field(default_factory=Address)
    status: UserStatus = UserStatus.ACTIVE
    avatar: Optional[str] = None
    last_login_date: Optional[datetime] = None
    streak_days: int = 0
    children: List[str] = []  # parent -> student user_ids
    assigned_courses: List[str] = []
    permissions: List[str] = []  # sub-admin allow-list
    total_hours_learned: float = 0
    weekly_stats: WeeklyStats = Field(default_factory=WeeklyStats)
    achievements: List[str] = []
    enrolled_courses: List[EnrolledCourse] = []
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

# ==================== REQUEST MODELS ====================

class RegisterRequest(BaseModel):
    full_name: str = Field(..., min_length=1)
    email: str
    password: str = Field(..., min_length=6)
    role: UserRole = UserRole.STUDENT
    phone: Optional[str] = None

    @field_validator("email")
    @classmethod
    def validate_email(cls, v):
        return normalize_email(v)

class LoginRequest(BaseModel):
    email: str
    password: str

    @field_validator("email")
    @classmethod
    def lower_email(cls, v):
        return (v or "").strip().lower()

class ProfileUpdate(BaseModel):
    full_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    bio: Optional[str] = None
    location: Optional[str] = None
    avatar: Optional[str] = None
    address: Optional[Address] = None
    password: Optional[str] = Field(None, min_length=6)

    @field_validator("email")
    @classmethod
    def validate_email(cls, v):
        if v is None:
            return v
        return normalize_email(v)
