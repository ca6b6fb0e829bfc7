from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from academy.auth.models import Address, UserRole, UserStatus, normalize_email
from academy.auth.permissions import PERMISSIONS
from academy.core.database import generate_id
from academy.courses.models import CourseCreate
from academy.enrollments.models import EnrollmentStatus


def _check_permissions(values: Optional[List[str]]) -> Optional[List[str]]:
    if values is None:
        return values
    unknown = [p for p in values if p not in PERMISSIONS]
    if unknown:
        raise ValueError(f"Unknown permissions: {', '.join(unknown)}")
    return values


class AnnouncementTarget(str, Enum):
    ALL = "all"
    STUDENTS = "students"
    PARENTS = "parents"
    INSTRUCTORS = "instructors"

# ==================== DATABASE MODELS ====================

class Announcement(BaseModel):
    model_config = ConfigDict(use_enum_values=True, validate_default=True)

    announcement_id: str = Field(default_factory=lambda: generate_id("ANN"))
    title: str
    message: str
    target_role: AnnouncementTarget = AnnouncementTarget.ALL
    created_by: str
    created_at: datetime = Field(default_factory=datetime.utcnow)

# ==================== USERS ====================

class AdminUserCreate(BaseModel):
    full_name: str = Field(..., min_length=1)
    email: str
    password: str = Field(..., min_length=6)
    role: UserRole = UserRole.STUDENT
    phone: Optional[str] = None

    @field_validator("email")
    @classmethod
    def validate_email(cls, v):
        return normalize_email(v)

class AdminUserUpdate(BaseModel):
    full_name: Optional[str] = None
    phone: Optional[str] = None
    bio: Optional[str] = None
    location: Optional[str] = None
    address: Optional[Address] = None
    role: Optional[UserRole] = None
    status: Optional[UserStatus] = None
    permissions: Optional[List[str]] = None

    @field_validator("permissions")
    @classmethod
    def validate_permissions(cls, v):
        return _check_permissions(v)

class SubAdminCreate(BaseModel):
    full_name: str = Field(..., min_length=1)
    email: str
    password: str = Field(..., min_length=6)
    permissions: List[str] = []

    @field_validator("email")
    @classmethod
    def validate_email(cls, v):
        return normalize_email(v)

    @field_validator("permissions")
    @classmethod
    def validate_permissions(cls, v):
        return _check_permissions(v)

class SubAdminUpdate(BaseModel):
    permissions: Optional[List[str]] = None
    status: Optional[UserStatus] = None

    @field_validator("permissions")
    @classmethod
    def validate_permissions(cls, v):
        return _check_permissions(v)

# ==================== COURSES / ENROLLMENTS ====================

class AdminCourseCreate(CourseCreate):
    instructor_id: str

class AdminEnrollmentCreate(BaseModel):
    student_id: str
    course_id: str
    enrollment_status: EnrollmentStatus = EnrollmentStatus.ACTIVE

class AdminEnrollmentUpdate(BaseModel):
    enrollment_status: Optional[EnrollmentStatus] = None
    progress_percentage: Optional[int] = Field(None, ge=0, le=100)
    watch_hours: Optional[float] = Field(None, ge=0)
    completed: Optional[bool] = None

# ==================== ANNOUNCEMENTS ====================

class AnnouncementCreate(BaseModel):
    title: str = Field(..., min_length=1)
    message: str = Field(..., min_length=1)
    target_role: AnnouncementTarget = AnnouncementTarget.ALL
