from datetime import datetime
from enum import Enum
from typing import List, Optional, Union

from pydantic import BaseModel, Field, field_validator

# ==================== ENUMS ====================

class CourseLevel(str, Enum):
    BEGINNER = "Beginner"
    INTERMEDIATE = "Intermediate"
    ADVANCED = "Advanced"

class EventType(str, Enum):
    LIVE_CLASS = "Live Class"
    WEBINAR = "Webinar"
    WORKSHOP = "Workshop"

class EventStatus(str, Enum):
    SCHEDULED = "Scheduled"
    IN_PROGRESS = "In Progress"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"

class SubmissionStatus(str, Enum):
    PENDING = "pending"
    SUBMITTED = "submitted"
    GRADED = "graded"

# ==================== COURSE MODELS ====================

class CourseCreate(BaseModel):
    title: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)
    price: float = Field(0, ge=0)
    duration: str = ""
    level: CourseLevel = CourseLevel.BEGINNER
    category: str = "General"
    thumbnail: str = ""
    is_published: bool = False

class CourseUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    price: Optional[float] = Field(None, ge=0)
    duration: Optional[str] = None
    level: Optional[CourseLevel] = None
    category: Optional[str] = None
    thumbnail: Optional[str] = None
    is_published: Optional[bool] = None

class ReviewCreate(BaseModel):
    rating: int = Field(..., ge=1, le=5)
    comment: str = ""

# ==================== LESSON MODELS ====================

class Resource(BaseModel):
    title: str
    url: str
    type: Optional[str] = None

class LessonCreate(BaseModel):
    course_id: str
    title: str = Field(..., min_length=1)
    description: str = ""
    content: str = ""
    video_url: Optional[str] = None
    duration: Optional[str] = None
    resources: List[Resource] = []
    quiz_id: Optional[str] = None
    order: int = 0
    is_published: bool = False

class LessonUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    content: Optional[str] = None
    video_url: Optional[str] = None
    duration: Optional[str] = None
    resources: Optional[List[Resource]] = None
    quiz_id: Optional[str] = None
    order: Optional[int] = None
    is_published: Optional[bool] = None

# ==================== QUIZ MODELS ====================

class QuestionInput(BaseModel):
    question: str = Field(..., min_length=1)
    options: List[str] = Field(..., min_length=2)
    correct_answer: Union[str, int]
    marks: Optional[float] = None

    @field_validator("marks")
    @classmethod
    def validate_marks(cls, v):
        if v is not None and v < 0:
            raise ValueError("Marks cannot be negative")
        return v

class QuizCreate(BaseModel):
    course_id: str
    lesson_id: Optional[str] = None
    title: str = Field(..., min_length=1)
    description: str = ""
    questions: List[QuestionInput] = Field(..., min_length=1)
    passing_score: Optional[float] = Field(None, ge=0, le=100)
    duration: Optional[int] = None  # minutes

class QuizUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    questions: Optional[List[QuestionInput]] = None
    passing_score: Optional[float] = Field(None, ge=0, le=100)
    duration: Optional[int] = None

class AnswerInput(BaseModel):
    question_id: Optional[str] = None
    question_index: Optional[int] = None
    question: Optional[str] = None
    selected_option: Union[str, int, None] = None

class QuizSubmission(BaseModel):
    answers: List[AnswerInput] = []

# ==================== ASSIGNMENT MODELS ====================

class Attachment(BaseModel):
    title: str
    file_url: str
    type: Optional[str] = None

class AssignmentCreate(BaseModel):
    course_id: str
    lesson_id: Optional[str] = None
    title: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)
    due_date: datetime
    total_marks: float = Field(..., gt=0)
    attachments: List[Attachment] = []

class AssignmentUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    due_date: Optional[datetime] = None
    total_marks: Optional[float] = Field(None, gt=0)
    attachments: Optional[List[Attachment]] = None

class AssignmentSubmit(BaseModel):
    submission_url: str = Field(..., min_length=1)

class AssignmentGrade(BaseModel):
    marks: float = Field(..., ge=0)
    feedback: str = ""

# ==================== EVENT MODELS ====================

class EventCreate(BaseModel):
    title: str = Field(..., min_length=1)
    type: EventType = EventType.LIVE_CLASS
    date: datetime
    start_time: str
    end_time: str
    location: str
    max_students: int = Field(30, ge=1)
    course_id: Optional[str] = None

class EventUpdate(BaseModel):
    title: Optional[str] = None
    type: Optional[EventType] = None
    date: Optional[datetime] = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    location: Optional[str] = None
    max_students: Optional[int] = Field(None, ge=1)
    status: Optional[EventStatus] = None
    course_id: Optional[str] = None
