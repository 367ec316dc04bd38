from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import List, Optional
from datetime import datetime
from enum import Enum


class Role(str, Enum):
    STUDENT = "student"
    ADMIN = "admin"


class SubjectType(str, Enum):
    LESSON = "lesson"
    VIDEO = "video"
    LIVE = "live"


class Profile(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    full_name: Optional[str] = None
    role: Role = Role.STUDENT
    grade: Optional[str] = None


class SessionContext(BaseModel):
    """Who is looking at a view; built once per request and passed along"""
    user_id: str
    email: str
    full_name: Optional[str] = None
    role: Role = Role.STUDENT
    grade: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN


# --- Subjects ----------------------------------------------------------

class SubjectCreate(BaseModel):
    title: str = Field(min_length=1)
    target_grade: str = Field(min_length=1)
    subject_type: SubjectType = SubjectType.LESSON
    description: Optional[str] = None
    content_url: Optional[str] = None

    @field_validator("description", "content_url")
    @classmethod
    def blank_to_none(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and not value.strip():
            return None
        return value


class Subject(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    title: str
    description: Optional[str] = None
    target_grade: str
    subject_type: SubjectType = SubjectType.LESSON
    content_url: Optional[str] = None
    created_at: Optional[datetime] = None


class SubjectProgress(Subject):
    # None on all three means the lookup failed and `error` says why
    completed_count: Optional[int] = None
    total_lessons: Optional[int] = None
    percentage: Optional[int] = None
    error: Optional[str] = None


# --- Lessons -----------------------------------------------------------

class LessonCreate(BaseModel):
    title: str = Field(min_length=1)
    content: str = Field(min_length=1)


class Lesson(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    subject_id: str
    title: str
    content: str
    created_at: Optional[datetime] = None


class LessonDetail(Lesson):
    subject_title: Optional[str] = None


class CompletionRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user_id: str
    lesson_id: str
    created_at: Optional[datetime] = None


# --- View models -------------------------------------------------------

class DashboardSubject(SubjectProgress):
    entry_url: str


class DashboardView(BaseModel):
    session: SessionContext
    subjects: List[DashboardSubject]
    total_subjects: int


class SubjectView(BaseModel):
    session: SessionContext
    subject: Subject
    lessons: List[Lesson]


class CompletionResponse(BaseModel):
    status: str
    lesson_id: str
    next_url: Optional[str] = None
