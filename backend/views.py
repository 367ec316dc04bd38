"""
View loaders: what each page needs, assembled from the gateway.

Every loader takes the SessionContext of the request that triggered it
instead of reading session state from anywhere global.
"""
from typing import Awaitable, Callable, Iterable, List, Optional
import logging

from errors import AuthError, NotFoundError, StaleViewError, StoreError
from models.auth import Token, UserCreate
from models.learning import (
    DashboardSubject,
    DashboardView,
    LessonDetail,
    Role,
    SessionContext,
    SubjectType,
    SubjectView,
)
from progress import compute_progress

logger = logging.getLogger(__name__)

ALL_GRADES = "All"


class ViewScope:
    """Binds a load to the view that asked for it and drops late results"""

    def __init__(self, is_disconnected: Callable[[], Awaitable[bool]], name: str = "view"):
        self._is_disconnected = is_disconnected
        self.name = name

    async def is_active(self) -> bool:
        return not await self._is_disconnected()

    async def deliver(self, result):
        if not await self.is_active():
            logger.info(f"Discarding {self.name} load, the requesting view is gone")
            raise StaleViewError(f"{self.name} is no longer active")
        return result


def load_session(gateway) -> SessionContext:
    user = gateway.get_current_user()
    if user is None:
        raise AuthError("Not signed in")

    profile = gateway.get_profile(user.id)
    if profile is None:
        return SessionContext(user_id=user.id, email=user.email)
    return SessionContext(
        user_id=user.id,
        email=user.email,
        full_name=profile.full_name,
        role=profile.role,
        grade=profile.grade,
    )


def entry_url(subject, role: Role) -> str:
    # Students jump straight into external video/live content
    if role != Role.ADMIN and subject.subject_type in (SubjectType.VIDEO, SubjectType.LIVE) and subject.content_url:
        return subject.content_url
    return f"/subject/{subject.id}"


def filter_subjects(subjects: Iterable, query: Optional[str] = None, grade: Optional[str] = None) -> List:
    """Case-insensitive search over title/description plus an exact grade filter"""
    needle = (query or "").strip().lower()
    matched = []
    for subject in subjects:
        if needle and needle not in subject.title.lower() and needle not in (subject.description or "").lower():
            continue
        if grade and grade != ALL_GRADES and subject.target_grade != grade:
            continue
        matched.append(subject)
    return matched


def load_dashboard(gateway, ctx: SessionContext, query: Optional[str] = None, grade: Optional[str] = None) -> DashboardView:
    # Admins manage everything; students only see their own grade
    if ctx.is_admin:
        subjects = gateway.list_subjects()
    elif ctx.grade:
        subjects = gateway.list_subjects(target_grade=ctx.grade)
    else:
        # No profile (or no grade) yet: nothing is targeted at this student
        subjects = []
    visible = filter_subjects(subjects, query, grade)

    items = [
        DashboardSubject(**progress.model_dump(), entry_url=entry_url(progress, ctx.role))
        for progress in compute_progress(gateway, ctx.user_id, visible)
    ]
    return DashboardView(session=ctx, subjects=items, total_subjects=len(subjects))


def load_subject_view(gateway, ctx: SessionContext, subject_id: str) -> SubjectView:
    subject = gateway.get_subject(subject_id)
    if subject is None:
        raise NotFoundError("Subject not found")
    return SubjectView(session=ctx, subject=subject, lessons=gateway.list_lessons(subject_id))


def load_lesson(gateway, lesson_id: str) -> LessonDetail:
    lesson = gateway.get_lesson(lesson_id)
    if lesson is None:
        raise NotFoundError("Lesson not found")
    return lesson


def sign_up_student(gateway, user: UserCreate) -> Token:
    """Create the identity, then its student profile"""
    identity = gateway.sign_up(user.email, user.password)
    try:
        gateway.insert_profile(identity.id, user.full_name, user.grade)
    except StoreError as e:
        raise StoreError(f"Account created, but profile setup failed: {e.message}", code=e.code) from e
    return Token(access_token=gateway.access_token, user_id=identity.id, email=identity.email)
