"""
Data access gateway.

A single handle to the store, bound to one request's database session and
acting on behalf of whoever holds ``access_token``. It owns no business
logic: every method is one read or one atomic write. The row policies
checked here (admin-only content writes, own-row completion inserts) are
the authoritative permission layer; role checks made before calling the
gateway are advisory only.
"""
from contextlib import contextmanager
from typing import List, Optional
import logging
import uuid

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from errors import AuthError, StoreError, UniquenessViolation
from models.auth import Token, UserIdentity
from models.learning import (
    CompletionRecord,
    Lesson,
    LessonCreate,
    LessonDetail,
    Profile,
    Role,
    Subject,
    SubjectCreate,
)
from models import schema
from security import create_access_token, decode_access_token, get_password_hash, verify_password

logger = logging.getLogger(__name__)

INSUFFICIENT_PRIVILEGE = "42501"


def _is_unique_violation(exc: IntegrityError) -> bool:
    orig = exc.orig
    # psycopg2 exposes pgcode, psycopg 3 sqlstate
    code = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
    if code:
        return code == UniquenessViolation.UNIQUE_VIOLATION
    return "UNIQUE constraint failed" in str(orig)


class DataGateway:
    def __init__(self, db: Session, access_token: Optional[str] = None):
        self.db = db
        self.access_token = access_token

    @contextmanager
    def _store_call(self):
        try:
            yield
        except IntegrityError as e:
            self.db.rollback()
            if _is_unique_violation(e):
                raise UniquenessViolation(str(e.orig)) from e
            raise StoreError(str(e.orig)) from e
        except SQLAlchemyError as e:
            self.db.rollback()
            message = str(e.orig) if getattr(e, "orig", None) is not None else str(e)
            raise StoreError(message) from e

    def _policy_violation(self, table: str) -> StoreError:
        return StoreError(
            f'new row violates row-level security policy for table "{table}"',
            code=INSUFFICIENT_PRIVILEGE,
        )

    def _require_admin(self, table: str):
        user = self.get_current_user()
        profile = self.get_profile(user.id) if user else None
        if profile is None or profile.role != Role.ADMIN:
            raise self._policy_violation(table)

    # --- Identity ------------------------------------------------------

    def _claims(self) -> Optional[dict]:
        if not self.access_token:
            return None
        return decode_access_token(self.access_token)

    def get_current_user(self) -> Optional[UserIdentity]:
        claims = self._claims()
        if not claims or "user_id" not in claims:
            return None

        with self._store_call():
            if claims.get("jti") and self.db.get(schema.RevokedToken, claims["jti"]):
                return None
            user = self.db.get(schema.User, claims["user_id"])
        if user is None:
            return None
        return UserIdentity(id=user.id, email=user.email, created_at=user.created_at)

    def sign_up(self, email: str, password: str) -> UserIdentity:
        with self._store_call():
            existing = self.db.query(schema.User).filter(schema.User.email == email).first()
            if existing:
                raise StoreError("User already registered")

            user = schema.User(
                id=str(uuid.uuid4()),
                email=email,
                hashed_password=get_password_hash(password),
            )
            self.db.add(user)
            self.db.commit()
            self.db.refresh(user)

        # A fresh sign-up is signed in, like the hosted auth it replaces
        self.access_token = create_access_token({"sub": user.email, "user_id": user.id})
        logger.info(f"Signed up user {user.id}")
        return UserIdentity(id=user.id, email=user.email, created_at=user.created_at)

    def sign_in(self, email: str, password: str) -> Token:
        with self._store_call():
            user = self.db.query(schema.User).filter(schema.User.email == email).first()
        if not user or not verify_password(password, user.hashed_password):
            raise AuthError("Invalid login credentials")

        self.access_token = create_access_token({"sub": user.email, "user_id": user.id})
        logger.info(f"Signed in user {user.id}")
        return Token(access_token=self.access_token, user_id=user.id, email=user.email)

    def sign_out(self):
        claims = self._claims()
        if claims and claims.get("jti"):
            with self._store_call():
                if not self.db.get(schema.RevokedToken, claims["jti"]):
                    self.db.add(schema.RevokedToken(jti=claims["jti"]))
                    self.db.commit()
            logger.info(f"Signed out user {claims.get('user_id')}")
        self.access_token = None

    # --- Profiles ------------------------------------------------------

    def get_profile(self, user_id: str) -> Optional[Profile]:
        with self._store_call():
            profile = self.db.get(schema.Profile, user_id)
        if profile is None:
            return None
        return Profile.model_validate(profile)

    def insert_profile(self, user_id: str, full_name: str, grade: str) -> Profile:
        user = self.get_current_user()
        if user is None or user.id != user_id:
            raise self._policy_violation("profiles")

        with self._store_call():
            # Self-service profiles are always students
            profile = schema.Profile(id=user_id, full_name=full_name, grade=grade, role=Role.STUDENT.value)
            self.db.add(profile)
            self.db.commit()
            self.db.refresh(profile)
        return Profile.model_validate(profile)

    # --- Subjects ------------------------------------------------------

    def list_subjects(self, target_grade: Optional[str] = None) -> List[Subject]:
        with self._store_call():
            query = self.db.query(schema.Subject)
            if target_grade is not None:
                query = query.filter(schema.Subject.target_grade == target_grade)
            rows = query.order_by(schema.Subject.title.asc()).all()
        return [Subject.model_validate(row) for row in rows]

    def get_subject(self, subject_id: str) -> Optional[Subject]:
        with self._store_call():
            row = self.db.get(schema.Subject, subject_id)
        return Subject.model_validate(row) if row else None

    def insert_subject(self, fields: SubjectCreate) -> Subject:
        self._require_admin("subjects")
        with self._store_call():
            row = schema.Subject(
                id=str(uuid.uuid4()),
                title=fields.title,
                description=fields.description,
                target_grade=fields.target_grade,
                subject_type=fields.subject_type.value,
                content_url=fields.content_url,
            )
            self.db.add(row)
            self.db.commit()
            self.db.refresh(row)
        return Subject.model_validate(row)

    def delete_subject(self, subject_id: str):
        self._require_admin("subjects")
        with self._store_call():
            row = self.db.get(schema.Subject, subject_id)
            if row is not None:
                self.db.delete(row)
                self.db.commit()

    # --- Lessons -------------------------------------------------------

    def count_lessons(self, subject_id: str) -> int:
        with self._store_call():
            total = (
                self.db.query(func.count(schema.Lesson.id))
                .filter(schema.Lesson.subject_id == subject_id)
                .scalar()
            )
        return total or 0

    def list_lessons(self, subject_id: str) -> List[Lesson]:
        with self._store_call():
            rows = (
                self.db.query(schema.Lesson)
                .filter(schema.Lesson.subject_id == subject_id)
                .order_by(schema.Lesson.created_at.asc())
                .all()
            )
        return [Lesson.model_validate(row) for row in rows]

    def get_lesson(self, lesson_id: str) -> Optional[LessonDetail]:
        with self._store_call():
            found = (
                self.db.query(schema.Lesson, schema.Subject.title)
                .join(schema.Subject, schema.Lesson.subject_id == schema.Subject.id)
                .filter(schema.Lesson.id == lesson_id)
                .first()
            )
        if found is None:
            return None
        lesson, subject_title = found
        return LessonDetail(**Lesson.model_validate(lesson).model_dump(), subject_title=subject_title)

    def insert_lesson(self, subject_id: str, fields: LessonCreate) -> Lesson:
        self._require_admin("lessons")
        with self._store_call():
            row = schema.Lesson(
                id=str(uuid.uuid4()),
                subject_id=subject_id,
                title=fields.title,
                content=fields.content,
            )
            self.db.add(row)
            self.db.commit()
            self.db.refresh(row)
        return Lesson.model_validate(row)

    # --- Completion records --------------------------------------------

    def list_completions(self, user_id: str, subject_id: str) -> List[CompletionRecord]:
        with self._store_call():
            rows = (
                self.db.query(schema.LessonProgress)
                .join(schema.Lesson, schema.LessonProgress.lesson_id == schema.Lesson.id)
                .filter(schema.LessonProgress.user_id == user_id)
                .filter(schema.Lesson.subject_id == subject_id)
                .all()
            )
        return [CompletionRecord.model_validate(row) for row in rows]

    def insert_completion(self, user_id: str, lesson_id: str) -> CompletionRecord:
        user = self.get_current_user()
        if user is None or user.id != user_id:
            raise self._policy_violation("lesson_progress")

        with self._store_call():
            row = schema.LessonProgress(id=str(uuid.uuid4()), user_id=user_id, lesson_id=lesson_id)
            self.db.add(row)
            self.db.commit()
            self.db.refresh(row)
        return CompletionRecord.model_validate(row)
