"""
Admin-only content changes.

The role check here only spares a pointless round trip for students; the
gateway's row policies decide what actually gets written.
"""
import logging

from errors import ConfirmationRequiredError, PermissionDeniedError
from models.learning import Lesson, LessonCreate, SessionContext, Subject, SubjectCreate

logger = logging.getLogger(__name__)


class ContentEditor:
    def __init__(self, gateway):
        self.gateway = gateway

    def _require_admin(self, ctx: SessionContext, action: str):
        if not ctx.is_admin:
            logger.info(f"Blocked {action} for non-admin user {ctx.user_id}")
            raise PermissionDeniedError(f"Unauthorized: Only admins can {action}.")

    def create_subject(self, ctx: SessionContext, fields: SubjectCreate) -> Subject:
        self._require_admin(ctx, "add subjects")
        subject = self.gateway.insert_subject(fields)
        logger.info(f"Admin {ctx.user_id} created subject {subject.id} ({subject.title})")
        return subject

    def delete_subject(self, ctx: SessionContext, subject_id: str, confirmed: bool = False):
        self._require_admin(ctx, "delete subjects")
        if not confirmed:
            raise ConfirmationRequiredError("Are you sure? Deleting a subject also removes its lessons.")
        self.gateway.delete_subject(subject_id)
        logger.info(f"Admin {ctx.user_id} deleted subject {subject_id}")

    def create_lesson(self, ctx: SessionContext, subject_id: str, fields: LessonCreate) -> Lesson:
        self._require_admin(ctx, "add lessons")
        lesson = self.gateway.insert_lesson(subject_id, fields)
        logger.info(f"Admin {ctx.user_id} added lesson {lesson.id} to subject {subject_id}")
        return lesson
