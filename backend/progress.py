"""
Per-user, per-subject completion progress.

Every call re-reads the lesson catalog and the completion records: one
count query and one completion query per subject, nothing cached.
"""
from typing import Iterable, List
import logging

from errors import StoreError
from models.learning import Subject, SubjectProgress

logger = logging.getLogger(__name__)


def percentage(completed: int, total: int) -> int:
    """Whole percent of lessons completed, rounded half-up; 0 for an empty subject"""
    if total <= 0:
        return 0
    completed = max(0, min(completed, total))
    # floor(100 * completed / total + 1/2) without going through floats
    return (200 * completed + total) // (2 * total)


def subject_progress(gateway, user_id: str, subject: Subject) -> SubjectProgress:
    """Count-then-filter for a single subject"""
    total = gateway.count_lessons(subject.id)
    completed = len(gateway.list_completions(user_id, subject.id))
    logger.debug(f"Subject {subject.id}: {completed}/{total} lessons completed by {user_id}")
    return SubjectProgress(
        **subject.model_dump(),
        completed_count=completed,
        total_lessons=total,
        percentage=percentage(completed, total),
    )


def compute_progress(gateway, user_id: str, subjects: Iterable[Subject]) -> List[SubjectProgress]:
    """
    Attach completion counts and a percentage to each subject, keeping the input order.

    A failed lookup marks only its own subject with ``error`` and leaves the
    counts unset, so a broken subject never reads as 0%.
    """
    results = []
    for subject in subjects:
        try:
            results.append(subject_progress(gateway, user_id, subject))
        except StoreError as e:
            logger.warning(f"Progress lookup failed for subject {subject.id}: {e.message}")
            results.append(SubjectProgress(**subject.model_dump(), error=e.message))
    return results
