from enum import Enum
from typing import Set, Tuple
import logging

from starlette.concurrency import run_in_threadpool

from errors import UniquenessViolation

logger = logging.getLogger(__name__)


class MarkResult(str, Enum):
    COMPLETED = "completed"
    ALREADY_COMPLETED = "already_completed"
    IN_PROGRESS = "in_progress"


class CompletionMarker:
    """
    Records "user finished lesson", at most once per pair.

    One instance is shared by the whole process. Keys are only touched from
    the event loop, so a plain set is enough to spot a submission that is
    still in flight.
    """

    def __init__(self):
        self._in_flight: Set[Tuple[str, str]] = set()

    def is_in_flight(self, user_id: str, lesson_id: str) -> bool:
        return (user_id, lesson_id) in self._in_flight

    async def mark_complete(self, gateway, user_id: str, lesson_id: str) -> MarkResult:
        key = (user_id, lesson_id)
        if key in self._in_flight:
            logger.info(f"Ignoring repeat completion of lesson {lesson_id} by {user_id} while one is in flight")
            return MarkResult.IN_PROGRESS

        self._in_flight.add(key)
        try:
            await run_in_threadpool(gateway.insert_completion, user_id, lesson_id)
        except UniquenessViolation:
            # Already recorded; the store's unique constraint did the work
            return MarkResult.ALREADY_COMPLETED
        finally:
            self._in_flight.discard(key)

        logger.info(f"User {user_id} completed lesson {lesson_id}")
        return MarkResult.COMPLETED
