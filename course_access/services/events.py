"""Domain events emitted after entitlement state changes.

Consumed by the out-of-process notification/audit layer through the
task queue (see course_access/worker.py).  Publication happens after the
state change is committed; a failure to publish is logged and counted but
never turns a successful enrollment or completion into an error.

Inside ``publish_after_commit()`` events are buffered and only enqueued
once the wrapped block (the request's database transaction) exits
cleanly.  If the block raises, the buffered events are discarded.
Outside it, as with the in-memory store, events go out immediately.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from contextvars import ContextVar
from uuid import UUID

from course_access.core.config import SETTINGS
from course_access.core.metrics import EVENTS_PUBLISHED
from course_access.models.progress import Enrollment, LessonCompletion
from course_access.services.task_queue import task_queue

logger = logging.getLogger(__name__)

ENROLLMENT_CREATED = "enrollment.created"
ENROLLMENT_REMOVED = "enrollment.removed"
LESSON_COMPLETED = "lesson.completed"
PROGRESS_UPDATED = "progress.updated"

_pending_events: ContextVar[list[tuple[str, dict]] | None] = ContextVar(
    "pending_events", default=None
)


@asynccontextmanager
async def publish_after_commit() -> AsyncIterator[None]:
    pending: list[tuple[str, dict]] = []
    token = _pending_events.set(pending)
    try:
        yield
    except Exception:
        if pending:
            logger.info(
                "Discarding %d unpublished event(s) after failed transaction",
                len(pending),
            )
        raise
    finally:
        _pending_events.reset(token)

    for event_type, payload in pending:
        await _enqueue(event_type, payload)


async def publish(event_type: str, payload: dict) -> None:
    pending = _pending_events.get()
    if pending is not None:
        pending.append((event_type, payload))
        return
    await _enqueue(event_type, payload)


async def _enqueue(event_type: str, payload: dict) -> None:
    try:
        task = await task_queue.enqueue(
            SETTINGS.events_queue, {"type": event_type, **payload}
        )
    except Exception:
        EVENTS_PUBLISHED.labels(event_type=event_type, result="failed").inc()
        logger.exception("Failed to publish %s payload=%s", event_type, payload)
        return
    EVENTS_PUBLISHED.labels(event_type=event_type, result="ok").inc()
    logger.debug("Published %s task=%s", event_type, task.id)


async def enrollment_created(enrollment: Enrollment) -> None:
    await publish(
        ENROLLMENT_CREATED,
        {
            "student_id": str(enrollment.student_id),
            "course_id": str(enrollment.course_id),
            "enrolled_at": enrollment.enrolled_at,
        },
    )


async def enrollment_removed(student_id: UUID, course_id: UUID) -> None:
    await publish(
        ENROLLMENT_REMOVED,
        {"student_id": str(student_id), "course_id": str(course_id)},
    )


async def lesson_completed(completion: LessonCompletion) -> None:
    await publish(
        LESSON_COMPLETED,
        {
            "student_id": str(completion.student_id),
            "course_id": str(completion.course_id),
            "lesson_id": str(completion.lesson_id),
            "completed_at": completion.completed_at,
        },
    )


async def progress_updated(enrollment: Enrollment) -> None:
    await publish(
        PROGRESS_UPDATED,
        {
            "student_id": str(enrollment.student_id),
            "course_id": str(enrollment.course_id),
            "progress_percentage": enrollment.progress_percentage,
            "status": enrollment.status.value,
        },
    )
