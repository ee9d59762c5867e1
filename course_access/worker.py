"""Domain event consumer.

RUN:  python -m course_access.worker

Same image as the API, different command:
  api:    uvicorn course_access.main:app --host 0.0.0.0 --port 8000
  worker: python -m course_access.worker

Drains SETTINGS.events_queue and dispatches each event to the handler
registered for its ``type``.  The handlers here write the audit trail;
notification fan-out hooks in by registering more handlers.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Coroutine
from typing import Any

from course_access.core.config import SETTINGS
from course_access.core.logging import setup_logging
from course_access.services import events
from course_access.services.task_queue import Task, task_queue

EventHandler = Callable[[dict], Coroutine[Any, Any, None]]

logger = logging.getLogger("course_access.worker")
audit = logging.getLogger("course_access.audit")

HANDLERS: dict[str, EventHandler] = {}


def register_handler(event_type: str):
    """Decorator: register a coroutine as the handler for an event type."""

    def decorator(func):
        HANDLERS[event_type] = func
        return func

    return decorator


@register_handler(events.ENROLLMENT_CREATED)
async def handle_enrollment_created(payload: dict) -> None:
    audit.info(
        "enrollment.created student=%s course=%s enrolled_at=%s",
        payload.get("student_id"),
        payload.get("course_id"),
        payload.get("enrolled_at"),
        extra={"event_type": events.ENROLLMENT_CREATED},
    )


@register_handler(events.ENROLLMENT_REMOVED)
async def handle_enrollment_removed(payload: dict) -> None:
    audit.info(
        "enrollment.removed student=%s course=%s",
        payload.get("student_id"),
        payload.get("course_id"),
        extra={"event_type": events.ENROLLMENT_REMOVED},
    )


@register_handler(events.LESSON_COMPLETED)
async def handle_lesson_completed(payload: dict) -> None:
    audit.info(
        "lesson.completed student=%s course=%s lesson=%s completed_at=%s",
        payload.get("student_id"),
        payload.get("course_id"),
        payload.get("lesson_id"),
        payload.get("completed_at"),
        extra={"event_type": events.LESSON_COMPLETED},
    )


@register_handler(events.PROGRESS_UPDATED)
async def handle_progress_updated(payload: dict) -> None:
    audit.info(
        "progress.updated student=%s course=%s progress=%s%% status=%s",
        payload.get("student_id"),
        payload.get("course_id"),
        payload.get("progress_percentage"),
        payload.get("status"),
        extra={"event_type": events.PROGRESS_UPDATED},
    )


async def handle_task(task: Task) -> bool:
    """Dispatch one dequeued task.  Returns False if it was not handled."""
    event_type = task.payload.get("type")
    handler = HANDLERS.get(event_type) if isinstance(event_type, str) else None
    if handler is None:
        logger.warning("Task %s has unknown event type %r, dropped", task.id, event_type)
        return False

    try:
        await handler(task.payload)
    except Exception:
        # at-most-once delivery: a failed event is logged, not retried
        logger.exception("Task %s [%s] failed", task.id, event_type)
        return False
    logger.debug("Task %s [%s] handled", task.id, event_type)
    return True


async def run_worker(max_tasks: int | None = None) -> int:
    """Consume events until max_tasks have been taken (forever if None)."""
    queue_name = SETTINGS.events_queue
    logger.info(
        "Worker started: queue=%s event types=%s", queue_name, sorted(HANDLERS)
    )

    taken = 0
    while max_tasks is None or taken < max_tasks:
        task = await task_queue.dequeue(queue_name, timeout=1)
        if task is None:
            if max_tasks is not None:
                break
            # in-memory queue returns immediately when empty
            await asyncio.sleep(0.5)
            continue
        taken += 1
        await handle_task(task)
    return taken


if __name__ == "__main__":
    setup_logging(SETTINGS.log_level, json_format=SETTINGS.log_json)
    asyncio.run(run_worker())
