"""Domain event publication and the worker that consumes it."""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from uuid import uuid4

import pytest

from course_access import worker
from course_access.api import dependencies
from course_access.core.config import SETTINGS
from course_access.repos.entitlement_store import entitlement_store
from course_access.services import enrollment_service, events, progress_tracker
from course_access.services.task_queue import Task, task_queue
from tests.conftest import queued_event_types, seed_course, seed_lessons


def test_enrollment_created_payload() -> None:
    course = seed_course()
    student = uuid4()
    enrollment = asyncio.run(
        enrollment_service.enroll(entitlement_store, student, course.id)
    )

    task = asyncio.run(task_queue.dequeue(SETTINGS.events_queue))

    assert task is not None
    assert task.payload == {
        "type": events.ENROLLMENT_CREATED,
        "student_id": str(student),
        "course_id": str(course.id),
        "enrolled_at": enrollment.enrolled_at,
    }


def test_progress_updated_payload() -> None:
    course = seed_course()
    (lesson,) = seed_lessons(course, 1)
    student = uuid4()
    asyncio.run(enrollment_service.enroll(entitlement_store, student, course.id))
    asyncio.run(progress_tracker.complete_lesson(entitlement_store, student, lesson.id))

    tasks = task_queue._queues[SETTINGS.events_queue]  # type: ignore[union-attr]
    progress = tasks[-1].payload
    assert progress["type"] == events.PROGRESS_UPDATED
    assert progress["progress_percentage"] == 100
    assert progress["status"] == "completed"


def test_publish_failure_does_not_fail_enrollment(
    monkeypatch: pytest.MonkeyPatch, caplog: pytest.LogCaptureFixture
) -> None:
    async def _broken_enqueue(queue: str, payload: dict) -> Task:
        raise ConnectionError("redis down")

    monkeypatch.setattr(task_queue, "enqueue", _broken_enqueue)
    course = seed_course()
    student = uuid4()

    with caplog.at_level(logging.ERROR, logger="course_access.services.events"):
        enrollment = asyncio.run(
            enrollment_service.enroll(entitlement_store, student, course.id)
        )

    assert enrollment.student_id == student
    assert asyncio.run(entitlement_store.get_enrollment(student, course.id)) is not None
    assert any("Failed to publish" in r.getMessage() for r in caplog.records)


def test_worker_writes_one_audit_line_per_event(
    caplog: pytest.LogCaptureFixture,
) -> None:
    course = seed_course()
    (lesson,) = seed_lessons(course, 1)
    student = uuid4()
    asyncio.run(enrollment_service.enroll(entitlement_store, student, course.id))
    asyncio.run(progress_tracker.complete_lesson(entitlement_store, student, lesson.id))
    assert len(queued_event_types()) == 3

    with caplog.at_level(logging.INFO, logger="course_access.audit"):
        taken = asyncio.run(worker.run_worker(max_tasks=10))

    assert taken == 3
    audit_lines = [r for r in caplog.records if r.name == "course_access.audit"]
    assert [r.event_type for r in audit_lines] == [
        events.ENROLLMENT_CREATED,
        events.LESSON_COMPLETED,
        events.PROGRESS_UPDATED,
    ]
    assert queued_event_types() == []


def test_worker_drops_unknown_event_type() -> None:
    task = Task(id="t-1", queue=SETTINGS.events_queue, payload={"type": "course.archived"})
    assert asyncio.run(worker.handle_task(task)) is False


def test_worker_survives_failing_handler(monkeypatch: pytest.MonkeyPatch) -> None:
    async def _boom(payload: dict) -> None:
        raise RuntimeError("audit sink unavailable")

    monkeypatch.setitem(worker.HANDLERS, events.ENROLLMENT_REMOVED, _boom)
    task = Task(
        id="t-2",
        queue=SETTINGS.events_queue,
        payload={"type": events.ENROLLMENT_REMOVED, "student_id": "s", "course_id": "c"},
    )
    assert asyncio.run(worker.handle_task(task)) is False


# ---- publication relative to the request transaction ----


def _database_store(monkeypatch: pytest.MonkeyPatch, *, commit_fails: bool):
    """Drive get_store down its database branch over the in-memory store."""

    @asynccontextmanager
    async def _session_scope():
        yield object()
        if commit_fails:
            raise ConnectionError("commit failed")

    monkeypatch.setattr(dependencies, "async_session_factory", object())
    monkeypatch.setattr(dependencies, "_session_scope", _session_scope)
    monkeypatch.setattr(
        dependencies, "PgEntitlementStore", lambda _session: entitlement_store
    )
    return asynccontextmanager(dependencies.get_store)


def test_events_wait_for_the_commit(monkeypatch: pytest.MonkeyPatch) -> None:
    store_scope = _database_store(monkeypatch, commit_fails=False)
    course = seed_course()
    student = uuid4()
    seen_inside: list[list[str]] = []

    async def _request() -> None:
        async with store_scope() as store:
            await enrollment_service.enroll(store, student, course.id)
            seen_inside.append(queued_event_types())

    asyncio.run(_request())

    assert seen_inside == [[]]
    assert queued_event_types() == [events.ENROLLMENT_CREATED]


def test_failed_commit_publishes_nothing(monkeypatch: pytest.MonkeyPatch) -> None:
    store_scope = _database_store(monkeypatch, commit_fails=True)
    course = seed_course()
    (lesson,) = seed_lessons(course, 1)
    student = uuid4()

    async def _request() -> None:
        async with store_scope() as store:
            await enrollment_service.enroll(store, student, course.id)
            await progress_tracker.complete_lesson(store, student, lesson.id)

    with pytest.raises(ConnectionError):
        asyncio.run(_request())

    assert queued_event_types() == []


def test_in_memory_store_publishes_immediately() -> None:
    course = seed_course()

    async def _request() -> list[str]:
        async with asynccontextmanager(dependencies.get_store)() as store:
            await enrollment_service.enroll(store, uuid4(), course.id)
            return queued_event_types()

    assert asyncio.run(_request()) == [events.ENROLLMENT_CREATED]
