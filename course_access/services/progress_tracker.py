"""Lesson completion and course progress.

complete_lesson() is idempotent: calling it again, sequentially or
concurrently, returns the one stored completion and never errors.
Progress is always recounted from completions of *published* lessons,
never incremented, so repeated or redundant recomputes cannot drift.
"""

from __future__ import annotations

import logging
from uuid import UUID

from course_access.core import clock
from course_access.core.errors import (
    CourseNotAvailable,
    LessonNotAvailable,
    LessonNotFound,
    NotEnrolled,
)
from course_access.core.metrics import LESSON_COMPLETIONS, PROGRESS_RECOMPUTES
from course_access.models.catalog import Lesson
from course_access.models.progress import (
    CourseProgress,
    Enrollment,
    LessonCompletion,
    LessonStatus,
)
from course_access.repos.entitlement_store import DuplicateKey, EntitlementStore
from course_access.services import events

logger = logging.getLogger(__name__)


async def complete_lesson(
    store: EntitlementStore, student_id: UUID, lesson_id: UUID
) -> LessonCompletion:
    lesson = await _load_completable_lesson(store, lesson_id)

    if await store.get_enrollment(student_id, lesson.course_id) is None:
        logger.info(
            "Completion rejected, not enrolled student=%s course=%s",
            student_id,
            lesson.course_id,
        )
        raise NotEnrolled(student_id=student_id, course_id=lesson.course_id)

    existing = await store.get_completion(student_id, lesson_id)
    if existing is not None:
        LESSON_COMPLETIONS.labels(outcome="existing").inc()
        return existing

    result = await store.insert_completion(
        LessonCompletion(
            student_id=student_id,
            lesson_id=lesson_id,
            course_id=lesson.course_id,
            completed_at=clock.now_ts(),
        )
    )
    if isinstance(result, DuplicateKey):
        # A concurrent call stored it first; theirs is the completion.
        winner = await store.get_completion(student_id, lesson_id)
        if winner is None:
            raise RuntimeError(
                f"completion {result.key} reported duplicate but is not readable"
            )
        LESSON_COMPLETIONS.labels(outcome="race").inc()
        logger.info(
            "Concurrent completion resolved to existing row student=%s lesson=%s",
            student_id,
            lesson_id,
        )
        return winner

    LESSON_COMPLETIONS.labels(outcome="created").inc()
    logger.info(
        "Lesson completed student=%s lesson=%s course=%s",
        student_id,
        lesson_id,
        lesson.course_id,
    )
    await events.lesson_completed(result)
    await recompute_progress(store, student_id, lesson.course_id)
    return result


async def recompute_progress(
    store: EntitlementStore, student_id: UUID, course_id: UUID
) -> Enrollment:
    """Recount completed/published lessons and persist the enrollment's progress.

    Safe to call any number of times; a no-op recompute leaves the
    percentage, status and completed_at unchanged.
    """
    before = await store.get_enrollment(student_id, course_id)
    if before is None:
        raise NotEnrolled(student_id=student_id, course_id=course_id)

    after = await store.recompute_progress(student_id, course_id, clock.now_ts())
    if after is None:
        raise NotEnrolled(student_id=student_id, course_id=course_id)
    PROGRESS_RECOMPUTES.inc()

    if (
        after.progress_percentage != before.progress_percentage
        or after.status != before.status
    ):
        logger.info(
            "Progress updated student=%s course=%s %d%% -> %d%% status=%s",
            student_id,
            course_id,
            before.progress_percentage,
            after.progress_percentage,
            after.status.value,
        )
        await events.progress_updated(after)
    return after


async def get_progress(
    store: EntitlementStore, student_id: UUID, course_id: UUID
) -> CourseProgress:
    enrollment = await store.get_enrollment(student_id, course_id)
    if enrollment is None:
        raise NotEnrolled(student_id=student_id, course_id=course_id)

    published = await store.list_course_lessons(course_id)
    published_ids = {lesson.id for lesson in published}
    completions = await store.list_completions(student_id, course_id)
    return CourseProgress(
        student_id=student_id,
        course_id=course_id,
        status=enrollment.status,
        progress_percentage=enrollment.progress_percentage,
        completed_lessons=sum(1 for c in completions if c.lesson_id in published_ids),
        total_lessons=len(published),
        completed_at=enrollment.completed_at,
    )


async def list_lessons_with_status(
    store: EntitlementStore, student_id: UUID, course_id: UUID
) -> list[LessonStatus]:
    """Published lessons in position order, each flagged for this student."""
    lessons = await store.list_course_lessons(course_id)
    done = {c.lesson_id: c for c in await store.list_completions(student_id, course_id)}
    statuses = []
    for lesson in lessons:
        completion = done.get(lesson.id)
        statuses.append(
            LessonStatus(
                lesson_id=lesson.id,
                title=lesson.title,
                position=lesson.position,
                completed=completion is not None,
                completed_at=completion.completed_at if completion else None,
            )
        )
    return statuses


async def _load_completable_lesson(store: EntitlementStore, lesson_id: UUID) -> Lesson:
    lesson = await store.get_lesson(lesson_id)
    if lesson is None:
        raise LessonNotFound(lesson_id=lesson_id)
    if not lesson.published:
        raise LessonNotAvailable(lesson_id=lesson_id)

    course = await store.get_course(lesson.course_id)
    if course is None or not course.published:
        raise CourseNotAvailable(course_id=lesson.course_id)
    return lesson
