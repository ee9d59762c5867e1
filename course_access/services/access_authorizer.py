"""Resource-level access decisions for courses, lessons and assignments.

Rules by role:
  instructor  only their own courses, published or not
  admin       everything
  student     resource published, then paid (priced courses only), then
              enrolled; each failure raises its own error so the caller
              can tell "not found" from "payment required" from "not
              enrolled"
  no actor    nothing (no resource kind here is public)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import StrEnum
from typing import assert_never
from uuid import UUID

from course_access.core.errors import (
    AssignmentNotAvailable,
    AssignmentNotFound,
    AuthenticationRequired,
    CourseAccessError,
    CourseNotAvailable,
    CourseNotFound,
    LessonNotAvailable,
    LessonNotFound,
    NotEnrolled,
    PaymentRequired,
    PermissionDenied,
)
from course_access.core.metrics import ACCESS_DECISIONS
from course_access.models.actor import Actor, Role
from course_access.models.catalog import Assignment, Course, Lesson
from course_access.repos.entitlement_store import EntitlementStore
from course_access.services import payment_gate

logger = logging.getLogger(__name__)


class ResourceKind(StrEnum):
    COURSE = "course"  # the course's content (lesson list, progress)
    LESSON = "lesson"
    ASSIGNMENT = "assignment"


@dataclass(frozen=True, slots=True)
class AccessGrant:
    """Successful decision plus the records it was made on."""

    actor: Actor
    kind: ResourceKind
    course: Course
    lesson: Lesson | None = None
    assignment: Assignment | None = None


async def can_view(
    store: EntitlementStore,
    actor: Actor | None,
    kind: ResourceKind,
    resource_id: UUID,
) -> bool:
    try:
        await assert_can_view(store, actor, kind, resource_id)
    except CourseAccessError:
        return False
    return True


async def assert_can_view(
    store: EntitlementStore,
    actor: Actor | None,
    kind: ResourceKind,
    resource_id: UUID,
) -> AccessGrant:
    if actor is None:
        ACCESS_DECISIONS.labels(
            role="anonymous", outcome=AuthenticationRequired.code
        ).inc()
        raise AuthenticationRequired()

    try:
        grant = await _resolve(store, actor, kind, resource_id)
        await _check_role(store, grant)
    except CourseAccessError as exc:
        ACCESS_DECISIONS.labels(role=actor.role.value, outcome=exc.code).inc()
        logger.info(
            "Access denied actor=%s role=%s %s=%s reason=%s",
            actor.id,
            actor.role.value,
            kind.value,
            resource_id,
            exc.code,
        )
        raise

    ACCESS_DECISIONS.labels(role=actor.role.value, outcome="allowed").inc()
    return grant


async def _resolve(
    store: EntitlementStore, actor: Actor, kind: ResourceKind, resource_id: UUID
) -> AccessGrant:
    lesson: Lesson | None = None
    assignment: Assignment | None = None

    match kind:
        case ResourceKind.COURSE:
            course_id = resource_id
        case ResourceKind.LESSON:
            lesson = await store.get_lesson(resource_id)
            if lesson is None:
                raise LessonNotFound(lesson_id=resource_id)
            course_id = lesson.course_id
        case ResourceKind.ASSIGNMENT:
            assignment = await store.get_assignment(resource_id)
            if assignment is None:
                raise AssignmentNotFound(assignment_id=resource_id)
            course_id = assignment.course_id
        case _:
            assert_never(kind)

    course = await store.get_course(course_id)
    if course is None:
        raise CourseNotFound(course_id=course_id)

    return AccessGrant(
        actor=actor, kind=kind, course=course, lesson=lesson, assignment=assignment
    )


async def _check_role(store: EntitlementStore, grant: AccessGrant) -> None:
    actor = grant.actor
    course = grant.course

    match actor.role:
        case Role.INSTRUCTOR:
            if actor.id != course.instructor_id:
                raise PermissionDenied(
                    "You do not have permission to access this course"
                )
        case Role.ADMIN:
            return
        case Role.STUDENT:
            await _check_student(store, actor, grant)
        case _:
            assert_never(actor.role)


async def _check_student(
    store: EntitlementStore, actor: Actor, grant: AccessGrant
) -> None:
    course = grant.course

    if not course.published:
        raise CourseNotAvailable(course_id=course.id)
    if grant.lesson is not None and not grant.lesson.published:
        raise LessonNotAvailable(lesson_id=grant.lesson.id)
    if grant.assignment is not None and not grant.assignment.published:
        raise AssignmentNotAvailable(assignment_id=grant.assignment.id)

    if not course.is_free and not await payment_gate.has_completed_payment(
        store, actor.id, course.id
    ):
        raise PaymentRequired(course_id=course.id)

    if await store.get_enrollment(actor.id, course.id) is None:
        raise NotEnrolled(student_id=actor.id, course_id=course.id)
