"""Entitlement store: enrollments, lesson completions, and the catalog and
payment projections the access rules read.

Services receive a store explicitly (never a global), so the same domain
code runs against InMemoryEntitlementStore in tests and
PgEntitlementStore in production.

Exactly-once writes go through insert_enrollment / insert_completion.
They return the stored record, or a DuplicateKey value when the
uniqueness constraint on the identity pair rejects the insert.  Callers
match on the result instead of catching driver-specific exceptions.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Protocol
from uuid import UUID

from course_access.models.catalog import Assignment, Course, Lesson
from course_access.models.payment import Payment, PaymentStatus
from course_access.models.progress import (
    Enrollment,
    EnrollmentStatus,
    LessonCompletion,
    progress_percentage,
)


@dataclass(frozen=True, slots=True)
class DuplicateKey:
    """A unique insert lost to an existing row with the same identity."""

    table: str
    key: tuple[UUID, UUID]


class EntitlementStore(Protocol):
    # --- catalog / payment reads ---
    async def get_course(self, course_id: UUID) -> Course | None: ...
    async def get_lesson(self, lesson_id: UUID) -> Lesson | None: ...
    async def get_assignment(self, assignment_id: UUID) -> Assignment | None: ...
    async def list_course_lessons(
        self, course_id: UUID, *, include_unpublished: bool = False
    ) -> list[Lesson]: ...
    async def get_payment(self, payment_id: UUID) -> Payment | None: ...
    async def has_completed_payment(
        self, student_id: UUID, course_id: UUID
    ) -> bool: ...

    # --- enrollments ---
    async def get_enrollment(
        self, student_id: UUID, course_id: UUID
    ) -> Enrollment | None: ...
    async def list_enrollments(self, student_id: UUID) -> list[Enrollment]: ...
    async def insert_enrollment(
        self, enrollment: Enrollment
    ) -> Enrollment | DuplicateKey: ...
    async def delete_enrollment(self, student_id: UUID, course_id: UUID) -> bool: ...

    # --- completions / progress ---
    async def get_completion(
        self, student_id: UUID, lesson_id: UUID
    ) -> LessonCompletion | None: ...
    async def list_completions(
        self, student_id: UUID, course_id: UUID
    ) -> list[LessonCompletion]: ...
    async def insert_completion(
        self, completion: LessonCompletion
    ) -> LessonCompletion | DuplicateKey: ...
    async def recompute_progress(
        self, student_id: UUID, course_id: UUID, now: int
    ) -> Enrollment | None: ...

    # --- collaborator writes (catalog management / payment subsystem) ---
    async def put_course(self, course: Course) -> None: ...
    async def put_lesson(self, lesson: Lesson) -> None: ...
    async def put_assignment(self, assignment: Assignment) -> None: ...
    async def put_payment(self, payment: Payment) -> None: ...


def next_progress_state(
    enrollment: Enrollment, completed: int, total: int, now: int
) -> Enrollment:
    """Apply a fresh (completed, total) count to an enrollment.

    completed_at is stamped on the transition into COMPLETED, kept while
    the enrollment stays completed, and cleared when progress drops.
    """
    pct = progress_percentage(completed, total)
    if pct == 100:
        status = EnrollmentStatus.COMPLETED
        completed_at = enrollment.completed_at if enrollment.completed_at else now
    else:
        status = EnrollmentStatus.ACTIVE
        completed_at = None
    return replace(
        enrollment,
        progress_percentage=pct,
        status=status,
        completed_at=completed_at,
    )


class InMemoryEntitlementStore:
    """Dict-backed store for local dev and tests.

    No method awaits between reading and writing its dicts, so each call
    is atomic with respect to other coroutines: the identity-pair check
    in insert_* behaves like a storage-level unique constraint.
    """

    def __init__(self) -> None:
        self._courses: dict[UUID, Course] = {}
        self._lessons: dict[UUID, Lesson] = {}
        self._assignments: dict[UUID, Assignment] = {}
        self._payments: dict[UUID, Payment] = {}
        self._enrollments: dict[tuple[UUID, UUID], Enrollment] = {}
        self._completions: dict[tuple[UUID, UUID], LessonCompletion] = {}

    def clear(self) -> None:
        self._courses.clear()
        self._lessons.clear()
        self._assignments.clear()
        self._payments.clear()
        self._enrollments.clear()
        self._completions.clear()

    # --- catalog / payment reads ---

    async def get_course(self, course_id: UUID) -> Course | None:
        return self._courses.get(course_id)

    async def get_lesson(self, lesson_id: UUID) -> Lesson | None:
        return self._lessons.get(lesson_id)

    async def get_assignment(self, assignment_id: UUID) -> Assignment | None:
        return self._assignments.get(assignment_id)

    async def list_course_lessons(
        self, course_id: UUID, *, include_unpublished: bool = False
    ) -> list[Lesson]:
        lessons = [
            lesson
            for lesson in self._lessons.values()
            if lesson.course_id == course_id
            and (include_unpublished or lesson.published)
        ]
        return sorted(lessons, key=lambda lesson: lesson.position)

    async def get_payment(self, payment_id: UUID) -> Payment | None:
        return self._payments.get(payment_id)

    async def has_completed_payment(self, student_id: UUID, course_id: UUID) -> bool:
        return any(
            p.student_id == student_id
            and p.course_id == course_id
            and p.status is PaymentStatus.COMPLETED
            for p in self._payments.values()
        )

    # --- enrollments ---

    async def get_enrollment(
        self, student_id: UUID, course_id: UUID
    ) -> Enrollment | None:
        return self._enrollments.get((student_id, course_id))

    async def list_enrollments(self, student_id: UUID) -> list[Enrollment]:
        found = [e for e in self._enrollments.values() if e.student_id == student_id]
        return sorted(found, key=lambda e: e.enrolled_at, reverse=True)

    async def insert_enrollment(
        self, enrollment: Enrollment
    ) -> Enrollment | DuplicateKey:
        if enrollment.key in self._enrollments:
            return DuplicateKey("enrollments", enrollment.key)
        self._enrollments[enrollment.key] = enrollment
        return enrollment

    async def delete_enrollment(self, student_id: UUID, course_id: UUID) -> bool:
        return self._enrollments.pop((student_id, course_id), None) is not None

    # --- completions / progress ---

    async def get_completion(
        self, student_id: UUID, lesson_id: UUID
    ) -> LessonCompletion | None:
        return self._completions.get((student_id, lesson_id))

    async def list_completions(
        self, student_id: UUID, course_id: UUID
    ) -> list[LessonCompletion]:
        return [
            c
            for c in self._completions.values()
            if c.student_id == student_id and c.course_id == course_id
        ]

    async def insert_completion(
        self, completion: LessonCompletion
    ) -> LessonCompletion | DuplicateKey:
        if completion.key in self._completions:
            return DuplicateKey("lesson_completions", completion.key)
        self._completions[completion.key] = completion
        return completion

    async def recompute_progress(
        self, student_id: UUID, course_id: UUID, now: int
    ) -> Enrollment | None:
        enrollment = self._enrollments.get((student_id, course_id))
        if enrollment is None:
            return None

        published = {
            lesson.id
            for lesson in self._lessons.values()
            if lesson.course_id == course_id and lesson.published
        }
        completed = sum(
            1
            for (sid, lesson_id) in self._completions
            if sid == student_id and lesson_id in published
        )
        updated = next_progress_state(enrollment, completed, len(published), now)
        self._enrollments[enrollment.key] = updated
        return updated

    # --- collaborator writes ---

    async def put_course(self, course: Course) -> None:
        self._courses[course.id] = course

    async def put_lesson(self, lesson: Lesson) -> None:
        self._lessons[lesson.id] = lesson

    async def put_assignment(self, assignment: Assignment) -> None:
        self._assignments[assignment.id] = assignment

    async def put_payment(self, payment: Payment) -> None:
        self._payments[payment.id] = payment


# Module-level singleton used when no DATABASE_URL is configured.
entitlement_store = InMemoryEntitlementStore()
