from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from uuid import UUID


class EnrollmentStatus(StrEnum):
    ACTIVE = "active"
    COMPLETED = "completed"


@dataclass(frozen=True, slots=True)
class Enrollment:
    """At most one per (student_id, course_id).

    progress_percentage/status/completed_at are a cached projection of
    the student's lesson completions; only the progress tracker writes
    them.
    """

    student_id: UUID
    course_id: UUID
    enrolled_at: int
    status: EnrollmentStatus = EnrollmentStatus.ACTIVE
    progress_percentage: int = 0
    completed_at: int | None = None

    @property
    def key(self) -> tuple[UUID, UUID]:
        return (self.student_id, self.course_id)

    @staticmethod
    def new(*, student_id: UUID, course_id: UUID, enrolled_at: int) -> Enrollment:
        return Enrollment(
            student_id=student_id, course_id=course_id, enrolled_at=enrolled_at
        )


@dataclass(frozen=True, slots=True)
class LessonCompletion:
    """At most one per (student_id, lesson_id); never mutated."""

    student_id: UUID
    lesson_id: UUID
    course_id: UUID
    completed_at: int

    @property
    def key(self) -> tuple[UUID, UUID]:
        return (self.student_id, self.lesson_id)


@dataclass(frozen=True, slots=True)
class CourseProgress:
    """Read model returned by progress queries."""

    student_id: UUID
    course_id: UUID
    status: EnrollmentStatus
    progress_percentage: int
    completed_lessons: int
    total_lessons: int
    completed_at: int | None = None


@dataclass(frozen=True, slots=True)
class LessonStatus:
    lesson_id: UUID
    title: str
    position: int
    completed: bool
    completed_at: int | None = None


def progress_percentage(completed: int, total: int) -> int:
    """round(100 * completed / total) with halves rounded up; 0 when total is 0.

    Integer arithmetic so the PostgreSQL store can evaluate the same
    expression inside its UPDATE statement.
    """
    if total <= 0:
        return 0
    return (200 * completed + total) // (2 * total)
