"""PostgreSQL implementation of EntitlementStore."""

from __future__ import annotations

from typing import Any
from uuid import UUID

from sqlalchemy import Integer, case, cast, delete, exists, func, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from course_access.db.tables import (
    ENROLLMENTS_PKEY,
    LESSON_COMPLETIONS_PKEY,
    AssignmentRow,
    CourseRow,
    EnrollmentRow,
    LessonCompletionRow,
    LessonRow,
    PaymentRow,
)
from course_access.models.catalog import Assignment, Course, Lesson
from course_access.models.payment import Payment, PaymentStatus
from course_access.models.progress import (
    Enrollment,
    EnrollmentStatus,
    LessonCompletion,
)
from course_access.repos.entitlement_store import DuplicateKey

# Entitlement tables are read and written with Core statements so no ORM
# identity map can hand back a stale progress snapshot after an UPDATE.
_enrollments = EnrollmentRow.__table__
_completions = LessonCompletionRow.__table__


class PgEntitlementStore:
    """Satisfies the EntitlementStore Protocol using PostgreSQL via SQLAlchemy.

    Duplicate inserts use INSERT ... ON CONFLICT ON CONSTRAINT <pkey> DO
    NOTHING RETURNING.  A concurrent transaction inserting the same key
    blocks ours until it commits; we then get no row back and report
    DuplicateKey.  Any other integrity failure (e.g. a foreign key)
    still raises.
    """

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    # --- catalog / payment reads ---

    async def get_course(self, course_id: UUID) -> Course | None:
        row = await self._session.get(CourseRow, course_id)
        return None if row is None else _row_to_course(row)

    async def get_lesson(self, lesson_id: UUID) -> Lesson | None:
        row = await self._session.get(LessonRow, lesson_id)
        return None if row is None else _row_to_lesson(row)

    async def get_assignment(self, assignment_id: UUID) -> Assignment | None:
        row = await self._session.get(AssignmentRow, assignment_id)
        if row is None:
            return None
        return Assignment(
            id=row.id, course_id=row.course_id, title=row.title, published=row.published
        )

    async def list_course_lessons(
        self, course_id: UUID, *, include_unpublished: bool = False
    ) -> list[Lesson]:
        stmt = select(LessonRow).where(LessonRow.course_id == course_id)
        if not include_unpublished:
            stmt = stmt.where(LessonRow.published.is_(True))
        stmt = stmt.order_by(LessonRow.position)
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_lesson(r) for r in rows]

    async def get_payment(self, payment_id: UUID) -> Payment | None:
        row = await self._session.get(PaymentRow, payment_id)
        return None if row is None else _row_to_payment(row)

    async def has_completed_payment(self, student_id: UUID, course_id: UUID) -> bool:
        stmt = select(
            exists().where(
                PaymentRow.student_id == student_id,
                PaymentRow.course_id == course_id,
                PaymentRow.status == PaymentStatus.COMPLETED.value,
            )
        )
        return bool((await self._session.execute(stmt)).scalar())

    # --- enrollments ---

    async def get_enrollment(
        self, student_id: UUID, course_id: UUID
    ) -> Enrollment | None:
        stmt = select(_enrollments).where(
            _enrollments.c.student_id == student_id,
            _enrollments.c.course_id == course_id,
        )
        row = (await self._session.execute(stmt)).one_or_none()
        return None if row is None else _row_to_enrollment(row)

    async def list_enrollments(self, student_id: UUID) -> list[Enrollment]:
        stmt = (
            select(_enrollments)
            .where(_enrollments.c.student_id == student_id)
            .order_by(_enrollments.c.enrolled_at.desc())
        )
        rows = (await self._session.execute(stmt)).all()
        return [_row_to_enrollment(r) for r in rows]

    async def insert_enrollment(
        self, enrollment: Enrollment
    ) -> Enrollment | DuplicateKey:
        stmt = (
            pg_insert(_enrollments)
            .values(
                student_id=enrollment.student_id,
                course_id=enrollment.course_id,
                status=enrollment.status.value,
                progress_percentage=enrollment.progress_percentage,
                enrolled_at=enrollment.enrolled_at,
                completed_at=enrollment.completed_at,
            )
            .on_conflict_do_nothing(constraint=ENROLLMENTS_PKEY)
            .returning(_enrollments.c.student_id)
        )
        inserted = (await self._session.execute(stmt)).scalar_one_or_none()
        if inserted is None:
            return DuplicateKey("enrollments", enrollment.key)
        return enrollment

    async def delete_enrollment(self, student_id: UUID, course_id: UUID) -> bool:
        stmt = delete(_enrollments).where(
            _enrollments.c.student_id == student_id,
            _enrollments.c.course_id == course_id,
        )
        result = await self._session.execute(stmt)
        return result.rowcount > 0

    # --- completions / progress ---

    async def get_completion(
        self, student_id: UUID, lesson_id: UUID
    ) -> LessonCompletion | None:
        stmt = select(_completions).where(
            _completions.c.student_id == student_id,
            _completions.c.lesson_id == lesson_id,
        )
        row = (await self._session.execute(stmt)).one_or_none()
        return None if row is None else _row_to_completion(row)

    async def list_completions(
        self, student_id: UUID, course_id: UUID
    ) -> list[LessonCompletion]:
        stmt = select(_completions).where(
            _completions.c.student_id == student_id,
            _completions.c.course_id == course_id,
        )
        rows = (await self._session.execute(stmt)).all()
        return [_row_to_completion(r) for r in rows]

    async def insert_completion(
        self, completion: LessonCompletion
    ) -> LessonCompletion | DuplicateKey:
        stmt = (
            pg_insert(_completions)
            .values(
                student_id=completion.student_id,
                lesson_id=completion.lesson_id,
                course_id=completion.course_id,
                completed_at=completion.completed_at,
            )
            .on_conflict_do_nothing(constraint=LESSON_COMPLETIONS_PKEY)
            .returning(_completions.c.lesson_id)
        )
        inserted = (await self._session.execute(stmt)).scalar_one_or_none()
        if inserted is None:
            return DuplicateKey("lesson_completions", completion.key)
        return completion

    async def recompute_progress(
        self, student_id: UUID, course_id: UUID, now: int
    ) -> Enrollment | None:
        """Recount and persist progress in a single UPDATE ... RETURNING.

        The counts are scalar sub-selects evaluated by the UPDATE itself,
        so a concurrent recompute can never write back a count it read
        before another completion landed.
        """
        total = (
            select(func.count(LessonRow.id))
            .where(LessonRow.course_id == course_id, LessonRow.published.is_(True))
            .scalar_subquery()
        )
        completed = (
            select(func.count(_completions.c.lesson_id))
            .select_from(
                _completions.join(LessonRow, LessonRow.id == _completions.c.lesson_id)
            )
            .where(
                _completions.c.student_id == student_id,
                LessonRow.course_id == course_id,
                LessonRow.published.is_(True),
            )
            .scalar_subquery()
        )
        # round-half-up in integer arithmetic, same as progress_percentage()
        pct = cast(
            case((total == 0, 0), else_=(200 * completed + total) // (2 * total)),
            Integer,
        )
        stmt = (
            update(_enrollments)
            .where(
                _enrollments.c.student_id == student_id,
                _enrollments.c.course_id == course_id,
            )
            .values(
                progress_percentage=pct,
                status=case(
                    (pct == 100, EnrollmentStatus.COMPLETED.value),
                    else_=EnrollmentStatus.ACTIVE.value,
                ),
                completed_at=case(
                    (pct == 100, func.coalesce(_enrollments.c.completed_at, now)),
                    else_=None,
                ),
            )
            .returning(*_enrollments.c)
        )
        row = (await self._session.execute(stmt)).one_or_none()
        return None if row is None else _row_to_enrollment(row)

    # --- collaborator writes ---

    async def put_course(self, course: Course) -> None:
        await self._session.merge(
            CourseRow(
                id=course.id,
                instructor_id=course.instructor_id,
                title=course.title,
                price=course.price,
                currency=course.currency,
                published=course.published,
            )
        )
        await self._session.flush()

    async def put_lesson(self, lesson: Lesson) -> None:
        await self._session.merge(
            LessonRow(
                id=lesson.id,
                course_id=lesson.course_id,
                title=lesson.title,
                position=lesson.position,
                published=lesson.published,
            )
        )
        await self._session.flush()

    async def put_assignment(self, assignment: Assignment) -> None:
        await self._session.merge(
            AssignmentRow(
                id=assignment.id,
                course_id=assignment.course_id,
                title=assignment.title,
                published=assignment.published,
            )
        )
        await self._session.flush()

    async def put_payment(self, payment: Payment) -> None:
        await self._session.merge(
            PaymentRow(
                id=payment.id,
                student_id=payment.student_id,
                course_id=payment.course_id,
                amount=payment.amount,
                currency=payment.currency,
                status=payment.status.value,
                transaction_ref=payment.transaction_ref,
            )
        )
        await self._session.flush()


def _row_to_course(row: CourseRow) -> Course:
    return Course(
        id=row.id,
        instructor_id=row.instructor_id,
        title=row.title,
        price=row.price,
        currency=row.currency,
        published=row.published,
    )


def _row_to_lesson(row: LessonRow) -> Lesson:
    return Lesson(
        id=row.id,
        course_id=row.course_id,
        title=row.title,
        position=row.position,
        published=row.published,
    )


def _row_to_payment(row: PaymentRow) -> Payment:
    return Payment(
        id=row.id,
        student_id=row.student_id,
        course_id=row.course_id,
        amount=row.amount,
        status=PaymentStatus(row.status),
        currency=row.currency,
        transaction_ref=row.transaction_ref,
    )


def _row_to_enrollment(row: Any) -> Enrollment:
    return Enrollment(
        student_id=row.student_id,
        course_id=row.course_id,
        enrolled_at=row.enrolled_at,
        status=EnrollmentStatus(row.status),
        progress_percentage=row.progress_percentage,
        completed_at=row.completed_at,
    )


def _row_to_completion(row: Any) -> LessonCompletion:
    return LessonCompletion(
        student_id=row.student_id,
        lesson_id=row.lesson_id,
        course_id=row.course_id,
        completed_at=row.completed_at,
    )
