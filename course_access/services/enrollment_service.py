"""Enrollment: one enrollment per (student, course), paid courses gated.

The "already enrolled?" read in enroll() is advisory: it short-circuits
the common repeat click before any payment lookups.  The authoritative
guard is the store's unique insert.  When two requests race past the
advisory read, exactly one insert wins and the loser gets AlreadyEnrolled
rather than a storage error.
"""

from __future__ import annotations

import logging
from uuid import UUID

from course_access.core import clock
from course_access.core.errors import (
    AlreadyEnrolled,
    CourseAccessError,
    CourseNotAvailable,
    CourseNotFound,
    NotEnrolled,
    PaymentMismatch,
    PaymentNotCompleted,
    PaymentNotFound,
    PaymentRequired,
    PermissionDenied,
)
from course_access.core.metrics import ENROLLMENT_RACES, ENROLLMENTS
from course_access.models.actor import Actor, Role
from course_access.models.catalog import Course
from course_access.models.progress import Enrollment
from course_access.repos.entitlement_store import DuplicateKey, EntitlementStore
from course_access.services import events, progress_tracker

logger = logging.getLogger(__name__)


async def enroll(
    store: EntitlementStore,
    student_id: UUID,
    course_id: UUID,
    payment_id: UUID | None = None,
) -> Enrollment:
    """Enroll a student, verifying the payment for priced courses.

    Free courses ignore payment_id.  Raises CourseNotFound,
    CourseNotAvailable, AlreadyEnrolled, PaymentRequired, PaymentNotFound,
    PaymentMismatch or PaymentNotCompleted.
    """
    try:
        course = await _load_enrollable_course(store, course_id)

        if await store.get_enrollment(student_id, course_id) is not None:
            raise AlreadyEnrolled(student_id=student_id, course_id=course_id)

        if not course.is_free:
            await _verify_payment(store, student_id, course, payment_id)

        result = await _insert_enrollment(store, student_id, course_id)
        if isinstance(result, DuplicateKey):
            raise AlreadyEnrolled(student_id=student_id, course_id=course_id)
    except AlreadyEnrolled:
        ENROLLMENTS.labels(outcome="already_enrolled").inc()
        logger.info("Already enrolled student=%s course=%s", student_id, course_id)
        raise
    except CourseAccessError as exc:
        ENROLLMENTS.labels(outcome="rejected").inc()
        logger.info(
            "Enrollment rejected student=%s course=%s reason=%s",
            student_id,
            course_id,
            exc.code,
        )
        raise

    await events.enrollment_created(result)
    return await _restore_progress(store, result)


async def enroll_after_payment(
    store: EntitlementStore,
    payment_id: UUID,
    *,
    requested_by: Actor | None = None,
) -> Enrollment:
    """Enroll the payer of a completed payment.

    Called on the payment-success path, which may be retried or raced by
    the student's own enroll click, so it is idempotent: an existing
    enrollment is returned instead of raising AlreadyEnrolled.

    requested_by is None for the payment subsystem's own trusted call;
    over HTTP it is the caller, who must be the payer or an admin.
    """
    payment = await store.get_payment(payment_id)
    if payment is None:
        raise PaymentNotFound(payment_id=payment_id)

    if requested_by is not None:
        match requested_by.role:
            case Role.ADMIN:
                pass
            case Role.STUDENT:
                if payment.student_id != requested_by.id:
                    raise PaymentMismatch("Payment does not belong to this student")
            case Role.INSTRUCTOR:
                raise PermissionDenied(
                    "Only the paying student can redeem a payment"
                )

    if not payment.is_completed:
        raise PaymentNotCompleted(payment_id=payment_id)

    await _load_enrollable_course(store, payment.course_id)

    existing = await store.get_enrollment(payment.student_id, payment.course_id)
    if existing is not None:
        return existing

    result = await _insert_enrollment(store, payment.student_id, payment.course_id)
    if isinstance(result, DuplicateKey):
        winner = await store.get_enrollment(payment.student_id, payment.course_id)
        if winner is None:
            # removed by an admin between the insert and this read
            raise AlreadyEnrolled(
                student_id=payment.student_id, course_id=payment.course_id
            )
        return winner

    logger.info(
        "Enrolled from payment=%s student=%s course=%s",
        payment_id,
        payment.student_id,
        payment.course_id,
    )
    await events.enrollment_created(result)
    return await _restore_progress(store, result)


async def get_enrollment(
    store: EntitlementStore, student_id: UUID, course_id: UUID
) -> Enrollment:
    enrollment = await store.get_enrollment(student_id, course_id)
    if enrollment is None:
        raise NotEnrolled(student_id=student_id, course_id=course_id)
    return enrollment


async def list_enrollments(
    store: EntitlementStore, student_id: UUID
) -> list[Enrollment]:
    return await store.list_enrollments(student_id)


async def remove_enrollment(
    store: EntitlementStore, actor: Actor, student_id: UUID, course_id: UUID
) -> None:
    """Administrative removal.  Lesson completions are kept."""
    if not actor.is_admin:
        logger.info(
            "Enrollment removal denied actor=%s role=%s", actor.id, actor.role
        )
        raise PermissionDenied("Only administrators can remove enrollments")

    if not await store.delete_enrollment(student_id, course_id):
        raise NotEnrolled(
            "Student is not enrolled in this course",
            student_id=student_id,
            course_id=course_id,
        )

    logger.info(
        "Enrollment removed student=%s course=%s by admin=%s",
        student_id,
        course_id,
        actor.id,
    )
    await events.enrollment_removed(student_id, course_id)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


async def _load_enrollable_course(store: EntitlementStore, course_id: UUID) -> Course:
    course = await store.get_course(course_id)
    if course is None:
        raise CourseNotFound(course_id=course_id)
    if not course.published:
        raise CourseNotAvailable(course_id=course_id)
    return course


async def _verify_payment(
    store: EntitlementStore,
    student_id: UUID,
    course: Course,
    payment_id: UUID | None,
) -> None:
    if payment_id is None:
        raise PaymentRequired(course_id=course.id)

    payment = await store.get_payment(payment_id)
    if payment is None:
        raise PaymentNotFound(payment_id=payment_id)
    if payment.student_id != student_id:
        raise PaymentMismatch("Payment does not belong to this student")
    if payment.course_id != course.id:
        raise PaymentMismatch("Payment is not for this course")
    if not payment.is_completed:
        raise PaymentNotCompleted(payment_id=payment_id)


async def _insert_enrollment(
    store: EntitlementStore, student_id: UUID, course_id: UUID
) -> Enrollment | DuplicateKey:
    enrollment = Enrollment.new(
        student_id=student_id, course_id=course_id, enrolled_at=clock.now_ts()
    )
    result = await store.insert_enrollment(enrollment)
    if isinstance(result, DuplicateKey):
        ENROLLMENT_RACES.inc()
        logger.info(
            "Concurrent enrollment lost the insert student=%s course=%s",
            student_id,
            course_id,
        )
        return result

    ENROLLMENTS.labels(outcome="created").inc()
    logger.info("Enrolled student=%s course=%s", student_id, course_id)
    return result


async def _restore_progress(
    store: EntitlementStore, enrollment: Enrollment
) -> Enrollment:
    # Completions outlive an enrollment removal; a new enrollment starts from them.
    return await progress_tracker.recompute_progress(
        store, enrollment.student_id, enrollment.course_id
    )
