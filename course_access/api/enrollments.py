"""Enrollment endpoints.

  POST   /v1/courses/{course_id}/enroll               student enrolls (201)
  POST   /v1/payments/{payment_id}/enroll             payment-success path
  GET    /v1/enrollments                              caller's enrollments
  DELETE /v1/courses/{course_id}/enrollments/{sid}    admin removal (204)

Domain errors propagate to the handler in course_access/api/errors.py.
"""

from __future__ import annotations

import logging
from uuid import UUID

from fastapi import APIRouter, Response, status
from pydantic import BaseModel

from course_access.api.dependencies import ActorDep, StoreDep
from course_access.core.errors import PermissionDenied
from course_access.models.actor import Role
from course_access.models.progress import Enrollment
from course_access.services import enrollment_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1", tags=["enrollments"])


class EnrollIn(BaseModel):
    payment_id: UUID | None = None


class EnrollmentOut(BaseModel):
    student_id: UUID
    course_id: UUID
    status: str
    progress_percentage: int
    enrolled_at: int
    completed_at: int | None

    @classmethod
    def from_enrollment(cls, enrollment: Enrollment) -> EnrollmentOut:
        return cls(
            student_id=enrollment.student_id,
            course_id=enrollment.course_id,
            status=enrollment.status.value,
            progress_percentage=enrollment.progress_percentage,
            enrolled_at=enrollment.enrolled_at,
            completed_at=enrollment.completed_at,
        )


@router.post(
    "/courses/{course_id}/enroll",
    response_model=EnrollmentOut,
    status_code=status.HTTP_201_CREATED,
)
async def enroll(
    course_id: UUID,
    actor: ActorDep,
    store: StoreDep,
    payload: EnrollIn | None = None,
) -> EnrollmentOut:
    if actor.role is not Role.STUDENT:
        raise PermissionDenied("Only students can enroll in courses")

    enrollment = await enrollment_service.enroll(
        store,
        actor.id,
        course_id,
        payment_id=payload.payment_id if payload else None,
    )
    return EnrollmentOut.from_enrollment(enrollment)


@router.post("/payments/{payment_id}/enroll", response_model=EnrollmentOut)
async def enroll_after_payment(
    payment_id: UUID, actor: ActorDep, store: StoreDep
) -> EnrollmentOut:
    enrollment = await enrollment_service.enroll_after_payment(
        store, payment_id, requested_by=actor
    )
    return EnrollmentOut.from_enrollment(enrollment)


@router.get("/enrollments", response_model=list[EnrollmentOut])
async def list_enrollments(actor: ActorDep, store: StoreDep) -> list[EnrollmentOut]:
    enrollments = await enrollment_service.list_enrollments(store, actor.id)
    return [EnrollmentOut.from_enrollment(e) for e in enrollments]


@router.delete(
    "/courses/{course_id}/enrollments/{student_id}",
    status_code=status.HTTP_204_NO_CONTENT,
)
async def remove_enrollment(
    course_id: UUID, student_id: UUID, actor: ActorDep, store: StoreDep
) -> Response:
    await enrollment_service.remove_enrollment(store, actor, student_id, course_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
