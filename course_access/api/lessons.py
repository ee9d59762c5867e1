"""Course content endpoints: lesson list, lessons, assignments, completion.

Every read goes through the access authorizer first.  For a student a
denial comes back as the specific reason (404 for missing or unpublished,
402 for unpaid, 403 for not enrolled), never as an empty list.
"""

from __future__ import annotations

import logging
from uuid import UUID

from fastapi import APIRouter
from pydantic import BaseModel

from course_access.api.dependencies import ActorDep, StoreDep
from course_access.core.errors import AssignmentNotFound, LessonNotFound
from course_access.services import progress_tracker
from course_access.services.access_authorizer import ResourceKind, assert_can_view

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1", tags=["content"])


class LessonOut(BaseModel):
    id: UUID
    course_id: UUID
    title: str
    position: int


class LessonStatusOut(BaseModel):
    lesson_id: UUID
    title: str
    position: int
    completed: bool
    completed_at: int | None


class CompletionOut(BaseModel):
    student_id: UUID
    lesson_id: UUID
    course_id: UUID
    completed_at: int


class AssignmentOut(BaseModel):
    id: UUID
    course_id: UUID
    title: str


@router.get("/courses/{course_id}/lessons", response_model=list[LessonStatusOut])
async def list_course_lessons(
    course_id: UUID, actor: ActorDep, store: StoreDep
) -> list[LessonStatusOut]:
    await assert_can_view(store, actor, ResourceKind.COURSE, course_id)
    statuses = await progress_tracker.list_lessons_with_status(
        store, actor.id, course_id
    )
    return [
        LessonStatusOut(
            lesson_id=s.lesson_id,
            title=s.title,
            position=s.position,
            completed=s.completed,
            completed_at=s.completed_at,
        )
        for s in statuses
    ]


@router.get("/lessons/{lesson_id}", response_model=LessonOut)
async def get_lesson(lesson_id: UUID, actor: ActorDep, store: StoreDep) -> LessonOut:
    grant = await assert_can_view(store, actor, ResourceKind.LESSON, lesson_id)
    lesson = grant.lesson
    if lesson is None:
        raise LessonNotFound(lesson_id=lesson_id)
    return LessonOut(
        id=lesson.id,
        course_id=lesson.course_id,
        title=lesson.title,
        position=lesson.position,
    )


@router.post("/lessons/{lesson_id}/complete", response_model=CompletionOut)
async def complete_lesson(
    lesson_id: UUID, actor: ActorDep, store: StoreDep
) -> CompletionOut:
    await assert_can_view(store, actor, ResourceKind.LESSON, lesson_id)
    completion = await progress_tracker.complete_lesson(store, actor.id, lesson_id)
    return CompletionOut(
        student_id=completion.student_id,
        lesson_id=completion.lesson_id,
        course_id=completion.course_id,
        completed_at=completion.completed_at,
    )


@router.get("/assignments/{assignment_id}", response_model=AssignmentOut)
async def get_assignment(
    assignment_id: UUID, actor: ActorDep, store: StoreDep
) -> AssignmentOut:
    grant = await assert_can_view(
        store, actor, ResourceKind.ASSIGNMENT, assignment_id
    )
    assignment = grant.assignment
    if assignment is None:
        raise AssignmentNotFound(assignment_id=assignment_id)
    return AssignmentOut(
        id=assignment.id, course_id=assignment.course_id, title=assignment.title
    )
