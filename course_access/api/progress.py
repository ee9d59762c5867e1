from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter
from pydantic import BaseModel

from course_access.api.dependencies import ActorDep, StoreDep
from course_access.services import progress_tracker
from course_access.services.access_authorizer import ResourceKind, assert_can_view

router = APIRouter(prefix="/v1/courses", tags=["progress"])


class ProgressOut(BaseModel):
    course_id: UUID
    status: str
    progress_percentage: int
    completed_lessons: int
    total_lessons: int
    completed_at: int | None


@router.get("/{course_id}/progress", response_model=ProgressOut)
async def get_progress(course_id: UUID, actor: ActorDep, store: StoreDep) -> ProgressOut:
    """The caller's own progress in a course they can currently view.

    Same access rules as the lesson list, then 403 not_enrolled when the
    caller (e.g. the owning instructor) has no enrollment of their own.
    """
    await assert_can_view(store, actor, ResourceKind.COURSE, course_id)
    progress = await progress_tracker.get_progress(store, actor.id, course_id)
    return ProgressOut(
        course_id=progress.course_id,
        status=progress.status.value,
        progress_percentage=progress.progress_percentage,
        completed_lessons=progress.completed_lessons,
        total_lessons=progress.total_lessons,
        completed_at=progress.completed_at,
    )
