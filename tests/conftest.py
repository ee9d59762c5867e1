from __future__ import annotations

import asyncio
import sys
from decimal import Decimal
from pathlib import Path
from uuid import UUID, uuid4

import pytest
from fastapi.testclient import TestClient

from course_access.core.config import SETTINGS
from course_access.main import app
from course_access.models.actor import Actor, Role
from course_access.models.catalog import Assignment, Course, Lesson
from course_access.models.payment import Payment, PaymentStatus
from course_access.repos.entitlement_store import entitlement_store
from course_access.services import token_service
from course_access.services.task_queue import task_queue

# Ensure repo root is on sys.path so `import course_access` works under pytest.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


@pytest.fixture(autouse=True)
def reset_entitlement_store() -> None:
    entitlement_store.clear()


@pytest.fixture(autouse=True)
def reset_task_queue() -> None:
    """Clear event queues between tests."""
    if hasattr(task_queue, "_queues"):
        task_queue._queues.clear()  # type: ignore[union-attr]


@pytest.fixture
def client() -> TestClient:
    return TestClient(app)


def mint_token(sub: UUID | str | None = None, role: str = "student") -> str:
    """Create a valid ES256 JWT for testing."""
    return token_service.create_access_token(sub=str(sub or uuid4()), role=role)


def auth_header(actor: Actor) -> dict[str, str]:
    return {"Authorization": f"Bearer {mint_token(actor.id, actor.role.value)}"}


def make_actor(role: Role = Role.STUDENT) -> Actor:
    return Actor(id=uuid4(), role=role)


# ---------------------------------------------------------------------------
# Seeding helpers (write straight into the in-memory store)
# ---------------------------------------------------------------------------


def seed_course(
    *,
    price: Decimal | int | str = 0,
    published: bool = True,
    instructor_id: UUID | None = None,
    title: str = "Intro to Testing",
) -> Course:
    course = Course.new(
        instructor_id=instructor_id or uuid4(),
        title=title,
        price=price,
        published=published,
    )
    asyncio.run(entitlement_store.put_course(course))
    return course


def seed_lessons(course: Course, count: int, *, published: bool = True) -> list[Lesson]:
    lessons = [
        Lesson.new(
            course_id=course.id,
            title=f"Lesson {i}",
            position=i,
            published=published,
        )
        for i in range(1, count + 1)
    ]
    for lesson in lessons:
        asyncio.run(entitlement_store.put_lesson(lesson))
    return lessons


def seed_assignment(course: Course, *, published: bool = True) -> Assignment:
    assignment = Assignment.new(
        course_id=course.id, title="Homework 1", published=published
    )
    asyncio.run(entitlement_store.put_assignment(assignment))
    return assignment


def seed_payment(
    student_id: UUID,
    course: Course,
    *,
    status: PaymentStatus = PaymentStatus.COMPLETED,
) -> Payment:
    payment = Payment.new(
        student_id=student_id,
        course_id=course.id,
        amount=course.price,
        status=status,
        transaction_ref=f"txn-{uuid4().hex[:8]}",
    )
    asyncio.run(entitlement_store.put_payment(payment))
    return payment


def queued_event_types() -> list[str]:
    """Event types currently sitting in the in-memory events queue, in order."""
    tasks = task_queue._queues.get(SETTINGS.events_queue, [])  # type: ignore[union-attr]
    return [t.payload["type"] for t in tasks]
