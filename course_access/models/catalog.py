"""Catalog records: supplied by catalog management, read-only to the core."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID, uuid4


@dataclass(frozen=True, slots=True)
class Course:
    id: UUID
    instructor_id: UUID
    title: str
    price: Decimal = Decimal("0")
    currency: str = "USD"
    published: bool = False

    @property
    def is_free(self) -> bool:
        return self.price <= 0

    @staticmethod
    def new(
        *,
        instructor_id: UUID,
        title: str,
        price: Decimal | int | str = 0,
        currency: str = "USD",
        published: bool = False,
    ) -> Course:
        return Course(
            id=uuid4(),
            instructor_id=instructor_id,
            title=title,
            price=Decimal(price),
            currency=currency,
            published=published,
        )


@dataclass(frozen=True, slots=True)
class Lesson:
    id: UUID
    course_id: UUID
    title: str
    position: int
    published: bool = False

    @staticmethod
    def new(
        *, course_id: UUID, title: str, position: int, published: bool = False
    ) -> Lesson:
        return Lesson(
            id=uuid4(),
            course_id=course_id,
            title=title,
            position=position,
            published=published,
        )


@dataclass(frozen=True, slots=True)
class Assignment:
    id: UUID
    course_id: UUID
    title: str
    published: bool = True

    @staticmethod
    def new(*, course_id: UUID, title: str, published: bool = True) -> Assignment:
        return Assignment(
            id=uuid4(), course_id=course_id, title=title, published=published
        )
