from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import StrEnum
from uuid import UUID, uuid4


class PaymentStatus(StrEnum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"


@dataclass(frozen=True, slots=True)
class Payment:
    """Payment record owned by the payment subsystem.

    The core only ever reads it: a payment grants access iff it is
    ``completed`` and its student/course match the request.
    """

    id: UUID
    student_id: UUID
    course_id: UUID
    amount: Decimal
    status: PaymentStatus = PaymentStatus.PENDING
    currency: str = "USD"
    transaction_ref: str = ""

    @property
    def is_completed(self) -> bool:
        return self.status is PaymentStatus.COMPLETED

    @staticmethod
    def new(
        *,
        student_id: UUID,
        course_id: UUID,
        amount: Decimal | int | str,
        status: PaymentStatus = PaymentStatus.PENDING,
        currency: str = "USD",
        transaction_ref: str = "",
    ) -> Payment:
        return Payment(
            id=uuid4(),
            student_id=student_id,
            course_id=course_id,
            amount=Decimal(amount),
            status=status,
            currency=currency,
            transaction_ref=transaction_ref,
        )
