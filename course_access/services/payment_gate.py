from __future__ import annotations

import logging
from uuid import UUID

from course_access.repos.entitlement_store import EntitlementStore

logger = logging.getLogger(__name__)


async def has_completed_payment(
    store: EntitlementStore, student_id: UUID, course_id: UUID
) -> bool:
    """True iff some completed payment by this student for this course exists.

    Any completed payment counts (a refund followed by a repurchase leaves
    one refunded and one completed row).  No existence validation: an
    unknown course simply has no payments.
    """
    paid = await store.has_completed_payment(student_id, course_id)
    logger.debug(
        "Payment gate student=%s course=%s paid=%s", student_id, course_id, paid
    )
    return paid
