from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from uuid import UUID


class Role(StrEnum):
    STUDENT = "student"
    INSTRUCTOR = "instructor"
    ADMIN = "admin"


@dataclass(frozen=True, slots=True)
class Actor:
    """Authenticated caller, as supplied by the authentication layer.

    The core trusts this value as already verified.  The request layer
    builds it from the bearer token's ``sub`` and ``role`` claims.
    """

    id: UUID
    role: Role

    @property
    def is_admin(self) -> bool:
        return self.role is Role.ADMIN
