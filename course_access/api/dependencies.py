from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Annotated
from uuid import UUID

import jwt
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from course_access.core.errors import AuthenticationRequired
from course_access.db.engine import async_session_factory, get_async_session
from course_access.middleware.request_context import actor_id_var
from course_access.models.actor import Actor, Role
from course_access.repos.entitlement_store import EntitlementStore, entitlement_store
from course_access.repos.pg_entitlement_store import PgEntitlementStore
from course_access.services import events, token_service

logger = logging.getLogger(__name__)

# auto_error=False so a missing header goes through the domain error
# handler (401 with the standard body) instead of FastAPI's own 403.
bearer_scheme = HTTPBearer(auto_error=False)

_session_scope = asynccontextmanager(get_async_session)


async def require_actor(
    credentials: Annotated[
        HTTPAuthorizationCredentials | None, Depends(bearer_scheme)
    ],
) -> Actor:
    """Validate the bearer token and return the calling Actor."""
    if credentials is None:
        raise AuthenticationRequired()

    try:
        claims = token_service.decode_access_token(credentials.credentials)
    except jwt.ExpiredSignatureError:
        logger.warning("Expired token rejected")
        raise AuthenticationRequired("Token expired") from None
    except jwt.InvalidTokenError as e:
        logger.warning("Invalid token rejected: %s", e)
        raise AuthenticationRequired("Invalid token") from None

    try:
        actor = Actor(id=UUID(str(claims["sub"])), role=Role(claims["role"]))
    except ValueError:
        logger.warning(
            "Token claims rejected sub=%r role=%r", claims["sub"], claims["role"]
        )
        raise AuthenticationRequired("Invalid token") from None

    actor_id_var.set(str(actor.id))
    logger.debug("Token validated for actor=%s role=%s", actor.id, actor.role)
    return actor


async def get_store() -> AsyncGenerator[EntitlementStore, None]:
    """Request-scoped entitlement store.

    With a database: a PgEntitlementStore over one session, committed
    when the request succeeds.  Domain events raised during the request
    are enqueued only after that commit.  Without: the process-wide
    in-memory store, publishing immediately.
    """
    if async_session_factory is None:
        yield entitlement_store
        return

    async with events.publish_after_commit():
        async with _session_scope() as session:
            yield PgEntitlementStore(session)


ActorDep = Annotated[Actor, Depends(require_actor)]
StoreDep = Annotated[EntitlementStore, Depends(get_store)]
