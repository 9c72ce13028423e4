"""
StackIt Backend — Shared Route Dependencies
============================================

What:  FastAPI dependencies for caller identity and the consistency engine.

Caller identity:
    Session cookies and JWT handling live outside this service. Upstream
    authentication forwards the authenticated user's id in `X-User-Id`;
    routes only trust that header. Missing or malformed → 401.

Engine:
    Built once in `create_app()` and stored on `app.state` so tests can swap
    it through `app.dependency_overrides[get_engine]`.
"""

import uuid
from typing import Optional

from fastapi import Header, Request

from app.exceptions import UnauthorizedError
from app.services.consistency_engine import ConsistencyEngine


async def get_current_user_id(
    x_user_id: Optional[str] = Header(default=None, description="Authenticated user id"),
) -> uuid.UUID:
    if not x_user_id:
        raise UnauthorizedError()
    try:
        return uuid.UUID(x_user_id)
    except ValueError as e:
        raise UnauthorizedError(
            message="Invalid X-User-Id header", context={"header": "X-User-Id"}
        ) from e


def get_engine(request: Request) -> ConsistencyEngine:
    return request.app.state.engine
