"""
StackIt Backend — User Reputation Routes
=========================================

What:  Read a user's reputation with its recent ledger entries, and the
       admin-only manual adjustment.

    GET  /api/users/{id}/reputation
    POST /api/users/{id}/reputation   {"delta": -50, "reason": "spam"}
"""

from uuid import UUID

from fastapi import APIRouter, Depends, Query

from app.routes.deps import get_current_user_id, get_engine
from app.schemas.common import ErrorResponse
from app.schemas.engine import (
    ReputationAdjustmentRequest,
    ReputationEventItem,
    ReputationResponse,
)
from app.services.consistency_engine import ConsistencyEngine

router = APIRouter(prefix="/api/users", tags=["Users"])


@router.get(
    "/{user_id}/reputation",
    response_model=ReputationResponse,
    responses={404: {"description": "User not found", "model": ErrorResponse}},
    summary="Get a user's reputation",
)
async def get_reputation(
    user_id: UUID,
    limit: int = Query(default=20, ge=1, le=100, description="Ledger entries to include"),
    engine: ConsistencyEngine = Depends(get_engine),
) -> ReputationResponse:
    user, events = await engine.get_reputation(user_id, limit=limit)
    return ReputationResponse(
        user_id=user.id,
        reputation=user.reputation,
        recent_events=[ReputationEventItem.model_validate(e) for e in events],
    )


@router.post(
    "/{user_id}/reputation",
    response_model=ReputationResponse,
    responses={
        400: {"description": "Zero delta", "model": ErrorResponse},
        403: {"description": "Caller is not an admin", "model": ErrorResponse},
        404: {"description": "User not found", "model": ErrorResponse},
    },
    summary="Adjust a user's reputation (admin)",
)
async def adjust_reputation(
    user_id: UUID,
    body: ReputationAdjustmentRequest,
    actor_id: UUID = Depends(get_current_user_id),
    engine: ConsistencyEngine = Depends(get_engine),
) -> ReputationResponse:
    reputation = await engine.adjust_reputation(
        user_id, body.delta, reason=body.reason, actor_id=actor_id
    )
    return ReputationResponse(user_id=user_id, reputation=reputation)
