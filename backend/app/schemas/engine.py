"""
StackIt Backend — Consistency Engine Request/Result Schemas
============================================================

What:  Pydantic models for what the engine accepts from routes and returns.
Why:   The engine hands plain result objects back to thin route handlers;
       FastAPI serializes them and documents them in OpenAPI.
"""

import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from app.domain.voting import VoteType


# ══════════════════════════════════════════════════════════════════════════
# Requests
# ══════════════════════════════════════════════════════════════════════════


class VoteRequest(BaseModel):
    """Body of POST /api/questions/{id}/vote and POST /api/answers/{id}/vote."""
    vote_type: VoteType = Field(description="'upvote' or 'downvote'")


class ReputationAdjustmentRequest(BaseModel):
    """Manual adjustment issued by moderation tooling."""
    delta: int = Field(description="Signed reputation change; must not be zero")
    reason: str = Field(default="moderation", min_length=1, max_length=50)


# ══════════════════════════════════════════════════════════════════════════
# Results
# ══════════════════════════════════════════════════════════════════════════


class VoteResult(BaseModel):
    """
    Outcome of casting or retracting a vote.

    vote_count is derived from the stored vote sets after the change
    (upvotes − downvotes), never read from a cached counter.
    """
    vote_count: int = Field(description="Upvotes minus downvotes after this call")
    vote_type: Optional[VoteType] = Field(
        default=None, description="The caller's vote after this call (null when retracted)"
    )
    reputation_delta: int = Field(
        default=0, description="Net reputation change applied to the target's author"
    )


class AcceptResult(BaseModel):
    accepted: bool = True
    answer_id: uuid.UUID
    previous_answer_id: Optional[uuid.UUID] = Field(
        default=None, description="Answer that lost its accepted status, if any"
    )


class UnacceptResult(BaseModel):
    reversed: bool = True
    answer_id: Optional[uuid.UUID] = None


class DeleteResult(BaseModel):
    deleted: bool = True


class ReputationEventItem(BaseModel):
    delta: int
    reason: str
    target_type: Optional[str] = None
    target_id: Optional[uuid.UUID] = None
    actor_id: Optional[uuid.UUID] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class ReputationResponse(BaseModel):
    """GET /api/users/{id}/reputation: the score and the deltas that produced it."""
    user_id: uuid.UUID
    reputation: int
    recent_events: List[ReputationEventItem] = Field(default_factory=list)
