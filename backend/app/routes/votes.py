"""
StackIt Backend — Vote Route Handlers
======================================

What:  Cast and retract votes on questions and answers.
How:   Thin handlers: parse the path and body, call the engine, return its
       VoteResult. Every rule (self vote, deleted target, guest voter) is
       enforced by the engine and mapped to a status code by main.py.

    POST   /api/questions/{id}/vote   {"vote_type": "upvote"}
    DELETE /api/questions/{id}/vote
    POST   /api/answers/{id}/vote     {"vote_type": "downvote"}
    DELETE /api/answers/{id}/vote
"""

from uuid import UUID

from fastapi import APIRouter, Depends

from app.domain.voting import TargetType
from app.routes.deps import get_current_user_id, get_engine
from app.schemas.common import ErrorResponse
from app.schemas.engine import VoteRequest, VoteResult
from app.services.consistency_engine import ConsistencyEngine

router = APIRouter(prefix="/api", tags=["Votes"])

_ERRORS = {
    400: {"description": "Self vote", "model": ErrorResponse},
    401: {"description": "Missing caller identity", "model": ErrorResponse},
    403: {"description": "Guest or deactivated voter", "model": ErrorResponse},
    404: {"description": "Target not found or deleted", "model": ErrorResponse},
    409: {"description": "Concurrent modification, retry", "model": ErrorResponse},
}


@router.post(
    "/questions/{question_id}/vote",
    response_model=VoteResult,
    responses=_ERRORS,
    summary="Vote on a question",
)
async def vote_question(
    question_id: UUID,
    body: VoteRequest,
    user_id: UUID = Depends(get_current_user_id),
    engine: ConsistencyEngine = Depends(get_engine),
) -> VoteResult:
    return await engine.cast_vote(user_id, TargetType.QUESTION, question_id, body.vote_type)


@router.delete(
    "/questions/{question_id}/vote",
    response_model=VoteResult,
    responses=_ERRORS,
    summary="Retract your vote on a question",
)
async def retract_question_vote(
    question_id: UUID,
    user_id: UUID = Depends(get_current_user_id),
    engine: ConsistencyEngine = Depends(get_engine),
) -> VoteResult:
    return await engine.retract_vote(user_id, TargetType.QUESTION, question_id)


@router.post(
    "/answers/{answer_id}/vote",
    response_model=VoteResult,
    responses=_ERRORS,
    summary="Vote on an answer",
)
async def vote_answer(
    answer_id: UUID,
    body: VoteRequest,
    user_id: UUID = Depends(get_current_user_id),
    engine: ConsistencyEngine = Depends(get_engine),
) -> VoteResult:
    return await engine.cast_vote(user_id, TargetType.ANSWER, answer_id, body.vote_type)


@router.delete(
    "/answers/{answer_id}/vote",
    response_model=VoteResult,
    responses=_ERRORS,
    summary="Retract your vote on an answer",
)
async def retract_answer_vote(
    answer_id: UUID,
    user_id: UUID = Depends(get_current_user_id),
    engine: ConsistencyEngine = Depends(get_engine),
) -> VoteResult:
    return await engine.retract_vote(user_id, TargetType.ANSWER, answer_id)
