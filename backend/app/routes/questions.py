"""
StackIt Backend — Question & Answer Lifecycle Routes
=====================================================

What:  Accept/unaccept answers and the guarded soft deletes.
Who:   Accept/unaccept: the question's author only. Deletes: the author or
       an admin.

    POST   /api/questions/{id}/accept-answer/{answer_id}
    POST   /api/questions/{id}/unaccept-answer
    DELETE /api/questions/{id}     409 while live answers remain
    DELETE /api/answers/{id}       409 while the answer is accepted
"""

from uuid import UUID

from fastapi import APIRouter, Depends

from app.routes.deps import get_current_user_id, get_engine
from app.schemas.common import ErrorResponse
from app.schemas.engine import AcceptResult, DeleteResult, UnacceptResult
from app.services.consistency_engine import ConsistencyEngine

router = APIRouter(prefix="/api", tags=["Questions"])


@router.post(
    "/questions/{question_id}/accept-answer/{answer_id}",
    response_model=AcceptResult,
    responses={
        403: {"description": "Caller is not the question author", "model": ErrorResponse},
        404: {"description": "Question or answer not found", "model": ErrorResponse},
        409: {"description": "Concurrent acceptance, retry", "model": ErrorResponse},
    },
    summary="Accept an answer",
    description=(
        "Marks the answer as accepted. A previously accepted answer is unaccepted "
        "first and its author's acceptance bonus is reversed."
    ),
)
async def accept_answer(
    question_id: UUID,
    answer_id: UUID,
    user_id: UUID = Depends(get_current_user_id),
    engine: ConsistencyEngine = Depends(get_engine),
) -> AcceptResult:
    return await engine.accept_answer(user_id, question_id, answer_id)


@router.post(
    "/questions/{question_id}/unaccept-answer",
    response_model=UnacceptResult,
    responses={
        400: {"description": "No answer is accepted", "model": ErrorResponse},
        403: {"description": "Caller is not the question author", "model": ErrorResponse},
        404: {"description": "Question not found", "model": ErrorResponse},
    },
    summary="Unaccept the accepted answer",
)
async def unaccept_answer(
    question_id: UUID,
    user_id: UUID = Depends(get_current_user_id),
    engine: ConsistencyEngine = Depends(get_engine),
) -> UnacceptResult:
    return await engine.unaccept_answer(user_id, question_id)


@router.delete(
    "/questions/{question_id}",
    response_model=DeleteResult,
    responses={
        403: {"description": "Not the author or an admin", "model": ErrorResponse},
        404: {"description": "Question not found", "model": ErrorResponse},
        409: {"description": "Question still has answers", "model": ErrorResponse},
    },
    summary="Delete a question",
)
async def delete_question(
    question_id: UUID,
    user_id: UUID = Depends(get_current_user_id),
    engine: ConsistencyEngine = Depends(get_engine),
) -> DeleteResult:
    return await engine.delete_question(user_id, question_id)


@router.delete(
    "/answers/{answer_id}",
    response_model=DeleteResult,
    responses={
        403: {"description": "Not the author or an admin", "model": ErrorResponse},
        404: {"description": "Answer not found", "model": ErrorResponse},
        409: {"description": "Answer is accepted", "model": ErrorResponse},
    },
    summary="Delete an answer",
)
async def delete_answer(
    answer_id: UUID,
    user_id: UUID = Depends(get_current_user_id),
    engine: ConsistencyEngine = Depends(get_engine),
) -> DeleteResult:
    return await engine.delete_answer(user_id, answer_id)
