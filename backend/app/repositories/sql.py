"""
StackIt Backend — SQLAlchemy Repository
========================================

What:  Relational implementation of `Repository` over an AsyncSession.
Who:   Created by the unit of work for each attempt of an engine operation.

Query plans worth knowing:
    - get_vote_type:  uq_votes_voter_target unique index → single row lookup
    - tally_votes:    idx_votes_target, grouped by vote_type (two rows max)
    - add_reputation: UPDATE users SET reputation = reputation + :delta
                      WHERE id = :id  (atomic at the row level; never a
                      read-modify-write in Python)

Vote rows are removed with a Core DELETE executed immediately instead of
`session.delete()`. The ORM flush would otherwise emit the INSERT of the
replacement vote before the DELETE of the old one and trip the unique
constraint.
"""

import uuid
from datetime import datetime, timezone
from typing import List, Optional, Union

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.domain.voting import TargetType, VoteTally, VoteType
from app.models import Answer, Question, ReputationEvent, User, Vote
from app.repositories.base import Repository


class SqlAlchemyRepository(Repository):
    def __init__(self, session: AsyncSession):
        self.session = session

    # ── Entities ──────────────────────────────────────────────────────────

    async def get_user(self, user_id: uuid.UUID) -> Optional[User]:
        return await self.session.get(User, user_id)

    async def get_question(
        self, question_id: uuid.UUID, include_deleted: bool = False
    ) -> Optional[Question]:
        question = await self.session.get(Question, question_id)
        if question is None or (question.is_deleted and not include_deleted):
            return None
        return question

    async def get_answer(
        self, answer_id: uuid.UUID, include_deleted: bool = False
    ) -> Optional[Answer]:
        answer = await self.session.get(Answer, answer_id)
        if answer is None or (answer.is_deleted and not include_deleted):
            return None
        return answer

    async def count_live_answers(self, question_id: uuid.UUID) -> int:
        result = await self.session.execute(
            select(func.count(Answer.id)).where(
                Answer.question_id == question_id,
                Answer.is_deleted.is_(False),
            )
        )
        return result.scalar() or 0

    async def touch(self, target: Union[Question, Answer]) -> None:
        # Any attribute change marks the row dirty; version_id_col then
        # turns the UPDATE into a compare-and-set on `version`.
        target.last_activity_at = datetime.now(timezone.utc)

    async def soft_delete_question(self, question: Question) -> None:
        question.is_deleted = True
        question.deleted_at = datetime.now(timezone.utc)

    async def soft_delete_answer(self, answer: Answer) -> None:
        answer.is_deleted = True
        answer.deleted_at = datetime.now(timezone.utc)

    # ── Votes ─────────────────────────────────────────────────────────────

    async def get_vote_type(
        self, voter_id: uuid.UUID, target_type: TargetType, target_id: uuid.UUID
    ) -> Optional[VoteType]:
        result = await self.session.execute(
            select(Vote.vote_type).where(
                Vote.voter_id == voter_id,
                Vote.target_type == target_type.value,
                Vote.target_id == target_id,
            )
        )
        value = result.scalar_one_or_none()
        return VoteType(value) if value is not None else None

    async def remove_vote(
        self, voter_id: uuid.UUID, target_type: TargetType, target_id: uuid.UUID
    ) -> None:
        await self.session.execute(
            delete(Vote).where(
                Vote.voter_id == voter_id,
                Vote.target_type == target_type.value,
                Vote.target_id == target_id,
            )
        )

    async def add_vote(
        self,
        voter_id: uuid.UUID,
        target_type: TargetType,
        target_id: uuid.UUID,
        vote_type: VoteType,
    ) -> None:
        self.session.add(
            Vote(
                voter_id=voter_id,
                target_type=target_type.value,
                target_id=target_id,
                vote_type=vote_type.value,
            )
        )

    async def tally_votes(self, target_type: TargetType, target_id: uuid.UUID) -> VoteTally:
        result = await self.session.execute(
            select(Vote.vote_type, func.count(Vote.id))
            .where(Vote.target_type == target_type.value, Vote.target_id == target_id)
            .group_by(Vote.vote_type)
        )
        counts = {vote_type: count for vote_type, count in result.all()}
        return VoteTally(
            upvotes=counts.get(VoteType.UPVOTE.value, 0),
            downvotes=counts.get(VoteType.DOWNVOTE.value, 0),
        )

    # ── Reputation ────────────────────────────────────────────────────────

    async def add_reputation(self, user_id: uuid.UUID, delta: int) -> bool:
        result = await self.session.execute(
            update(User)
            .where(User.id == user_id)
            .values(reputation=User.reputation + delta)
            .execution_options(synchronize_session="evaluate")
        )
        return result.rowcount > 0

    async def record_reputation_event(self, event: ReputationEvent) -> None:
        self.session.add(event)

    async def recent_reputation_events(
        self, user_id: uuid.UUID, limit: int = 20
    ) -> List[ReputationEvent]:
        result = await self.session.execute(
            select(ReputationEvent)
            .where(ReputationEvent.user_id == user_id)
            .order_by(ReputationEvent.created_at.desc())
            .limit(limit)
        )
        return list(result.scalars().all())

    # ── Transaction ───────────────────────────────────────────────────────

    async def flush(self) -> None:
        await self.session.flush()
