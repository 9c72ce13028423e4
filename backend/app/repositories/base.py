"""
StackIt Backend — Abstract Repository Interface
================================================

What:  The persistence contract the consistency engine is written against.
Why:   The engine only needs find/update on users, questions, answers and
       votes. Depending on this interface keeps it storage-agnostic: a
       relational and a document-store adapter can serve the same engine.
How:   Concrete adapters implement every abstract method on top of one open
       transaction. The engine never commits; the unit of work does.

Implementations:
    - SqlAlchemyRepository: relational adapter over an AsyncSession

Contract notes:
    - get_question / get_answer hide soft-deleted rows unless
      include_deleted=True.
    - add_reputation must be a single atomic increment at the storage level
      (no read-then-write), so concurrent adjustments never lose updates.
    - remove_vote + add_vote together implement "remove from both sets,
      then insert into the matching set".
"""

import uuid
from abc import ABC, abstractmethod
from typing import List, Optional, Union

from app.domain.voting import TargetType, VoteTally, VoteType
from app.models import Answer, Question, ReputationEvent, User


class Repository(ABC):
    """Storage operations used by the consistency engine within one transaction."""

    # ── Entities ──────────────────────────────────────────────────────────

    @abstractmethod
    async def get_user(self, user_id: uuid.UUID) -> Optional[User]:
        ...

    @abstractmethod
    async def get_question(
        self, question_id: uuid.UUID, include_deleted: bool = False
    ) -> Optional[Question]:
        ...

    @abstractmethod
    async def get_answer(
        self, answer_id: uuid.UUID, include_deleted: bool = False
    ) -> Optional[Answer]:
        ...

    async def get_target(
        self, target_type: TargetType, target_id: uuid.UUID
    ) -> Optional[Union[Question, Answer]]:
        """Load a live vote target of either kind."""
        if target_type is TargetType.QUESTION:
            return await self.get_question(target_id)
        return await self.get_answer(target_id)

    @abstractmethod
    async def count_live_answers(self, question_id: uuid.UUID) -> int:
        ...

    @abstractmethod
    async def touch(self, target: Union[Question, Answer]) -> None:
        """Record activity on a post. Must bump the post's concurrency version."""

    @abstractmethod
    async def soft_delete_question(self, question: Question) -> None:
        ...

    @abstractmethod
    async def soft_delete_answer(self, answer: Answer) -> None:
        ...

    # ── Votes ─────────────────────────────────────────────────────────────

    @abstractmethod
    async def get_vote_type(
        self, voter_id: uuid.UUID, target_type: TargetType, target_id: uuid.UUID
    ) -> Optional[VoteType]:
        ...

    @abstractmethod
    async def remove_vote(
        self, voter_id: uuid.UUID, target_type: TargetType, target_id: uuid.UUID
    ) -> None:
        """Remove the voter from both vote sets of the target (no-op if absent)."""

    @abstractmethod
    async def add_vote(
        self,
        voter_id: uuid.UUID,
        target_type: TargetType,
        target_id: uuid.UUID,
        vote_type: VoteType,
    ) -> None:
        ...

    @abstractmethod
    async def tally_votes(self, target_type: TargetType, target_id: uuid.UUID) -> VoteTally:
        ...

    # ── Reputation ────────────────────────────────────────────────────────

    @abstractmethod
    async def add_reputation(self, user_id: uuid.UUID, delta: int) -> bool:
        """Atomically add `delta` to the user's reputation. False if no such user."""

    @abstractmethod
    async def record_reputation_event(self, event: ReputationEvent) -> None:
        ...

    @abstractmethod
    async def recent_reputation_events(
        self, user_id: uuid.UUID, limit: int = 20
    ) -> List[ReputationEvent]:
        ...

    # ── Transaction ───────────────────────────────────────────────────────

    @abstractmethod
    async def flush(self) -> None:
        """Push pending changes so later reads in the same transaction see them."""
