"""
StackIt Backend — Consistency Engine
=====================================

What:  The voting, acceptance and reputation operations of the Q&A site.
Why:   Each operation touches two or three rows (a vote, a post, one or two
       users) that must stay mutually consistent: vote tallies, the single
       accepted answer per question, and reputation totals.
How:   Every public method builds a `work(repo)` coroutine holding the whole
       read-decide-write sequence and hands it to the UnitOfWork, which runs
       it in one transaction and re-runs it after a lost race. `work` returns
       the result plus the notifications it wants sent; the engine hands
       those to the sink only after `run()` returns, i.e. after COMMIT.

    Route ──▶ ConsistencyEngine.op() ──▶ UnitOfWork.run(work)
                                             │  read:   repo.get_*
                                             │  decide: domain.voting / guards
                                             │  write:  repo.* + ReputationLedger
                                             ▼
                                          COMMIT ──▶ NotificationSink.enqueue()

Reputation deltas (configuration, see Settings):
    upvote on your post     +REPUTATION_UPVOTE   (10)
    downvote on your post   +REPUTATION_DOWNVOTE (-2)
    your answer accepted    +REPUTATION_ACCEPT   (15), reversed on unaccept

Replay safety:
    Re-casting the same vote and re-accepting the accepted answer are no-ops,
    so clients may retry any call after a 409 without double counting.
"""

import logging
import uuid
from typing import Any, List, Optional, Tuple, Union

from app.config import Settings, settings as default_settings
from app.domain.voting import TargetType, VoteType, reputation_delta
from app.exceptions import (
    ForbiddenError,
    NothingAcceptedError,
    NotFoundError,
    SelfVoteError,
    ValidationError,
)
from app.models import Answer, Question, User
from app.repositories import Repository
from app.schemas.engine import (
    AcceptResult,
    DeleteResult,
    UnacceptResult,
    VoteResult,
)
from app.services.guards import guard_answer_deletion, guard_question_deletion
from app.services.notification_sink import NotificationEvent, NotificationSink
from app.services.reputation import ReputationLedger, reputation_ledger
from app.services.unit_of_work import UnitOfWork

logger = logging.getLogger(__name__)

Post = Union[Question, Answer]


class ConsistencyEngine:
    def __init__(
        self,
        unit_of_work: UnitOfWork,
        notification_sink: NotificationSink,
        settings: Optional[Settings] = None,
        ledger: Optional[ReputationLedger] = None,
    ):
        self.uow = unit_of_work
        self.sink = notification_sink
        self.settings = settings or default_settings
        self.ledger = ledger or reputation_ledger

    # ══════════════════════════════════════════════════════════════════════
    # Votes
    # ══════════════════════════════════════════════════════════════════════

    async def cast_vote(
        self,
        voter_id: uuid.UUID,
        target_type: TargetType,
        target_id: uuid.UUID,
        vote_type: VoteType,
    ) -> VoteResult:
        """
        Record `voter_id`'s vote on a question or answer.

        The voter is removed from both vote sets of the target and then
        inserted into the set matching `vote_type`. The target's author
        receives the net reputation delta between the old and new vote state
        in a single ledger call (upvote→downvote is one −12, not −10 then −2).

        Raises:
            NotFoundError:  Voter, or live target, does not exist
            ForbiddenError: Voter is a guest or deactivated
            SelfVoteError:  Voter wrote the target
        """

        async def work(repo: Repository) -> Tuple[VoteResult, List[NotificationEvent]]:
            voter = await self._require_voter(repo, voter_id)
            target = await self._require_vote_target(repo, voter_id, target_type, target_id)

            old = await repo.get_vote_type(voter_id, target_type, target_id)
            if old is vote_type:
                tally = await repo.tally_votes(target_type, target_id)
                return VoteResult(vote_count=tally.vote_count, vote_type=vote_type), []

            await repo.remove_vote(voter_id, target_type, target_id)
            await repo.add_vote(voter_id, target_type, target_id, vote_type)

            delta = await self.ledger.adjust(
                repo,
                target.author_id,
                self._vote_delta(old, vote_type),
                reason=vote_type.value if old is None else "vote_changed",
                target_type=target_type.value,
                target_id=target_id,
                actor_id=voter_id,
            )
            await repo.touch(target)
            tally = await repo.tally_votes(target_type, target_id)

            question = await self._question_of(repo, target)
            event = NotificationEvent(
                type="vote",
                recipient_id=target.author_id,
                sender_id=voter_id,
                payload={
                    "sender_username": voter.username,
                    "question_title": question.title if question else None,
                    "question_id": question.id if question else None,
                    "target_type": target_type.value,
                    "target_id": target_id,
                    "vote_type": vote_type.value,
                },
            )
            result = VoteResult(
                vote_count=tally.vote_count, vote_type=vote_type, reputation_delta=delta
            )
            return result, [event]

        result = await self._run("cast_vote", work)
        if result.reputation_delta:
            logger.info(
                "Vote %s on %s %s by %s (count %d)",
                vote_type.value,
                target_type.value,
                target_id,
                voter_id,
                result.vote_count,
            )
        return result

    async def retract_vote(
        self,
        voter_id: uuid.UUID,
        target_type: TargetType,
        target_id: uuid.UUID,
    ) -> VoteResult:
        """Remove the voter's vote and reverse its reputation effect. No-op without a vote."""

        async def work(repo: Repository) -> Tuple[VoteResult, List[NotificationEvent]]:
            await self._require_voter(repo, voter_id)
            target = await self._require_vote_target(repo, voter_id, target_type, target_id)

            old = await repo.get_vote_type(voter_id, target_type, target_id)
            if old is None:
                tally = await repo.tally_votes(target_type, target_id)
                return VoteResult(vote_count=tally.vote_count), []

            await repo.remove_vote(voter_id, target_type, target_id)
            delta = await self.ledger.adjust(
                repo,
                target.author_id,
                self._vote_delta(old, None),
                reason="vote_retracted",
                target_type=target_type.value,
                target_id=target_id,
                actor_id=voter_id,
            )
            await repo.touch(target)
            tally = await repo.tally_votes(target_type, target_id)
            return VoteResult(vote_count=tally.vote_count, reputation_delta=delta), []

        result = await self._run("retract_vote", work)
        logger.info("Vote retracted on %s %s by %s", target_type.value, target_id, voter_id)
        return result

    # ══════════════════════════════════════════════════════════════════════
    # Acceptance
    # ══════════════════════════════════════════════════════════════════════

    async def accept_answer(
        self,
        actor_id: uuid.UUID,
        question_id: uuid.UUID,
        answer_id: uuid.UUID,
    ) -> AcceptResult:
        """
        Mark `answer_id` as the accepted answer of `question_id`.

        A previously accepted answer is unaccepted (and its author loses the
        bonus) and flushed before the new one is accepted, so the database
        never holds two accepted answers for the question.

        Raises:
            NotFoundError:  Question or answer missing, deleted, or the answer
                            belongs to a different question
            ForbiddenError: Actor is not the question's author
        """
        bonus = self.settings.reputation_accept

        async def work(repo: Repository) -> Tuple[AcceptResult, List[NotificationEvent]]:
            question = await self._require_question(repo, question_id)
            answer = await repo.get_answer(answer_id)
            if answer is None or answer.question_id != question.id:
                raise NotFoundError(resource="answer", resource_id=str(answer_id))
            self._require_question_author(question, actor_id, "accept an answer")

            if question.accepted_answer_id == answer.id and answer.is_accepted:
                return AcceptResult(answer_id=answer.id), []

            previous_id = None
            if question.accepted_answer_id is not None:
                previous = await repo.get_answer(question.accepted_answer_id, include_deleted=True)
                if previous is not None and previous.is_accepted:
                    previous.is_accepted = False
                    await self.ledger.adjust(
                        repo,
                        previous.author_id,
                        -bonus,
                        reason="answer_unaccepted",
                        target_type=TargetType.ANSWER.value,
                        target_id=previous.id,
                        actor_id=actor_id,
                    )
                    previous_id = previous.id
                question.accepted_answer_id = None
                await repo.flush()

            answer.is_accepted = True
            question.accepted_answer_id = answer.id
            await repo.touch(question)
            await self.ledger.adjust(
                repo,
                answer.author_id,
                bonus,
                reason="answer_accepted",
                target_type=TargetType.ANSWER.value,
                target_id=answer.id,
                actor_id=actor_id,
            )

            actor = await repo.get_user(actor_id)
            event = NotificationEvent(
                type="acceptance",
                recipient_id=answer.author_id,
                sender_id=actor_id,
                payload={
                    "sender_username": actor.username if actor else None,
                    "question_title": question.title,
                    "question_id": question.id,
                    "answer_id": answer.id,
                },
            )
            return AcceptResult(answer_id=answer.id, previous_answer_id=previous_id), [event]

        result = await self._run("accept_answer", work)
        logger.info(
            "Answer %s accepted on question %s (previous: %s)",
            answer_id,
            question_id,
            result.previous_answer_id,
        )
        return result

    async def unaccept_answer(self, actor_id: uuid.UUID, question_id: uuid.UUID) -> UnacceptResult:
        """
        Clear the accepted answer of `question_id` and reverse the bonus.

        Raises:
            NotFoundError:        Question missing or deleted
            ForbiddenError:       Actor is not the question's author
            NothingAcceptedError: No answer is accepted (nothing changes)
        """

        async def work(repo: Repository) -> Tuple[UnacceptResult, List[NotificationEvent]]:
            question = await self._require_question(repo, question_id)
            self._require_question_author(question, actor_id, "unaccept an answer")
            if question.accepted_answer_id is None:
                raise NothingAcceptedError(question_id=str(question_id))

            answer_id = question.accepted_answer_id
            answer = await repo.get_answer(answer_id, include_deleted=True)
            if answer is not None and answer.is_accepted:
                answer.is_accepted = False
                await self.ledger.adjust(
                    repo,
                    answer.author_id,
                    -self.settings.reputation_accept,
                    reason="answer_unaccepted",
                    target_type=TargetType.ANSWER.value,
                    target_id=answer.id,
                    actor_id=actor_id,
                )
            question.accepted_answer_id = None
            await repo.touch(question)
            return UnacceptResult(answer_id=answer_id), []

        result = await self._run("unaccept_answer", work)
        logger.info("Answer %s unaccepted on question %s", result.answer_id, question_id)
        return result

    # ══════════════════════════════════════════════════════════════════════
    # Guarded deletes
    # ══════════════════════════════════════════════════════════════════════

    async def delete_answer(self, actor_id: uuid.UUID, answer_id: uuid.UUID) -> DeleteResult:
        """Soft-delete an answer. Refused with ConflictError while it is accepted."""

        async def work(repo: Repository) -> Tuple[DeleteResult, List[NotificationEvent]]:
            answer = await repo.get_answer(answer_id)
            if answer is None:
                raise NotFoundError(resource="answer", resource_id=str(answer_id))
            await self._require_owner_or_admin(repo, actor_id, answer.author_id, "answer")
            guard_answer_deletion(answer)
            await repo.soft_delete_answer(answer)
            return DeleteResult(), []

        result = await self._run("delete_answer", work)
        logger.info("Answer %s deleted by %s", answer_id, actor_id)
        return result

    async def delete_question(self, actor_id: uuid.UUID, question_id: uuid.UUID) -> DeleteResult:
        """Soft-delete a question. Refused with ConflictError while live answers remain."""

        async def work(repo: Repository) -> Tuple[DeleteResult, List[NotificationEvent]]:
            question = await self._require_question(repo, question_id)
            await self._require_owner_or_admin(repo, actor_id, question.author_id, "question")
            guard_question_deletion(question, await repo.count_live_answers(question.id))
            await repo.soft_delete_question(question)
            return DeleteResult(), []

        result = await self._run("delete_question", work)
        logger.info("Question %s deleted by %s", question_id, actor_id)
        return result

    # ══════════════════════════════════════════════════════════════════════
    # Reputation
    # ══════════════════════════════════════════════════════════════════════

    async def adjust_reputation(
        self,
        user_id: uuid.UUID,
        delta: int,
        reason: str = "moderation",
        actor_id: Optional[uuid.UUID] = None,
    ) -> int:
        """
        Apply a manual reputation adjustment as its own atomic operation.

        When `actor_id` is given (HTTP callers) the actor must be an admin;
        internal callers such as maintenance scripts pass None.

        Returns:
            The user's reputation after the adjustment.
        """
        if delta == 0:
            raise ValidationError("Reputation adjustment must not be zero", field="delta")

        async def work(repo: Repository) -> Tuple[int, List[NotificationEvent]]:
            if actor_id is not None:
                actor = await repo.get_user(actor_id)
                if actor is None or not actor.is_admin:
                    raise ForbiddenError(message="Only administrators can adjust reputation")
            await self.ledger.adjust(repo, user_id, delta, reason=reason, actor_id=actor_id)
            user = await repo.get_user(user_id)
            return user.reputation, []

        return await self._run("adjust_reputation", work)

    async def get_reputation(self, user_id: uuid.UUID, limit: int = 20) -> Tuple[User, list]:
        """Current reputation and the most recent ledger entries (read-only)."""

        async def work(repo: Repository) -> Tuple[Tuple[User, list], List[NotificationEvent]]:
            user = await repo.get_user(user_id)
            if user is None:
                raise NotFoundError(resource="user", resource_id=str(user_id))
            events = await repo.recent_reputation_events(user_id, limit=limit)
            return (user, events), []

        return await self._run("get_reputation", work)

    # ══════════════════════════════════════════════════════════════════════
    # Internals
    # ══════════════════════════════════════════════════════════════════════

    async def _run(self, operation: str, work) -> Any:
        result, events = await self.uow.run(operation, work)
        for event in events:
            self._emit(event)
        return result

    def _emit(self, event: NotificationEvent) -> None:
        try:
            self.sink.enqueue(event.type, event.recipient_id, event.sender_id, event.payload)
        except Exception as e:
            logger.error(
                "Failed to enqueue %s notification for %s: %s",
                event.type,
                event.recipient_id,
                str(e),
            )

    def _vote_delta(self, old: Optional[VoteType], new: Optional[VoteType]) -> int:
        return reputation_delta(
            old,
            new,
            upvote_delta=self.settings.reputation_upvote,
            downvote_delta=self.settings.reputation_downvote,
        )

    @staticmethod
    async def _require_voter(repo: Repository, voter_id: uuid.UUID) -> User:
        voter = await repo.get_user(voter_id)
        if voter is None:
            raise NotFoundError(resource="user", resource_id=str(voter_id))
        if not voter.can_vote:
            raise ForbiddenError(
                message="Your account is not allowed to vote",
                context={"user_id": str(voter_id), "role": voter.role},
            )
        return voter

    @staticmethod
    async def _require_vote_target(
        repo: Repository,
        voter_id: uuid.UUID,
        target_type: TargetType,
        target_id: uuid.UUID,
    ) -> Post:
        target = await repo.get_target(target_type, target_id)
        if target is None:
            raise NotFoundError(resource=target_type.value, resource_id=str(target_id))
        if target.author_id == voter_id:
            raise SelfVoteError(target_type=target_type.value)
        return target

    @staticmethod
    async def _require_question(repo: Repository, question_id: uuid.UUID) -> Question:
        question = await repo.get_question(question_id)
        if question is None:
            raise NotFoundError(resource="question", resource_id=str(question_id))
        return question

    @staticmethod
    def _require_question_author(question: Question, actor_id: uuid.UUID, action: str) -> None:
        if question.author_id != actor_id:
            raise ForbiddenError(
                message=f"Only the question author can {action}",
                context={"question_id": str(question.id)},
            )

    @staticmethod
    async def _require_owner_or_admin(
        repo: Repository, actor_id: uuid.UUID, author_id: uuid.UUID, resource: str
    ) -> None:
        if actor_id == author_id:
            return
        actor = await repo.get_user(actor_id)
        if actor is None or not actor.is_admin:
            raise ForbiddenError(message=f"You can only delete your own {resource}")

    @staticmethod
    async def _question_of(repo: Repository, target: Post) -> Optional[Question]:
        if isinstance(target, Question):
            return target
        return await repo.get_question(target.question_id, include_deleted=True)
