"""
StackIt Backend — Consistency Engine Tests
===========================================

What:  Every engine operation against a real (in-memory SQLite) database.
How:   The `world` fixture seeds users, two questions and three answers; the
       recording sink captures notifications emitted after commit.

What we test:
    ✅ Vote transitions and their net reputation deltas
    ✅ Self vote, guest voter, deleted/missing targets
    ✅ Accept / re-accept / switch accepted answer / unaccept
    ✅ Guarded deletes and their ordering with unaccept
    ✅ Manual reputation adjustments and the ledger audit trail
    ✅ The reference scenario: B goes 10 → -2 → 13 → -2
"""

from unittest.mock import MagicMock
from uuid import uuid4

import pytest
from sqlalchemy import func, select

from app.domain.voting import TargetType, VoteType
from app.exceptions import (
    ConflictError,
    ForbiddenError,
    NothingAcceptedError,
    NotFoundError,
    SelfActionError,
    SelfVoteError,
    ValidationError,
)
from app.models import Answer, Question, ReputationEvent, User, Vote
from app.services.consistency_engine import ConsistencyEngine
from app.services.notification_sink import NotificationSink

ANSWER = TargetType.ANSWER
QUESTION = TargetType.QUESTION
UP = VoteType.UPVOTE
DOWN = VoteType.DOWNVOTE


async def _reputation(fetch, user_id) -> int:
    return (await fetch(User, user_id)).reputation


async def _vote_rows(session_factory, target_id) -> int:
    async with session_factory() as session:
        result = await session.execute(select(func.count(Vote.id)).where(Vote.target_id == target_id))
        return result.scalar()


class TestCastVote:
    @pytest.mark.asyncio
    async def test_upvote_credits_author(self, consistency_engine, world, fetch):
        result = await consistency_engine.cast_vote(world.carol, ANSWER, world.a_bob, UP)

        assert result.vote_count == 1
        assert result.vote_type is UP
        assert result.reputation_delta == 10
        assert await _reputation(fetch, world.bob) == 10
        assert await _reputation(fetch, world.carol) == 0

    @pytest.mark.asyncio
    async def test_downvote_on_question(self, consistency_engine, world, fetch):
        result = await consistency_engine.cast_vote(world.carol, QUESTION, world.q1, DOWN)

        assert result.vote_count == -1
        assert await _reputation(fetch, world.alice) == -2

    @pytest.mark.asyncio
    async def test_switch_applies_net_delta_once(self, consistency_engine, world, fetch, session_factory):
        await consistency_engine.cast_vote(world.carol, ANSWER, world.a_bob, UP)
        result = await consistency_engine.cast_vote(world.carol, ANSWER, world.a_bob, DOWN)

        assert result.reputation_delta == -12
        assert result.vote_count == -1
        assert await _reputation(fetch, world.bob) == -2
        assert await _vote_rows(session_factory, world.a_bob) == 1

    @pytest.mark.asyncio
    async def test_same_vote_twice_is_idempotent(self, consistency_engine, world, fetch, recording_sink):
        await consistency_engine.cast_vote(world.carol, ANSWER, world.a_bob, UP)
        result = await consistency_engine.cast_vote(world.carol, ANSWER, world.a_bob, UP)

        assert result.reputation_delta == 0
        assert result.vote_count == 1
        assert await _reputation(fetch, world.bob) == 10
        assert len(recording_sink.events) == 1

    @pytest.mark.asyncio
    async def test_vote_sequence_counts_last_vote_only(self, consistency_engine, world, fetch):
        for vote_type in (UP, DOWN, UP):
            result = await consistency_engine.cast_vote(world.carol, ANSWER, world.a_bob, vote_type)

        assert result.vote_count == 1
        assert await _reputation(fetch, world.bob) == 10

    @pytest.mark.asyncio
    async def test_votes_from_different_users_accumulate(self, consistency_engine, world, fetch):
        await consistency_engine.cast_vote(world.carol, ANSWER, world.a_bob, UP)
        await consistency_engine.cast_vote(world.alice, ANSWER, world.a_bob, UP)
        result = await consistency_engine.cast_vote(world.dave, ANSWER, world.a_bob, DOWN)

        assert result.vote_count == 1
        assert await _reputation(fetch, world.bob) == 18

    @pytest.mark.asyncio
    async def test_self_vote_rejected_without_state_change(
        self, consistency_engine, world, fetch, session_factory, recording_sink
    ):
        with pytest.raises(SelfVoteError) as exc_info:
            await consistency_engine.cast_vote(world.bob, ANSWER, world.a_bob, UP)

        assert isinstance(exc_info.value, SelfActionError)
        assert await _reputation(fetch, world.bob) == 0
        assert await _vote_rows(session_factory, world.a_bob) == 0
        assert recording_sink.events == []

    @pytest.mark.asyncio
    async def test_guest_cannot_vote(self, consistency_engine, world):
        with pytest.raises(ForbiddenError):
            await consistency_engine.cast_vote(world.guest, ANSWER, world.a_bob, UP)

    @pytest.mark.asyncio
    async def test_inactive_user_cannot_vote(self, consistency_engine, world):
        with pytest.raises(ForbiddenError):
            await consistency_engine.cast_vote(world.ghost, ANSWER, world.a_bob, UP)

    @pytest.mark.asyncio
    async def test_unknown_voter(self, consistency_engine, world):
        with pytest.raises(NotFoundError):
            await consistency_engine.cast_vote(uuid4(), ANSWER, world.a_bob, UP)

    @pytest.mark.asyncio
    async def test_missing_target(self, consistency_engine, world):
        with pytest.raises(NotFoundError, match="answer"):
            await consistency_engine.cast_vote(world.carol, ANSWER, uuid4(), UP)

    @pytest.mark.asyncio
    async def test_deleted_target(self, consistency_engine, world):
        await consistency_engine.delete_answer(world.dave, world.a_dave)

        with pytest.raises(NotFoundError):
            await consistency_engine.cast_vote(world.carol, ANSWER, world.a_dave, UP)

    @pytest.mark.asyncio
    async def test_vote_notification_sent_after_commit(self, consistency_engine, world, recording_sink):
        await consistency_engine.cast_vote(world.carol, ANSWER, world.a_bob, UP)

        assert len(recording_sink.events) == 1
        event = recording_sink.events[0]
        assert event.type == "vote"
        assert event.recipient_id == world.bob
        assert event.sender_id == world.carol
        assert event.payload["sender_username"] == "carol"
        assert event.payload["question_title"] == "How do I reverse a list?"
        assert event.payload["target_type"] == "answer"
        assert event.payload["vote_type"] == "upvote"

    @pytest.mark.asyncio
    async def test_vote_bumps_target_version(self, consistency_engine, world, fetch):
        before = (await fetch(Answer, world.a_bob)).version
        await consistency_engine.cast_vote(world.carol, ANSWER, world.a_bob, UP)
        assert (await fetch(Answer, world.a_bob)).version == before + 1

    @pytest.mark.asyncio
    async def test_sink_failure_does_not_fail_vote(self, uow, world, fetch):
        sink = MagicMock(spec=NotificationSink)
        sink.enqueue.side_effect = RuntimeError("queue is gone")
        engine = ConsistencyEngine(uow, sink)

        result = await engine.cast_vote(world.carol, ANSWER, world.a_bob, UP)

        assert result.reputation_delta == 10
        assert await _reputation(fetch, world.bob) == 10
        sink.enqueue.assert_called_once()


class TestRetractVote:
    @pytest.mark.asyncio
    async def test_retract_upvote_reverses_reputation(self, consistency_engine, world, fetch, session_factory):
        await consistency_engine.cast_vote(world.carol, ANSWER, world.a_bob, UP)
        result = await consistency_engine.retract_vote(world.carol, ANSWER, world.a_bob)

        assert result.vote_type is None
        assert result.vote_count == 0
        assert result.reputation_delta == -10
        assert await _reputation(fetch, world.bob) == 0
        assert await _vote_rows(session_factory, world.a_bob) == 0

    @pytest.mark.asyncio
    async def test_retract_downvote_refunds(self, consistency_engine, world, fetch):
        await consistency_engine.cast_vote(world.carol, QUESTION, world.q1, DOWN)
        await consistency_engine.retract_vote(world.carol, QUESTION, world.q1)

        assert await _reputation(fetch, world.alice) == 0

    @pytest.mark.asyncio
    async def test_retract_without_vote_is_noop(self, consistency_engine, world, fetch, recording_sink):
        result = await consistency_engine.retract_vote(world.carol, ANSWER, world.a_bob)

        assert result.reputation_delta == 0
        assert await _reputation(fetch, world.bob) == 0
        assert recording_sink.events == []

    @pytest.mark.asyncio
    async def test_retract_on_own_post(self, consistency_engine, world):
        with pytest.raises(SelfVoteError):
            await consistency_engine.retract_vote(world.bob, ANSWER, world.a_bob)


class TestAcceptAnswer:
    @pytest.mark.asyncio
    async def test_accept_grants_bonus(self, consistency_engine, world, fetch, recording_sink):
        result = await consistency_engine.accept_answer(world.alice, world.q1, world.a_bob)

        assert result.accepted is True
        assert result.answer_id == world.a_bob
        assert result.previous_answer_id is None
        assert (await fetch(Answer, world.a_bob)).is_accepted is True
        assert (await fetch(Question, world.q1)).accepted_answer_id == world.a_bob
        assert await _reputation(fetch, world.bob) == 15

        assert [e.type for e in recording_sink.events] == ["acceptance"]
        assert recording_sink.events[0].recipient_id == world.bob

    @pytest.mark.asyncio
    async def test_accepting_another_answer_moves_the_bonus(self, consistency_engine, world, fetch):
        await consistency_engine.accept_answer(world.alice, world.q1, world.a_bob)
        result = await consistency_engine.accept_answer(world.alice, world.q1, world.a_dave)

        assert result.previous_answer_id == world.a_bob
        assert (await fetch(Answer, world.a_bob)).is_accepted is False
        assert (await fetch(Answer, world.a_dave)).is_accepted is True
        assert (await fetch(Question, world.q1)).accepted_answer_id == world.a_dave
        assert await _reputation(fetch, world.bob) == 0
        assert await _reputation(fetch, world.dave) == 15

    @pytest.mark.asyncio
    async def test_reaccepting_same_answer_is_noop(self, consistency_engine, world, fetch, recording_sink):
        await consistency_engine.accept_answer(world.alice, world.q1, world.a_bob)
        result = await consistency_engine.accept_answer(world.alice, world.q1, world.a_bob)

        assert result.accepted is True
        assert await _reputation(fetch, world.bob) == 15
        assert len(recording_sink.events) == 1

    @pytest.mark.asyncio
    async def test_only_question_author_may_accept(self, consistency_engine, world, fetch):
        with pytest.raises(ForbiddenError):
            await consistency_engine.accept_answer(world.carol, world.q1, world.a_bob)
        assert (await fetch(Answer, world.a_bob)).is_accepted is False

    @pytest.mark.asyncio
    async def test_answer_from_another_question(self, consistency_engine, world):
        with pytest.raises(NotFoundError):
            await consistency_engine.accept_answer(world.alice, world.q1, world.a_q2)

    @pytest.mark.asyncio
    async def test_missing_question(self, consistency_engine, world):
        with pytest.raises(NotFoundError, match="question"):
            await consistency_engine.accept_answer(world.alice, uuid4(), world.a_bob)

    @pytest.mark.asyncio
    async def test_deleted_answer_cannot_be_accepted(self, consistency_engine, world):
        await consistency_engine.delete_answer(world.dave, world.a_dave)
        with pytest.raises(NotFoundError):
            await consistency_engine.accept_answer(world.alice, world.q1, world.a_dave)


class TestUnacceptAnswer:
    @pytest.mark.asyncio
    async def test_unaccept_reverses_bonus(self, consistency_engine, world, fetch):
        await consistency_engine.accept_answer(world.alice, world.q1, world.a_bob)
        result = await consistency_engine.unaccept_answer(world.alice, world.q1)

        assert result.reversed is True
        assert result.answer_id == world.a_bob
        assert (await fetch(Answer, world.a_bob)).is_accepted is False
        assert (await fetch(Question, world.q1)).accepted_answer_id is None
        assert await _reputation(fetch, world.bob) == 0

    @pytest.mark.asyncio
    async def test_nothing_accepted(self, consistency_engine, world, fetch):
        version = (await fetch(Question, world.q1)).version

        with pytest.raises(NothingAcceptedError):
            await consistency_engine.unaccept_answer(world.alice, world.q1)

        assert (await fetch(Question, world.q1)).version == version

    @pytest.mark.asyncio
    async def test_only_question_author_may_unaccept(self, consistency_engine, world, fetch):
        await consistency_engine.accept_answer(world.alice, world.q1, world.a_bob)
        with pytest.raises(ForbiddenError):
            await consistency_engine.unaccept_answer(world.bob, world.q1)
        assert await _reputation(fetch, world.bob) == 15


class TestGuardedDeletes:
    @pytest.mark.asyncio
    async def test_accepted_answer_cannot_be_deleted_until_unaccepted(self, consistency_engine, world, fetch):
        await consistency_engine.accept_answer(world.alice, world.q1, world.a_bob)

        with pytest.raises(ConflictError):
            await consistency_engine.delete_answer(world.bob, world.a_bob)
        assert (await fetch(Answer, world.a_bob)).is_deleted is False

        await consistency_engine.unaccept_answer(world.alice, world.q1)
        result = await consistency_engine.delete_answer(world.bob, world.a_bob)

        assert result.deleted is True
        answer = await fetch(Answer, world.a_bob)
        assert answer.is_deleted is True
        assert answer.deleted_at is not None

    @pytest.mark.asyncio
    async def test_other_users_cannot_delete_answer(self, consistency_engine, world):
        with pytest.raises(ForbiddenError):
            await consistency_engine.delete_answer(world.carol, world.a_bob)

    @pytest.mark.asyncio
    async def test_admin_can_delete_any_answer(self, consistency_engine, world, fetch):
        await consistency_engine.delete_answer(world.admin, world.a_bob)
        assert (await fetch(Answer, world.a_bob)).is_deleted is True

    @pytest.mark.asyncio
    async def test_deleting_twice_reports_not_found(self, consistency_engine, world):
        await consistency_engine.delete_answer(world.bob, world.a_bob)
        with pytest.raises(NotFoundError):
            await consistency_engine.delete_answer(world.bob, world.a_bob)

    @pytest.mark.asyncio
    async def test_question_with_live_answers_cannot_be_deleted(self, consistency_engine, world, fetch):
        with pytest.raises(ConflictError):
            await consistency_engine.delete_question(world.alice, world.q1)

        await consistency_engine.delete_answer(world.bob, world.a_bob)
        await consistency_engine.delete_answer(world.dave, world.a_dave)
        result = await consistency_engine.delete_question(world.alice, world.q1)

        assert result.deleted is True
        assert (await fetch(Question, world.q1)).is_deleted is True

    @pytest.mark.asyncio
    async def test_other_users_cannot_delete_question(self, consistency_engine, world):
        with pytest.raises(ForbiddenError):
            await consistency_engine.delete_question(world.bob, world.q1)


class TestReputationAdjustments:
    @pytest.mark.asyncio
    async def test_admin_adjustment(self, consistency_engine, world, fetch):
        reputation = await consistency_engine.adjust_reputation(
            world.bob, -50, reason="spam", actor_id=world.admin
        )

        assert reputation == -50
        assert await _reputation(fetch, world.bob) == -50

    @pytest.mark.asyncio
    async def test_internal_adjustment_without_actor(self, consistency_engine, world):
        assert await consistency_engine.adjust_reputation(world.bob, 5) == 5

    @pytest.mark.asyncio
    async def test_non_admin_cannot_adjust(self, consistency_engine, world, fetch):
        with pytest.raises(ForbiddenError):
            await consistency_engine.adjust_reputation(world.bob, 100, actor_id=world.bob)
        assert await _reputation(fetch, world.bob) == 0

    @pytest.mark.asyncio
    async def test_zero_delta_rejected(self, consistency_engine, world):
        with pytest.raises(ValidationError):
            await consistency_engine.adjust_reputation(world.bob, 0)

    @pytest.mark.asyncio
    async def test_unknown_user(self, consistency_engine, world):
        with pytest.raises(NotFoundError):
            await consistency_engine.adjust_reputation(uuid4(), 10)

    @pytest.mark.asyncio
    async def test_every_change_is_recorded_in_the_ledger(self, consistency_engine, world, fetch):
        await consistency_engine.cast_vote(world.carol, ANSWER, world.a_bob, UP)
        await consistency_engine.cast_vote(world.carol, ANSWER, world.a_bob, DOWN)
        await consistency_engine.accept_answer(world.alice, world.q1, world.a_bob)

        user, events = await consistency_engine.get_reputation(world.bob)

        assert user.reputation == 13
        assert sorted(e.delta for e in events) == [-12, 10, 15]
        assert sum(e.delta for e in events) == user.reputation
        assert {e.reason for e in events} == {"upvote", "vote_changed", "answer_accepted"}
        assert all(isinstance(e, ReputationEvent) for e in events)


class TestReferenceScenario:
    @pytest.mark.asyncio
    async def test_vote_switch_accept_unaccept(self, consistency_engine, world, fetch):
        """
        alice (A) asks q1, bob (B) answers a_bob, carol (C) votes.

        C upvotes → B=10; C switches to downvote → B=-2 (one -12);
        A accepts → B=13; A unaccepts → B=-2.
        """
        await consistency_engine.cast_vote(world.carol, ANSWER, world.a_bob, UP)
        assert await _reputation(fetch, world.bob) == 10

        await consistency_engine.cast_vote(world.carol, ANSWER, world.a_bob, DOWN)
        assert await _reputation(fetch, world.bob) == -2

        await consistency_engine.accept_answer(world.alice, world.q1, world.a_bob)
        assert await _reputation(fetch, world.bob) == 13

        await consistency_engine.unaccept_answer(world.alice, world.q1)
        assert await _reputation(fetch, world.bob) == -2

        assert await _reputation(fetch, world.alice) == 0
        assert await _reputation(fetch, world.carol) == 0
