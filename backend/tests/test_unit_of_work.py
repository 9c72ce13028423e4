"""
StackIt Backend — Unit of Work Tests
=====================================

What:  Transaction scope and conflict retry around engine operations.
How:   `work` callables that succeed, fail with business errors, or raise the
       SQLAlchemy errors a lost race produces. Waits are zero in tests.
"""

import warnings
from uuid import uuid4

import pytest
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm.exc import StaleDataError

from app.exceptions import ConflictError, DatabaseError, NotFoundError, WriteConflictError
from app.models import User, Vote
from app.repositories import SqlAlchemyRepository
from app.services.unit_of_work import UnitOfWork


async def _usernames(session_factory):
    async with session_factory() as session:
        result = await session.execute(select(User.username))
        return set(result.scalars().all())


class TestTransactionScope:
    @pytest.mark.asyncio
    async def test_work_is_committed(self, uow, session_factory):
        async def work(repo):
            repo.session.add(User(username="erin", email="erin@stackit.dev"))
            return "done"

        assert await uow.run("create_user", work) == "done"
        assert "erin" in await _usernames(session_factory)

    @pytest.mark.asyncio
    async def test_work_receives_sqlalchemy_repository(self, uow):
        async def work(repo):
            return repo

        assert isinstance(await uow.run("inspect", work), SqlAlchemyRepository)

    @pytest.mark.asyncio
    async def test_business_error_rolls_back_without_retry(self, uow, session_factory):
        calls = 0

        async def work(repo):
            nonlocal calls
            calls += 1
            repo.session.add(User(username="frank", email="frank@stackit.dev"))
            await repo.flush()
            raise NotFoundError(resource="answer")

        with pytest.raises(NotFoundError):
            await uow.run("failing", work)

        assert calls == 1
        assert "frank" not in await _usernames(session_factory)

    @pytest.mark.asyncio
    async def test_guard_conflict_is_not_retried(self, uow):
        calls = 0

        async def work(repo):
            nonlocal calls
            calls += 1
            raise ConflictError("answer is accepted")

        with pytest.raises(ConflictError) as exc_info:
            await uow.run("delete_answer", work)

        assert calls == 1
        assert not isinstance(exc_info.value, WriteConflictError)

    @pytest.mark.asyncio
    async def test_unexpected_database_failure_is_wrapped(self, uow):
        calls = 0

        async def work(repo):
            nonlocal calls
            calls += 1
            raise OperationalError("SELECT", {}, Exception("disk I/O error"))

        with pytest.raises(DatabaseError) as exc_info:
            await uow.run("cast_vote", work)

        assert calls == 1
        assert exc_info.value.context["operation"] == "cast_vote"
        assert "disk" not in exc_info.value.message


class TestConflictRetry:
    @pytest.mark.asyncio
    async def test_backoff_uses_current_tenacity_arguments(self, session_factory):
        uow = UnitOfWork(session_factory, max_attempts=2, min_wait=0, max_wait=0)
        calls = 0

        async def work(repo):
            nonlocal calls
            calls += 1
            if calls == 1:
                raise StaleDataError("lost race")
            return "ok"

        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter("always")
            assert await uow.run("cast_vote", work) == "ok"

        assert not [w for w in caught if "deprecated" in str(w.message) and "initial" in str(w.message)]

    @pytest.mark.asyncio
    async def test_stale_version_is_retried(self, uow):
        calls = 0

        async def work(repo):
            nonlocal calls
            calls += 1
            if calls == 1:
                raise StaleDataError("UPDATE statement on table 'answers' expected to update 1 row(s); 0 were matched.")
            return "second attempt"

        assert await uow.run("cast_vote", work) == "second attempt"
        assert calls == 2

    @pytest.mark.asyncio
    async def test_integrity_error_is_retried(self, uow):
        calls = 0

        async def work(repo):
            nonlocal calls
            calls += 1
            if calls < 3:
                raise IntegrityError("INSERT INTO votes", {}, Exception("UNIQUE constraint failed"))
            return calls

        assert await uow.run("cast_vote", work) == 3

    @pytest.mark.asyncio
    async def test_exhausted_retries_surface_write_conflict(self, session_factory):
        uow = UnitOfWork(session_factory, max_attempts=2, min_wait=0, max_wait=0)
        calls = 0

        async def work(repo):
            nonlocal calls
            calls += 1
            raise StaleDataError("version mismatch")

        with pytest.raises(WriteConflictError) as exc_info:
            await uow.run("accept_answer", work)

        assert calls == 2
        assert exc_info.value.operation == "accept_answer"
        assert exc_info.value.context["cause"] == "stale_version"
        assert isinstance(exc_info.value, ConflictError)

    @pytest.mark.asyncio
    async def test_duplicate_vote_row_maps_to_write_conflict(self, uow, world, session_factory):
        async with session_factory() as session:
            async with session.begin():
                session.add(Vote(voter_id=world.carol, target_type="answer", target_id=world.a_bob, vote_type="upvote"))

        async def work(repo):
            repo.session.add(
                Vote(voter_id=world.carol, target_type="answer", target_id=world.a_bob, vote_type="downvote")
            )
            await repo.flush()

        with pytest.raises(WriteConflictError) as exc_info:
            await uow.run("cast_vote", work)

        assert exc_info.value.context["cause"] == "duplicate_row"

    @pytest.mark.asyncio
    async def test_retry_starts_from_fresh_session(self, uow):
        sessions = []

        async def work(repo):
            sessions.append(repo.session)
            if len(sessions) == 1:
                raise StaleDataError("lost race")
            return uuid4()

        await uow.run("cast_vote", work)
        assert len(sessions) == 2
        assert sessions[0] is not sessions[1]
