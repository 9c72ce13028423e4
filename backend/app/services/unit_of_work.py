"""
StackIt Backend — Unit of Work with Conflict Retry
===================================================

What:  Runs one engine operation's full read-decide-write sequence as a single
       transaction, and re-runs it when it loses a race.
Why:   Two simultaneous votes by the same user, or two simultaneous accepts on
       one question, must not both commit against the same starting state.
How:   Each attempt gets a brand-new AsyncSession and `session.begin()`:

           attempt ──▶ read ──▶ decide ──▶ write ──▶ COMMIT
              ▲                                        │
              │   StaleDataError (version mismatch)    │
              └── IntegrityError (duplicate vote row) ─┘
                  → WriteConflictError, tenacity backoff

       Lost races are detected by the database, not by locks held in Python:
         - questions/answers carry a `version_id_col`; an UPDATE that finds
           a different version raises StaleDataError at flush time
         - votes carry a unique (voter, target) constraint; a second
           concurrent first-vote raises IntegrityError

       Any other SQLAlchemy failure becomes DatabaseError (500, generic
       message). Business errors (NotFoundError, ForbiddenError, ...) roll
       the transaction back and propagate immediately without retry.

Retry policy (tenacity, mirrors the outbound-call retry used elsewhere):
    stop_after_attempt(CONFLICT_RETRY_ATTEMPTS), exponential backoff with
    jitter between CONFLICT_RETRY_MIN_WAIT and CONFLICT_RETRY_MAX_WAIT,
    each retry logged at WARNING. After the last attempt the
    WriteConflictError reaches the caller (HTTP 409). Engine operations are
    replay-safe, so the client may retry the request as-is.
"""

import logging
from typing import Awaitable, Callable, Optional, TypeVar

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm.exc import StaleDataError
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)

from app.config import settings
from app.exceptions import DatabaseError, WriteConflictError
from app.repositories import Repository, SqlAlchemyRepository

logger = logging.getLogger(__name__)

T = TypeVar("T")

Work = Callable[[Repository], Awaitable[T]]


class UnitOfWork:
    """
    Transaction scope factory for the consistency engine.

    Args:
        session_factory: Produces a fresh AsyncSession per attempt.
        max_attempts / min_wait / max_wait: Override the configured retry
            policy (tests pass zero waits).
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        max_attempts: Optional[int] = None,
        min_wait: Optional[float] = None,
        max_wait: Optional[float] = None,
    ):
        self.session_factory = session_factory
        self.max_attempts = max_attempts or settings.conflict_retry_attempts
        self.min_wait = settings.conflict_retry_min_wait if min_wait is None else min_wait
        self.max_wait = settings.conflict_retry_max_wait if max_wait is None else max_wait

    async def run(self, operation: str, work: Work) -> T:
        """
        Execute `work` atomically, retrying on write conflicts.

        `work` receives a Repository bound to the attempt's transaction. It
        must not keep state across calls: on retry it runs again from the
        beginning against freshly loaded rows.
        """
        retrying = AsyncRetrying(
            retry=retry_if_exception_type(WriteConflictError),
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential_jitter(
                multiplier=self.min_wait,
                max=self.max_wait,
                jitter=self.min_wait,
            ),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                result = await self._run_once(operation, work)
        return result

    async def _run_once(self, operation: str, work: Work) -> T:
        async with self.session_factory() as session:
            try:
                async with session.begin():
                    return await work(SqlAlchemyRepository(session))
            except StaleDataError as e:
                logger.warning("%s lost a race (stale version): %s", operation, e)
                raise WriteConflictError(
                    operation=operation, context={"cause": "stale_version"}
                ) from e
            except IntegrityError as e:
                logger.warning("%s lost a race (duplicate row): %s", operation, e.orig)
                raise WriteConflictError(
                    operation=operation, context={"cause": "duplicate_row"}
                ) from e
            except SQLAlchemyError as e:
                logger.error("%s failed in the database: %s", operation, e, exc_info=True)
                raise DatabaseError(context={"operation": operation}) from e
