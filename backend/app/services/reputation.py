"""
StackIt Backend — Reputation Ledger
====================================

What:  The single primitive allowed to change `users.reputation`.
Why:   Every reputation-affecting event must be traceable to exactly one call
       with a signed delta, and undoing an event must apply exactly the
       negated delta. Funnelling all writes through one method makes both
       properties auditable: each call also appends a `reputation_events` row.
How:   `adjust()` runs inside the caller's transaction (it receives the
       attempt's Repository). If the surrounding unit of work rolls back or
       retries, the increment and its audit row disappear together.

Deltas are always chosen by the caller from the event type (vote transition,
accept, unaccept). The ledger never reads the current score to decide
anything.
"""

import logging
import uuid
from typing import Optional

from app.exceptions import NotFoundError
from app.models import ReputationEvent
from app.repositories import Repository

logger = logging.getLogger(__name__)


class ReputationLedger:
    """Stateless; one shared instance serves every request."""

    async def adjust(
        self,
        repo: Repository,
        user_id: uuid.UUID,
        delta: int,
        reason: str,
        target_type: Optional[str] = None,
        target_id: Optional[uuid.UUID] = None,
        actor_id: Optional[uuid.UUID] = None,
    ) -> int:
        """
        Apply `delta` to the user's reputation and record the event.

        Returns:
            The delta applied (0 when skipped).

        Raises:
            NotFoundError: The user does not exist (the transaction rolls back).
        """
        if delta == 0:
            return 0

        if not await repo.add_reputation(user_id, delta):
            raise NotFoundError(resource="user", resource_id=str(user_id))

        await repo.record_reputation_event(
            ReputationEvent(
                user_id=user_id,
                delta=delta,
                reason=reason,
                target_type=target_type,
                target_id=target_id,
                actor_id=actor_id,
            )
        )
        logger.info("Reputation %+d for user %s (%s)", delta, user_id, reason)
        return delta


reputation_ledger = ReputationLedger()
