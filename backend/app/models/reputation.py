"""
StackIt Backend — Reputation Event SQLAlchemy Model
====================================================

What:  Append-only audit trail of every reputation adjustment.
Why:   Each reputation-affecting event must be traceable to exactly one
       signed delta. Summing a user's events reproduces `users.reputation`
       (for users whose reputation was never moderated outside the engine).
Who:   Written by ReputationLedger.adjust(), in the same transaction as the
       reputation UPDATE; read by GET /api/users/{id}/reputation.
"""

import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, Uuid, text
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base


class ReputationEvent(Base):
    __tablename__ = "reputation_events"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    delta: Mapped[int] = mapped_column(Integer, nullable=False)

    # upvote, downvote, vote_changed, vote_retracted, answer_accepted,
    # answer_unaccepted, moderation
    reason: Mapped[str] = mapped_column(String(50), nullable=False)

    target_type: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    target_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)
    actor_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        server_default=text("CURRENT_TIMESTAMP"),
    )

    __table_args__ = (
        Index("idx_reputation_events_user_time", "user_id", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<ReputationEvent(user_id={self.user_id}, delta={self.delta:+d}, reason='{self.reason}')>"
