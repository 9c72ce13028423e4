"""
StackIt Backend — Vote SQLAlchemy Model
========================================

What:  One row per (voter, target) holding the voter's current vote.
Why:   The upvote and downvote sets of a target are exactly the rows of that
       target split by `vote_type`. A unique constraint on
       (voter_id, target_type, target_id) makes "at most one vote per user per
       target" a database guarantee: two concurrent first votes by the same
       user cannot both insert.

target_type + target_id form a polymorphic reference (question or answer),
so there is no foreign key on target_id.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, String, UniqueConstraint, Uuid, text
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base


class Vote(Base):
    __tablename__ = "votes"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    voter_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id"), nullable=False
    )
    target_type: Mapped[str] = mapped_column(String(20), nullable=False, comment="question or answer")
    target_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    vote_type: Mapped[str] = mapped_column(String(10), nullable=False, comment="upvote or downvote")

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        server_default=text("CURRENT_TIMESTAMP"),
    )

    __table_args__ = (
        UniqueConstraint("voter_id", "target_type", "target_id", name="uq_votes_voter_target"),
        Index("idx_votes_target", "target_type", "target_id"),
        CheckConstraint("vote_type IN ('upvote', 'downvote')", name="ck_votes_vote_type"),
        CheckConstraint("target_type IN ('question', 'answer')", name="ck_votes_target_type"),
    )

    def __repr__(self) -> str:
        return f"<Vote({self.vote_type} by {self.voter_id} on {self.target_type}:{self.target_id})>"
