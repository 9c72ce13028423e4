"""
StackIt Backend — Question SQLAlchemy Model
============================================

What:  ORM model for the `questions` table.
Why:   Questions are vote targets and own the accepted-answer pointer.

Table Design Rationale:
    - accepted_answer_id: plain UUID column without a database foreign key.
      answers.question_id already points at questions; a second FK in the
      other direction would make the two tables mutually dependent at insert
      time. The engine keeps the pointer and `answers.is_accepted` in step.
    - version: optimistic concurrency counter (SQLAlchemy `version_id_col`).
      Every engine write to a question bumps it, so two requests that read
      the same question and both try to change it cannot both commit.
    - last_activity_at: touched by votes and acceptance; the write that
      bumps `version` for vote operations.
    - is_deleted / deleted_at: soft delete; deleted questions are invisible
      to the engine.
    - tags: ordered list of tag names, stored inline. Tag management and
      tag pages belong to the excluded authoring layer.
"""

import uuid
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    JSON,
    Integer,
    String,
    Text,
    Uuid,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Question(Base):
    """
    A question posted by a user.

    Lifecycle:
        1. Created open, no accepted answer
        2. Votes and acceptance change throughout its life (engine only)
        3. Soft-deleted by its author or an admin once no live answers remain
    """

    __tablename__ = "questions"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    author_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id"), nullable=False
    )

    tags: Mapped[List[str]] = mapped_column(JSON, nullable=False, default=list)

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="open",
        server_default=text("'open'"),
        comment="open, closed, duplicate, on-hold",
    )

    accepted_answer_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid,
        nullable=True,
        default=None,
        comment="The single accepted answer; mirrors answers.is_accepted",
    )

    is_deleted: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=text("false")
    )
    deleted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
    )
    last_activity_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
    )

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        Index("idx_questions_author", "author_id"),
        Index("idx_questions_last_activity", "last_activity_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<Question(id={self.id}, status='{self.status}', "
            f"accepted_answer_id={self.accepted_answer_id})>"
        )
