"""
StackIt Backend — User SQLAlchemy Model
========================================

What:  ORM model for the `users` table.
Why:   The engine needs identity, role, active flag and the reputation counter.
Who:   Read by the consistency engine; `reputation` is written ONLY by
       `app.services.reputation.ReputationLedger`.

Table Design Rationale:
    - reputation: signed integer, may go negative (a downvoted newcomer)
    - role: 'guest' | 'user' | 'admin'; guests may read but not vote
    - is_active: deactivated accounts keep their content but cannot act
    - password hashes, avatars and bios belong to the excluded auth/profile
      layer and are not modelled here
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import Boolean, DateTime, Integer, String, Uuid, text
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base


class User(Base):
    """A registered member of the site."""

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    username: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)

    role: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="user",
        server_default=text("'user'"),
        comment="guest, user or admin",
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
        server_default=text("true"),
    )

    # Mutated only through ReputationLedger.adjust() with an atomic
    # `reputation = reputation + :delta` UPDATE; never assigned directly.
    reputation: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        server_default=text("0"),
        comment="Signed reputation score, adjusted only by the consistency engine",
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        server_default=text("CURRENT_TIMESTAMP"),
    )

    @property
    def can_vote(self) -> bool:
        return self.is_active and self.role in ("user", "admin")

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    def __repr__(self) -> str:
        return f"<User(id={self.id}, username='{self.username}', reputation={self.reputation})>"
