"""Create StackIt core tables

Revision ID: 001
Revises: None
Create Date: 2024-06-01 00:00:00.000000+00:00

What:  Users, questions, answers, votes, the reputation ledger and
       notifications.

Constraints the consistency engine relies on:
    - uq_votes_voter_target: one vote per (voter, target). A second
      concurrent first vote fails with IntegrityError and is retried.
    - questions.version / answers.version: optimistic concurrency counters
      (SQLAlchemy version_id_col). No server default; the ORM sets 1 on
      insert and increments on every UPDATE.

Rollback: downgrade() drops every table (destructive).
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _created_at() -> sa.Column:
    return sa.Column(
        "created_at",
        sa.DateTime(timezone=True),
        nullable=False,
        server_default=sa.text("CURRENT_TIMESTAMP"),
    )


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("username", sa.String(50), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column(
            "role", sa.String(20), nullable=False, server_default=sa.text("'user'"),
            comment="guest, user or admin",
        ),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column(
            "reputation", sa.Integer(), nullable=False, server_default=sa.text("0"),
            comment="Signed reputation score, adjusted only by the consistency engine",
        ),
        _created_at(),
        sa.PrimaryKeyConstraint("id", name="pk_users"),
        sa.UniqueConstraint("username", name="uq_users_username"),
        sa.UniqueConstraint("email", name="uq_users_email"),
    )

    op.create_table(
        "questions",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("author_id", sa.Uuid(), nullable=False),
        sa.Column("tags", sa.JSON(), nullable=False),
        sa.Column(
            "status", sa.String(20), nullable=False, server_default=sa.text("'open'"),
            comment="open, closed, duplicate, on-hold",
        ),
        sa.Column(
            "accepted_answer_id", sa.Uuid(), nullable=True,
            comment="The single accepted answer; mirrors answers.is_accepted",
        ),
        sa.Column("is_deleted", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        _created_at(),
        sa.Column(
            "last_activity_at", sa.DateTime(timezone=True), nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_questions"),
        sa.ForeignKeyConstraint(["author_id"], ["users.id"], name="fk_questions_author"),
    )
    op.create_index("idx_questions_author", "questions", ["author_id"])
    op.create_index("idx_questions_last_activity", "questions", ["last_activity_at"])

    op.create_table(
        "answers",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("question_id", sa.Uuid(), nullable=False),
        sa.Column("author_id", sa.Uuid(), nullable=False),
        sa.Column("is_accepted", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("is_deleted", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        _created_at(),
        sa.Column(
            "last_activity_at", sa.DateTime(timezone=True), nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_answers"),
        sa.ForeignKeyConstraint(["question_id"], ["questions.id"], name="fk_answers_question"),
        sa.ForeignKeyConstraint(["author_id"], ["users.id"], name="fk_answers_author"),
    )
    op.create_index("idx_answers_question", "answers", ["question_id"])
    op.create_index("idx_answers_author", "answers", ["author_id"])

    op.create_table(
        "votes",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("voter_id", sa.Uuid(), nullable=False),
        sa.Column("target_type", sa.String(20), nullable=False, comment="question or answer"),
        sa.Column("target_id", sa.Uuid(), nullable=False),
        sa.Column("vote_type", sa.String(10), nullable=False, comment="upvote or downvote"),
        _created_at(),
        sa.PrimaryKeyConstraint("id", name="pk_votes"),
        sa.ForeignKeyConstraint(["voter_id"], ["users.id"], name="fk_votes_voter"),
        sa.UniqueConstraint("voter_id", "target_type", "target_id", name="uq_votes_voter_target"),
        sa.CheckConstraint("vote_type IN ('upvote', 'downvote')", name="ck_votes_vote_type"),
        sa.CheckConstraint("target_type IN ('question', 'answer')", name="ck_votes_target_type"),
    )
    op.create_index("idx_votes_target", "votes", ["target_type", "target_id"])

    op.create_table(
        "reputation_events",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("delta", sa.Integer(), nullable=False),
        sa.Column("reason", sa.String(50), nullable=False),
        sa.Column("target_type", sa.String(20), nullable=True),
        sa.Column("target_id", sa.Uuid(), nullable=True),
        sa.Column("actor_id", sa.Uuid(), nullable=True),
        _created_at(),
        sa.PrimaryKeyConstraint("id", name="pk_reputation_events"),
        sa.ForeignKeyConstraint(
            ["user_id"], ["users.id"], name="fk_reputation_events_user", ondelete="CASCADE"
        ),
    )
    op.create_index(
        "idx_reputation_events_user_time", "reputation_events", ["user_id", "created_at"]
    )

    op.create_table(
        "notifications",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("recipient_id", sa.Uuid(), nullable=False),
        sa.Column("sender_id", sa.Uuid(), nullable=True),
        sa.Column("type", sa.String(30), nullable=False),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("data", sa.JSON(), nullable=True),
        sa.Column("is_read", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        _created_at(),
        sa.PrimaryKeyConstraint("id", name="pk_notifications"),
        sa.ForeignKeyConstraint(
            ["recipient_id"], ["users.id"], name="fk_notifications_recipient", ondelete="CASCADE"
        ),
        sa.ForeignKeyConstraint(
            ["sender_id"], ["users.id"], name="fk_notifications_sender", ondelete="SET NULL"
        ),
    )
    op.create_index(
        "idx_notifications_recipient_time", "notifications", ["recipient_id", "created_at"]
    )


def downgrade() -> None:
    op.drop_index("idx_notifications_recipient_time", table_name="notifications")
    op.drop_table("notifications")
    op.drop_index("idx_reputation_events_user_time", table_name="reputation_events")
    op.drop_table("reputation_events")
    op.drop_index("idx_votes_target", table_name="votes")
    op.drop_table("votes")
    op.drop_index("idx_answers_author", table_name="answers")
    op.drop_index("idx_answers_question", table_name="answers")
    op.drop_table("answers")
    op.drop_index("idx_questions_last_activity", table_name="questions")
    op.drop_index("idx_questions_author", table_name="questions")
    op.drop_table("questions")
    op.drop_table("users")
