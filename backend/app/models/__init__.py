# Models package init
"""
StackIt Backend — ORM Models Package

Importing this package registers every table with `Base.metadata`, which
Alembic autogenerate and the test suite's `create_all` both rely on.
"""

from app.models.user import User
from app.models.question import Question
from app.models.answer import Answer
from app.models.vote import Vote
from app.models.reputation import ReputationEvent
from app.models.notification import Notification

__all__ = [
    "User",
    "Question",
    "Answer",
    "Vote",
    "ReputationEvent",
    "Notification",
]
