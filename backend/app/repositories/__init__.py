# Repositories package init
"""
StackIt Backend — Persistence Adapters

    - base.py:  Repository interface consumed by the consistency engine
    - sql.py:   SQLAlchemy (relational) adapter
"""

from app.repositories.base import Repository
from app.repositories.sql import SqlAlchemyRepository

__all__ = ["Repository", "SqlAlchemyRepository"]
