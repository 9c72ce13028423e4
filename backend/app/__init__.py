"""
StackIt Backend — Application Package Initializer
==================================================

What: Marks the `app` directory as a Python package.
Who:  Imported by uvicorn (`app.main:app`), Alembic, and pytest.

Architecture Note:
    The backend keeps the Q&A consistency rules away from HTTP:

    ┌─────────────────────────────────────┐
    │           Routes (API Layer)        │  ← thin: parse request, call engine
    ├─────────────────────────────────────┤
    │   Services (Consistency Engine)     │  ← votes, acceptance, reputation
    ├─────────────────────────────────────┤
    │   Domain rules (pure functions)     │  ← delta table, vote tally
    ├─────────────────────────────────────┤
    │   Repositories & Models (Data)      │  ← SQLAlchemy ORM + Pydantic
    ├─────────────────────────────────────┤
    │   Database (Unit of Work)           │  ← async sessions, retry on conflict
    └─────────────────────────────────────┘

    Route handlers never touch `users.reputation`, `answers.is_accepted` or
    vote rows directly; every such write goes through the engine so the
    invariants hold no matter which endpoint triggered the change.
"""

__version__ = "1.0.0"
