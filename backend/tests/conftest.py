"""
StackIt Backend — Test Configuration (conftest.py)
===================================================

What:  Shared pytest fixtures for the entire test suite.
How:   Every test gets a fresh in-memory SQLite database (aiosqlite,
       StaticPool so all sessions share one connection) with the full
       schema created from `Base.metadata`.

Fixture Hierarchy (all function-scoped):
    db_engine ─▶ session_factory ─┬─▶ uow ─▶ consistency_engine
                                  ├─▶ world      (seeded users/questions/answers)
                                  ├─▶ fetch      (reload a row in a new session)
                                  └─▶ test_client (FastAPI app, overridden deps)
    recording_sink: NotificationSink that keeps events in a list
"""

import os

# Must be set before anything imports app.config
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["RATE_LIMIT_REQUESTS"] = "10000"
os.environ["CONFLICT_RETRY_MIN_WAIT"] = "0"
os.environ["CONFLICT_RETRY_MAX_WAIT"] = "0"

from types import SimpleNamespace
from typing import Any, Dict, List, Optional
from uuid import UUID

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

import app.models  # noqa: F401
from app.database import Base, build_session_factory, get_db_session
from app.models import Answer, Question, User
from app.services.consistency_engine import ConsistencyEngine
from app.services.notification_sink import NotificationEvent, NotificationSink
from app.services.unit_of_work import UnitOfWork


class RecordingSink(NotificationSink):
    """Keeps every enqueued event so tests can assert on post-commit emission."""

    def __init__(self):
        self.events: List[NotificationEvent] = []

    def enqueue(
        self,
        type: str,
        recipient_id: UUID,
        sender_id: Optional[UUID],
        payload: Dict[str, Any],
    ) -> None:
        self.events.append(NotificationEvent(type, recipient_id, sender_id, dict(payload)))


# ══════════════════════════════════════════════════════════════════════════
# Database
# ══════════════════════════════════════════════════════════════════════════

@pytest_asyncio.fixture
async def db_engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return build_session_factory(db_engine)


@pytest.fixture
def fetch(session_factory):
    """
    Reload a row in a brand-new session, bypassing any identity map.

    Usage:
        bob = await fetch(User, world.bob)
        assert bob.reputation == 10
    """

    async def _fetch(model, pk):
        async with session_factory() as session:
            return await session.get(model, pk)

    return _fetch


@pytest_asyncio.fixture
async def world(session_factory):
    """
    Seeded community:

        alice  asks q1                     (user)
        bob    answers q1 with a_bob       (user)
        dave   answers q1 with a_dave      (user)
        carol  asks q2, bob answers a_q2   (user, the usual voter)
        admin  moderator                   (admin)
        guest  read-only account           (guest)
        ghost  deactivated account         (user, inactive)

    Returns a namespace of ids.
    """
    async with session_factory() as session:
        async with session.begin():
            users = {
                name: User(username=name, email=f"{name}@stackit.dev", role=role, is_active=active)
                for name, role, active in [
                    ("alice", "user", True),
                    ("bob", "user", True),
                    ("carol", "user", True),
                    ("dave", "user", True),
                    ("admin", "admin", True),
                    ("guest", "guest", True),
                    ("ghost", "user", False),
                ]
            }
            session.add_all(users.values())
            await session.flush()

            q1 = Question(
                title="How do I reverse a list?",
                description="Without copying it, ideally.",
                author_id=users["alice"].id,
                tags=["python", "lists"],
            )
            q2 = Question(
                title="What is a context manager?",
                description="And when should I write one?",
                author_id=users["carol"].id,
                tags=["python"],
            )
            session.add_all([q1, q2])
            await session.flush()

            a_bob = Answer(content="Use list.reverse().", question_id=q1.id, author_id=users["bob"].id)
            a_dave = Answer(content="Slice with [::-1].", question_id=q1.id, author_id=users["dave"].id)
            a_q2 = Answer(content="Anything with __enter__/__exit__.", question_id=q2.id, author_id=users["bob"].id)
            session.add_all([a_bob, a_dave, a_q2])
            await session.flush()

            ids = {name: user.id for name, user in users.items()}
            ids.update(q1=q1.id, q2=q2.id, a_bob=a_bob.id, a_dave=a_dave.id, a_q2=a_q2.id)

    return SimpleNamespace(**ids)


# ══════════════════════════════════════════════════════════════════════════
# Engine
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def recording_sink():
    return RecordingSink()


@pytest.fixture
def uow(session_factory):
    return UnitOfWork(session_factory, max_attempts=3, min_wait=0, max_wait=0)


@pytest.fixture
def consistency_engine(uow, recording_sink):
    return ConsistencyEngine(uow, recording_sink)


# ══════════════════════════════════════════════════════════════════════════
# HTTP
# ══════════════════════════════════════════════════════════════════════════

@pytest_asyncio.fixture
async def test_client(session_factory, consistency_engine):
    """
    HTTPX AsyncClient talking to the FastAPI app through ASGITransport.

    The engine and the request session are overridden to use the per-test
    database. Callers pass identity with headers={"X-User-Id": str(id)}.
    """
    from app.main import app
    from app.routes.deps import get_engine

    async def override_db_session():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_engine] = lambda: consistency_engine
    app.dependency_overrides[get_db_session] = override_db_session

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()
