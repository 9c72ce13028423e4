"""
StackIt Backend — Notification Sink
====================================

What:  Fire-and-forget hand-off of notification events from the consistency
       engine to a background writer.
Why:   Notifications are a side effect. A slow or failing notification write
       must never delay, fail, or roll back a vote or an acceptance.
How:   The engine calls `enqueue()` only after its transaction commits. The
       queue sink puts the event on a bounded asyncio.Queue and returns
       immediately; a single worker task (started in the FastAPI lifespan)
       renders display text and inserts a `notifications` row.

Delivery guarantees:
    - Best effort, at-least-once while the process lives: persistence is
      retried with tenacity; after the last attempt the event is dropped and
      logged at ERROR.
    - A full queue drops the NEW event with a WARNING rather than blocking
      the request.
    - Events still queued at shutdown get a short drain window.

    ┌──────────┐ commit ┌───────────────┐ get() ┌────────────┐ INSERT ┌────────┐
    │  Engine  │───────▶│ asyncio.Queue │──────▶│   Worker   │───────▶│   DB   │
    └──────────┘enqueue └───────────────┘       └────────────┘ retry  └────────┘
"""

import asyncio
import contextlib
import logging
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    stop_after_attempt,
    wait_exponential_jitter,
)

from app.config import settings
from app.models import Notification

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NotificationEvent:
    type: str
    recipient_id: uuid.UUID
    sender_id: Optional[uuid.UUID]
    payload: Dict[str, Any] = field(default_factory=dict)


def render_notification(event_type: str, payload: Dict[str, Any]) -> Tuple[str, str]:
    """
    Build the (title, message) pair shown in the inbox.

    Payload keys used: sender_username, question_title, target_type, vote_type.
    Missing keys degrade to generic wording instead of failing.
    """
    sender = payload.get("sender_username") or "Someone"
    question_title = payload.get("question_title") or "a question"

    if event_type == "vote":
        target = payload.get("target_type", "answer")
        upvote = payload.get("vote_type") == "upvote"
        verb = "upvoted" if upvote else "downvoted"
        title = f"{target.capitalize()} {'Upvoted' if upvote else 'Downvoted'}"
        if target == "question":
            return title, f'{sender} {verb} your question: "{question_title}"'
        return title, f'{sender} {verb} your answer for: "{question_title}"'

    if event_type == "acceptance":
        return (
            "Answer Accepted",
            f'Your answer to "{question_title}" was accepted by the question author.',
        )

    return event_type.replace("_", " ").title(), payload.get("message", "")


class NotificationSink(ABC):
    """
    Where the engine sends notification events.

    Contract: `enqueue` never raises for delivery problems and never blocks
    on I/O. Implementations decide how (and whether) events are persisted.
    """

    @abstractmethod
    def enqueue(
        self,
        type: str,
        recipient_id: uuid.UUID,
        sender_id: Optional[uuid.UUID],
        payload: Dict[str, Any],
    ) -> None:
        ...


class QueueNotificationSink(NotificationSink):
    """
    In-process queue drained by one background worker.

    Lifecycle:
        sink = QueueNotificationSink(async_session_factory)
        await sink.start()     # lifespan startup
        ...                    # engine enqueues during requests
        await sink.stop()      # lifespan shutdown: drain, then cancel
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        maxsize: Optional[int] = None,
        persist_attempts: Optional[int] = None,
    ):
        self.session_factory = session_factory
        self.persist_attempts = persist_attempts or settings.notification_persist_attempts
        self._queue: asyncio.Queue[NotificationEvent] = asyncio.Queue(
            maxsize=maxsize or settings.notification_queue_size
        )
        self._task: Optional[asyncio.Task] = None
        self.dropped = 0

    # ── Producer side ─────────────────────────────────────────────────────

    def enqueue(
        self,
        type: str,
        recipient_id: uuid.UUID,
        sender_id: Optional[uuid.UUID],
        payload: Dict[str, Any],
    ) -> None:
        if sender_id is not None and sender_id == recipient_id:
            return
        event = NotificationEvent(type, recipient_id, sender_id, dict(payload))
        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull:
            self.dropped += 1
            logger.warning(
                "Notification queue full (%d); dropped %s notification for %s",
                self._queue.maxsize,
                type,
                recipient_id,
            )

    # ── Worker side ───────────────────────────────────────────────────────

    @property
    def backlog(self) -> int:
        return self._queue.qsize()

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def saturated(self) -> bool:
        return self._queue.full()

    async def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._run(), name="notification-writer")
        logger.info("Notification writer started (queue size %d)", self._queue.maxsize)

    async def drain(self) -> None:
        """Wait until every queued event has been written or dropped."""
        await self._queue.join()

    async def stop(self, timeout: float = 5.0) -> None:
        if self._task is None:
            return
        try:
            await asyncio.wait_for(self._queue.join(), timeout)
        except asyncio.TimeoutError:
            logger.warning(
                "Notification writer stopping with %d undelivered notifications",
                self._queue.qsize(),
            )
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None
        logger.info("Notification writer stopped")

    async def _run(self) -> None:
        while True:
            event = await self._queue.get()
            try:
                await self._persist_with_retry(event)
            except Exception as e:
                self.dropped += 1
                logger.error(
                    "Dropping %s notification for %s after %d attempts: %s",
                    event.type,
                    event.recipient_id,
                    self.persist_attempts,
                    str(e),
                )
            finally:
                self._queue.task_done()

    async def _persist_with_retry(self, event: NotificationEvent) -> None:
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.persist_attempts),
            wait=wait_exponential_jitter(multiplier=0.1, max=2.0, jitter=0.1),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                await self._persist(event)

    async def _persist(self, event: NotificationEvent) -> None:
        title, message = render_notification(event.type, event.payload)
        async with self.session_factory() as session:
            async with session.begin():
                session.add(
                    Notification(
                        recipient_id=event.recipient_id,
                        sender_id=event.sender_id,
                        type=event.type,
                        title=title,
                        message=message,
                        data=_json_safe(event.payload),
                    )
                )


def _json_safe(payload: Dict[str, Any]) -> Dict[str, Any]:
    """UUIDs in the payload become strings so the JSON column can store them."""
    return {
        key: str(value) if isinstance(value, uuid.UUID) else value
        for key, value in payload.items()
    }
