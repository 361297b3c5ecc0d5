"""Polling subscriptions for notifications and lesson updates."""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable
from datetime import datetime
from typing import Any

from app.repositories.base import LessonRepository, NotificationRepository
from app.schemas.lesson import Lesson
from app.schemas.notification import Notification
from app.services.common import oldest_first

logger = logging.getLogger(__name__)

NotificationCallback = Callable[[Notification], Awaitable[None] | None]
LessonCallback = Callable[[Lesson], Awaitable[None] | None]


class Subscription:
    """Handle returned by the subscribe calls; calling it unsubscribes.

    Cancelling is synchronous and safe to repeat.
    """

    def __init__(
        self,
        name: str,
        task: asyncio.Task[None],
        on_close: Callable[[Subscription], None],
    ) -> None:
        self.name = name
        self._task = task
        self._on_close = on_close
        self._closed = False

    @property
    def active(self) -> bool:
        return not self._closed and not self._task.done()

    def __call__(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._task.cancel()
        self._on_close(self)
        logger.debug("Subscription %s closed", self.name)


class RealtimeService:
    """Push new notifications and lesson changes to in-process callbacks.

    Each subscription owns one polling task on the running event loop.
    Callback errors are logged and never stop the poller.
    """

    def __init__(
        self,
        notifications: NotificationRepository,
        lessons: LessonRepository,
        poll_interval: float = 1.0,
    ) -> None:
        self.notifications = notifications
        self.lessons = lessons
        self.poll_interval = poll_interval
        self._subscriptions: set[Subscription] = set()

    def subscribe_to_user_notifications(
        self,
        user_id: str,
        callback: NotificationCallback,
    ) -> Subscription:
        """Deliver each notification created for ``user_id`` after this call, once."""
        seen = {row.id for row in self.notifications.list_for_user(user_id)}
        task = asyncio.create_task(
            self._poll_notifications(user_id, seen, callback),
            name=f"notifications:{user_id}",
        )
        return self._register(f"notifications:{user_id}", task)

    def subscribe_lesson_updates(self, lesson_id: str, callback: LessonCallback) -> Subscription:
        """Call back with a lesson snapshot whenever its ``updated_at`` changes."""
        task = asyncio.create_task(
            self._poll_lesson(lesson_id, callback),
            name=f"lesson:{lesson_id}",
        )
        return self._register(f"lesson:{lesson_id}", task)

    def close(self) -> None:
        """Cancel every live subscription."""
        for subscription in list(self._subscriptions):
            subscription()

    def __len__(self) -> int:
        return len(self._subscriptions)

    def _register(self, name: str, task: asyncio.Task[None]) -> Subscription:
        subscription = Subscription(name, task, self._subscriptions.discard)
        self._subscriptions.add(subscription)
        return subscription

    async def _poll_notifications(
        self,
        user_id: str,
        seen: set[str],
        callback: NotificationCallback,
    ) -> None:
        while True:
            await asyncio.sleep(self.poll_interval)
            try:
                rows = self.notifications.list_for_user(user_id)
            except Exception:
                logger.exception("Polling notifications for %s failed", user_id)
                continue
            for row in oldest_first([row for row in rows if row.id not in seen]):
                seen.add(row.id)
                await _invoke(callback, row)

    async def _poll_lesson(self, lesson_id: str, callback: LessonCallback) -> None:
        baseline: datetime | None = None
        first_tick = True
        while True:
            await asyncio.sleep(self.poll_interval)
            try:
                lesson = self.lessons.get(lesson_id)
            except Exception:
                logger.exception("Polling lesson %s failed", lesson_id)
                continue
            if lesson is None:
                continue
            if first_tick:
                baseline = lesson.updated_at
                first_tick = False
                continue
            if lesson.updated_at != baseline:
                baseline = lesson.updated_at
                await _invoke(callback, lesson)


async def _invoke(callback: Callable[[Any], Awaitable[None] | None], payload: Any) -> None:
    try:
        result = callback(payload)
        if inspect.isawaitable(result):
            await result
    except Exception:
        logger.exception("Realtime callback %r failed", callback)
