"""Realtime subscription tests."""

from __future__ import annotations

import asyncio
from datetime import timedelta

import pytest

from app.repositories.memory import MemoryLessonRepository, MemoryNotificationRepository
from app.schemas.lesson import Lesson, LessonStatus
from app.schemas.notification import Notification, NotificationType
from app.services.realtime_service import RealtimeService
from app.utils.time import now_utc

POLL = 0.01


def _notification(
    notification_id: str, user_id: str = "student-1", offset: int = 0
) -> Notification:
    return Notification(
        id=notification_id,
        user_id=user_id,
        type=NotificationType.MATCH_REQUEST_APPROVED,
        title="Match request approved",
        message="You can start chatting now.",
        created_at=now_utc() + timedelta(seconds=offset),
    )


def _lesson() -> Lesson:
    now = now_utc()
    return Lesson(
        id="lesson-1",
        tutor_id="tutor-1",
        student_id="student-1",
        subject="Mathematics",
        scheduled_at=now + timedelta(days=1),
        duration_minutes=60,
        coin_cost=200,
        created_at=now,
        updated_at=now,
    )


@pytest.fixture
def notifications() -> MemoryNotificationRepository:
    return MemoryNotificationRepository()


@pytest.fixture
def lessons() -> MemoryLessonRepository:
    return MemoryLessonRepository()


@pytest.fixture
def realtime(notifications, lessons) -> RealtimeService:
    return RealtimeService(notifications, lessons, poll_interval=POLL)


@pytest.mark.asyncio
async def test_new_notifications_arrive_once_in_order(realtime, notifications) -> None:
    notifications.insert(_notification("old"))
    received: list[Notification] = []
    unsubscribe = realtime.subscribe_to_user_notifications("student-1", received.append)

    notifications.insert(_notification("second", offset=2))
    notifications.insert(_notification("first", offset=1))
    notifications.insert(_notification("someone-else", user_id="student-2"))
    await asyncio.sleep(POLL * 5)
    await asyncio.sleep(POLL * 5)

    assert [row.id for row in received] == ["first", "second"]
    unsubscribe()


@pytest.mark.asyncio
async def test_async_callbacks_and_callback_errors(realtime, notifications) -> None:
    """A failing callback is logged and polling continues."""
    received: list[str] = []

    async def callback(notification: Notification) -> None:
        if notification.id == "boom":
            raise ValueError("consumer bug")
        received.append(notification.id)

    unsubscribe = realtime.subscribe_to_user_notifications("student-1", callback)
    notifications.insert(_notification("boom", offset=1))
    await asyncio.sleep(POLL * 5)
    notifications.insert(_notification("after", offset=2))
    await asyncio.sleep(POLL * 5)

    assert received == ["after"]
    unsubscribe()


@pytest.mark.asyncio
async def test_unsubscribe_is_idempotent(realtime, notifications) -> None:
    received: list[Notification] = []
    unsubscribe = realtime.subscribe_to_user_notifications("student-1", received.append)

    unsubscribe()
    unsubscribe()
    notifications.insert(_notification("late"))
    await asyncio.sleep(POLL * 5)

    assert received == []
    assert unsubscribe.active is False
    assert len(realtime) == 0


@pytest.mark.asyncio
async def test_lesson_updates_after_baseline(realtime, lessons) -> None:
    lessons.insert(_lesson())
    snapshots: list[Lesson] = []
    unsubscribe = realtime.subscribe_lesson_updates("lesson-1", snapshots.append)

    await asyncio.sleep(POLL * 5)
    assert snapshots == []

    lessons.update(
        "lesson-1",
        {"status": LessonStatus.APPROVED, "updated_at": now_utc() + timedelta(seconds=1)},
    )
    await asyncio.sleep(POLL * 5)

    assert [row.status for row in snapshots] == [LessonStatus.APPROVED]
    unsubscribe()


@pytest.mark.asyncio
async def test_lesson_updates_between_ticks_coalesce(lessons, notifications) -> None:
    realtime = RealtimeService(notifications, lessons, poll_interval=0.2)
    lessons.insert(_lesson())
    snapshots: list[Lesson] = []
    unsubscribe = realtime.subscribe_lesson_updates("lesson-1", snapshots.append)

    # first tick only records the baseline
    await asyncio.sleep(0.3)
    later = now_utc() + timedelta(seconds=1)
    lessons.update("lesson-1", {"status": LessonStatus.APPROVED, "updated_at": later})
    lessons.update(
        "lesson-1",
        {"status": LessonStatus.IN_PROGRESS, "updated_at": later + timedelta(seconds=1)},
    )
    await asyncio.sleep(0.2)
    await asyncio.sleep(0.1)

    assert [row.status for row in snapshots] == [LessonStatus.IN_PROGRESS]
    unsubscribe()

@pytest.mark.asyncio
async def test_close_cancels_everything(realtime) -> None:
    first = realtime.subscribe_to_user_notifications("student-1", lambda _: None)
    second = realtime.subscribe_lesson_updates("lesson-1", lambda _: None)
    assert len(realtime) == 2

    realtime.close()
    await asyncio.sleep(0)

    assert len(realtime) == 0
    assert first.active is False
    assert second.active is False
