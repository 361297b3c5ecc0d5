"""Server-Sent Events notification stream tests."""

from __future__ import annotations

import asyncio
import json

import pytest
from fastapi.testclient import TestClient

from app.container import ServiceContainer
from app.routers.notifications import stream_notifications
from app.schemas.user import CurrentUser, UserRole


class _Request:
    """Stands in for a live client connection."""

    def __init__(self) -> None:
        self.disconnected = False

    async def is_disconnected(self) -> bool:
        return self.disconnected


@pytest.mark.asyncio
async def test_stream_pushes_new_notifications_and_unsubscribes(
    container: ServiceContainer,
) -> None:
    request = _Request()
    tutor = CurrentUser(id="tutor-1", role=UserRole.TUTOR)
    response = await stream_notifications(request, user=tutor, container=container)
    assert response.media_type == "text/event-stream"
    assert len(container.realtime) == 0

    body = response.body_iterator
    assert await body.__anext__() == ": connected\n\n"
    assert len(container.realtime) == 1

    await container.notifications.notify("match_received", "tutor-1", student_name="Hanako")
    frame = await asyncio.wait_for(body.__anext__(), timeout=2)

    event, data = frame.strip().split("\n")
    assert event == "event: notification"
    payload = json.loads(data.removeprefix("data: "))
    assert payload["user_id"] == "tutor-1"
    assert payload["message"] == "Hanako sent you a match request"

    request.disconnected = True
    with pytest.raises(StopAsyncIteration):
        await asyncio.wait_for(body.__anext__(), timeout=2)
    assert len(container.realtime) == 0


@pytest.mark.asyncio
async def test_stream_not_subscribed_until_iterated(container: ServiceContainer) -> None:
    tutor = CurrentUser(id="tutor-1", role=UserRole.TUTOR)

    response = await stream_notifications(_Request(), user=tutor, container=container)

    assert len(container.realtime) == 0
    await response.body_iterator.aclose()
    assert len(container.realtime) == 0


def test_stream_requires_identity(client: TestClient) -> None:
    response = client.get("/notifications/stream")

    assert response.status_code == 401
    assert response.json()["code"] == "UNAUTHORIZED"
