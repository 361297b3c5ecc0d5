"""Notification outbox retry job."""

from __future__ import annotations

import logging

from app.container import ServiceContainer

logger = logging.getLogger(__name__)


async def notification_outbox_flush(container: ServiceContainer) -> None:
    """Retry notifications whose first delivery attempt failed."""
    delivered = await container.notifications.flush_outbox()
    if delivered:
        logger.info("notification_outbox_flush delivered %s notifications", delivered)
