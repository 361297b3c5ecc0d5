"""Match request expiry sweep job."""

from __future__ import annotations

import logging

from app.container import ServiceContainer

logger = logging.getLogger(__name__)


async def match_request_expiry(container: ServiceContainer) -> None:
    """Expire overdue pending match requests and refund their students."""
    expired = await container.matching.expire_overdue_requests()
    logger.info("match_request_expiry completed with %s expired requests", len(expired))
