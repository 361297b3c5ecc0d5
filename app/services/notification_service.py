"""Notification service."""

from __future__ import annotations

import logging
from typing import Any
from uuid import uuid4

from app.repositories.base import NotificationRepository, OutboxRepository
from app.schemas.notification import (
    IntentStatus,
    Notification,
    NotificationIntent,
    NotificationType,
    RelatedType,
)
from app.services.common import newest_first
from app.utils.errors import InvalidInputError, NotFoundError
from app.utils.result import service_operation
from app.utils.time import now_utc

logger = logging.getLogger(__name__)

# template name -> (type, title, message format)
TEMPLATES: dict[str, tuple[NotificationType, str, str]] = {
    "match_received": (
        NotificationType.MATCH_REQUEST_RECEIVED,
        "New match request",
        "{student_name} sent you a match request",
    ),
    "match_approved": (
        NotificationType.MATCH_REQUEST_APPROVED,
        "Match request approved",
        "{tutor_name} approved your request! You can start chatting now.",
    ),
    "match_rejected_student": (
        NotificationType.MATCH_REQUEST_REJECTED,
        "Match request declined",
        "{tutor_name} declined your request. Your coins have been refunded.",
    ),
    "match_rejected_tutor": (
        NotificationType.MATCH_REQUEST_REJECTED,
        "Request declined",
        "You declined {student_name}'s request.",
    ),
    "match_cancelled_student": (
        NotificationType.MATCH_REQUEST_CANCELLED,
        "Match request cancelled",
        "You cancelled your request to {tutor_name}. Your coins have been refunded.",
    ),
    "match_cancelled_tutor": (
        NotificationType.MATCH_REQUEST_CANCELLED,
        "Request cancelled",
        "{student_name} cancelled their request.",
    ),
    "match_expired": (
        NotificationType.MATCH_REQUEST_EXPIRED,
        "Match request expired",
        "Your request to {tutor_name} expired without a reply. Your coins have been refunded.",
    ),
    "lesson_requested": (
        NotificationType.LESSON_REQUEST_RECEIVED,
        "Lesson request",
        "{student_name} requested a {subject} lesson",
    ),
    "lesson_approved": (
        NotificationType.LESSON_REQUEST_APPROVED,
        "Lesson approved",
        "{tutor_name} approved your {subject} lesson",
    ),
    "lesson_rejected": (
        NotificationType.LESSON_REQUEST_REJECTED,
        "Lesson declined",
        "{tutor_name} declined your {subject} lesson. Your coins have been refunded.",
    ),
    "lesson_started": (
        NotificationType.LESSON_STARTED,
        "Lesson started",
        "Your {subject} lesson with {tutor_name} has started",
    ),
    "lesson_cancelled_student": (
        NotificationType.LESSON_CANCELLED,
        "Lesson cancelled",
        "Your {subject} lesson with {tutor_name} was cancelled. Your coins have been refunded.",
    ),
    "lesson_cancelled_tutor": (
        NotificationType.LESSON_CANCELLED,
        "Lesson cancelled",
        "The {subject} lesson with {student_name} was cancelled.",
    ),
    "lesson_paid": (
        NotificationType.PAYMENT_RECEIVED,
        "Lesson payment received",
        "Your {subject} lesson with {student_name} is complete and you received {amount} coins",
    ),
}


class NotificationService:
    """Create and manage user notifications.

    Domain transitions go through ``notify``: the rendered notification is
    first written to the outbox and then delivered right away. A failed
    delivery never fails the caller; the intent stays pending and
    ``flush_outbox`` retries it until ``max_attempts`` is reached.
    """

    def __init__(
        self,
        notifications: NotificationRepository,
        outbox: OutboxRepository,
        max_attempts: int = 5,
    ) -> None:
        self.notifications = notifications
        self.outbox = outbox
        self.max_attempts = max_attempts

    @service_operation("Failed to create notification")
    async def create_notification(
        self,
        user_id: str,
        notification_type: NotificationType,
        title: str,
        message: str,
        related_id: str | None = None,
        related_type: RelatedType | None = None,
    ) -> Notification:
        """Create a notification row."""
        if not user_id:
            raise InvalidInputError("Recipient is required")
        return self.notifications.insert(
            Notification(
                id=str(uuid4()),
                user_id=user_id,
                type=notification_type,
                title=title,
                message=message,
                related_id=related_id,
                related_type=related_type,
                created_at=now_utc(),
            )
        )

    @service_operation("Failed to fetch notifications")
    async def list_notifications(
        self,
        user_id: str,
        limit: int = 50,
        unread_only: bool = False,
    ) -> list[Notification]:
        """Return notifications for a user in reverse chronological order."""
        rows = self.notifications.list_for_user(user_id)
        if unread_only:
            rows = [row for row in rows if not row.is_read]
        return newest_first(rows)[:limit]

    @service_operation("Failed to update notification")
    async def mark_read(self, notification_id: str, user_id: str | None = None) -> Notification:
        """Mark a single notification as read."""
        notification = self.notifications.get(notification_id)
        if notification is None or (user_id is not None and notification.user_id != user_id):
            raise NotFoundError("Notification")
        updated = self.notifications.update(notification_id, {"is_read": True})
        if updated is None:
            raise NotFoundError("Notification")
        return updated

    @service_operation("Failed to update notifications")
    async def mark_all_read(self, user_id: str) -> int:
        """Mark all unread notifications as read and return affected count."""
        return self.notifications.mark_all_read(user_id)

    @service_operation("Failed to count unread notifications")
    async def unread_count(self, user_id: str) -> int:
        return sum(1 for row in self.notifications.list_for_user(user_id) if not row.is_read)

    async def notify(
        self,
        template: str,
        user_id: str,
        related_id: str | None = None,
        related_type: RelatedType | None = None,
        **context: Any,
    ) -> Notification | None:
        """Render ``template`` for ``user_id`` and deliver it on a best-effort basis."""
        try:
            notification_type, title, message = TEMPLATES[template]
            now = now_utc()
            intent = self.outbox.insert(
                NotificationIntent(
                    id=str(uuid4()),
                    user_id=user_id,
                    type=notification_type,
                    title=title,
                    message=message.format(**context),
                    related_id=related_id,
                    related_type=related_type,
                    created_at=now,
                    updated_at=now,
                )
            )
        except Exception:
            logger.exception("Could not queue %s notification for %s", template, user_id)
            return None
        return self._deliver(intent)

    async def flush_outbox(self, limit: int = 100) -> int:
        """Retry pending outbox intents and return how many were delivered."""
        delivered = 0
        for intent in self.outbox.list_pending(limit=limit):
            if self._deliver(intent) is not None:
                delivered += 1
        return delivered

    def _deliver(self, intent: NotificationIntent) -> Notification | None:
        attempts = intent.attempts + 1
        try:
            notification = self.notifications.get(intent.id)
            if notification is None:
                notification = self.notifications.insert(
                    Notification(
                        id=intent.id,
                        user_id=intent.user_id,
                        type=intent.type,
                        title=intent.title,
                        message=intent.message,
                        related_id=intent.related_id,
                        related_type=intent.related_type,
                        created_at=now_utc(),
                    )
                )
        except Exception as exc:
            status = IntentStatus.FAILED if attempts >= self.max_attempts else IntentStatus.PENDING
            logger.warning(
                "Notification %s for %s not delivered (attempt %s/%s): %s",
                intent.id,
                intent.user_id,
                attempts,
                self.max_attempts,
                exc,
            )
            self._record_attempt(
                intent.id, {"attempts": attempts, "status": status, "last_error": str(exc)}
            )
            return None

        self._record_attempt(intent.id, {"attempts": attempts, "status": IntentStatus.DELIVERED})
        return notification

    def _record_attempt(self, intent_id: str, fields: dict[str, Any]) -> None:
        fields["updated_at"] = now_utc()
        try:
            self.outbox.update(intent_id, fields)
        except Exception:
            logger.exception("Could not update outbox intent %s", intent_id)
