"""Notification schemas."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel


class NotificationType(str, Enum):
    MATCH_REQUEST_RECEIVED = "match_request_received"
    MATCH_REQUEST_APPROVED = "match_request_approved"
    MATCH_REQUEST_REJECTED = "match_request_rejected"
    MATCH_REQUEST_CANCELLED = "match_request_cancelled"
    MATCH_REQUEST_EXPIRED = "match_request_expired"
    LESSON_REQUEST_RECEIVED = "lesson_request_received"
    LESSON_REQUEST_APPROVED = "lesson_request_approved"
    LESSON_REQUEST_REJECTED = "lesson_request_rejected"
    LESSON_STARTED = "lesson_started"
    LESSON_CANCELLED = "lesson_cancelled"
    LESSON_COMPLETED = "lesson_completed"
    MESSAGE_RECEIVED = "message_received"
    PAYMENT_RECEIVED = "payment_received"


class RelatedType(str, Enum):
    MATCH = "match"
    LESSON = "lesson"
    MESSAGE = "message"
    PAYMENT = "payment"


class Notification(BaseModel):
    """Notification representation."""

    id: str
    user_id: str
    type: NotificationType
    title: str
    message: str
    is_read: bool = False
    related_id: str | None = None
    related_type: RelatedType | None = None
    created_at: datetime


class IntentStatus(str, Enum):
    PENDING = "pending"
    DELIVERED = "delivered"
    FAILED = "failed"


class NotificationIntent(BaseModel):
    """Outbox row describing a notification that still has to be written."""

    id: str
    user_id: str
    type: NotificationType
    title: str
    message: str
    related_id: str | None = None
    related_type: RelatedType | None = None
    status: IntentStatus = IntentStatus.PENDING
    attempts: int = 0
    last_error: str | None = None
    created_at: datetime
    updated_at: datetime
