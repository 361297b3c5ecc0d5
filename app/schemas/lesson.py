"""Lesson and escrow schemas."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field

from app.schemas.ledger import TransactionRecord


class LessonStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    SCHEDULED = "scheduled"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    REJECTED = "rejected"


class EscrowStatus(str, Enum):
    NONE = "none"
    RESERVED = "reserved"
    ESCROWED = "escrowed"
    RELEASED = "released"
    REFUNDED = "refunded"


TERMINAL_LESSON_STATUSES = frozenset(
    {LessonStatus.COMPLETED, LessonStatus.CANCELLED, LessonStatus.REJECTED}
)


class Lesson(BaseModel):
    """A paid, schedulable lesson and the custody state of its coins."""

    id: str
    tutor_id: str
    student_id: str
    subject: str
    scheduled_at: datetime
    duration_minutes: int
    coin_cost: int
    status: LessonStatus = LessonStatus.PENDING
    escrow_status: EscrowStatus = EscrowStatus.NONE
    lesson_notes: str | None = None
    tutor_feedback: str | None = None
    student_rating: int | None = None
    status_reason: str | None = None
    approved_at: datetime | None = None
    completed_at: datetime | None = None
    created_at: datetime
    updated_at: datetime


class LessonBookingCreate(BaseModel):
    """Request body for booking a lesson."""

    tutor_id: str = Field(..., min_length=1)
    subject: str
    scheduled_at: datetime
    duration_minutes: int
    coin_cost: int
    lesson_notes: str | None = None


class LessonCompleteRequest(BaseModel):
    """Request body for completing a lesson."""

    feedback: str | None = None
    rating: int | None = None


class LessonReasonRequest(BaseModel):
    """Optional reason for rejecting or cancelling a lesson."""

    reason: str | None = None


class LessonRateRequest(BaseModel):
    """Request body for rating a completed lesson."""

    rating: int


class EscrowSnapshot(BaseModel):
    """Read-only audit view of a lesson and every ledger entry tied to it."""

    lesson: Lesson
    transactions: list[TransactionRecord]
