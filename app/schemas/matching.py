"""Matching request schemas."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field


class MatchStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    CANCELLED = "cancelled"
    EXPIRED = "expired"


class MatchRequest(BaseModel):
    """A student's paid request to connect with a tutor."""

    id: str
    student_id: str
    tutor_id: str
    message: str
    schedule_note: str | None = None
    status: MatchStatus = MatchStatus.PENDING
    coin_cost: int
    status_reason: str | None = None
    chat_room_id: str | None = None
    created_at: datetime
    updated_at: datetime
    expires_at: datetime

    @property
    def is_pending(self) -> bool:
        return self.status == MatchStatus.PENDING


class MatchRequestCreate(BaseModel):
    """Request body for sending a match request."""

    tutor_id: str = Field(..., min_length=1)
    message: str
    schedule_note: str | None = None


class MatchRejectRequest(BaseModel):
    """Request body for rejecting a match request."""

    reason: str | None = None


class ChatRoom(BaseModel):
    """Chat room created when a tutor approves a match request."""

    id: str
    tutor_id: str
    student_id: str
    created_at: datetime
