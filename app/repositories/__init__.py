"""Repository interfaces and their in-memory implementations."""

from app.repositories.base import (
    ChatRoomRepository,
    LedgerRepository,
    LessonRepository,
    MatchRequestRepository,
    NotificationRepository,
    OutboxRepository,
    ProfileRepository,
)
from app.repositories.memory import (
    MemoryChatRoomRepository,
    MemoryLedgerRepository,
    MemoryLessonRepository,
    MemoryMatchRequestRepository,
    MemoryNotificationRepository,
    MemoryOutboxRepository,
    MemoryProfileRepository,
)

__all__ = [
    "ChatRoomRepository",
    "LedgerRepository",
    "LessonRepository",
    "MatchRequestRepository",
    "MemoryChatRoomRepository",
    "MemoryLedgerRepository",
    "MemoryLessonRepository",
    "MemoryMatchRequestRepository",
    "MemoryNotificationRepository",
    "MemoryOutboxRepository",
    "MemoryProfileRepository",
    "NotificationRepository",
    "OutboxRepository",
    "ProfileRepository",
]
