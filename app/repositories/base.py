"""Storage interfaces the services depend on.

Every entity has its own repository so services can be wired against the
in-memory store in tests and against Supabase in deployments. Lists are
returned oldest first; services apply their own ordering and paging.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Protocol

from app.schemas.ledger import Account, TransactionRecord
from app.schemas.lesson import Lesson
from app.schemas.matching import ChatRoom, MatchRequest
from app.schemas.notification import Notification, NotificationIntent
from app.schemas.user import UserProfile


class LedgerRepository(Protocol):
    def get_account(self, user_id: str) -> Account | None: ...

    def insert_account(self, account: Account) -> Account: ...

    def insert_transaction(self, record: TransactionRecord) -> TransactionRecord: ...

    def get_transaction(self, transaction_id: str) -> TransactionRecord | None: ...

    def update_transaction(
        self, transaction_id: str, fields: dict[str, Any]
    ) -> TransactionRecord | None: ...

    def list_transactions(self, user_id: str) -> list[TransactionRecord]: ...

    def list_by_related(self, related_id: str) -> list[TransactionRecord]: ...


class MatchRequestRepository(Protocol):
    def insert(self, request: MatchRequest) -> MatchRequest: ...

    def get(self, request_id: str) -> MatchRequest | None: ...

    def update(self, request_id: str, fields: dict[str, Any]) -> MatchRequest | None: ...

    def list_for_student(self, student_id: str) -> list[MatchRequest]: ...

    def list_for_tutor(self, tutor_id: str) -> list[MatchRequest]: ...

    def list_pending_for_pair(self, student_id: str, tutor_id: str) -> list[MatchRequest]: ...

    def list_pending_expired(self, now: datetime) -> list[MatchRequest]: ...


class LessonRepository(Protocol):
    def insert(self, lesson: Lesson) -> Lesson: ...

    def get(self, lesson_id: str) -> Lesson | None: ...

    def update(self, lesson_id: str, fields: dict[str, Any]) -> Lesson | None: ...

    def list_for_student(self, student_id: str) -> list[Lesson]: ...

    def list_for_tutor(self, tutor_id: str) -> list[Lesson]: ...


class NotificationRepository(Protocol):
    def insert(self, notification: Notification) -> Notification: ...

    def get(self, notification_id: str) -> Notification | None: ...

    def update(self, notification_id: str, fields: dict[str, Any]) -> Notification | None: ...

    def list_for_user(self, user_id: str) -> list[Notification]: ...

    def mark_all_read(self, user_id: str) -> int: ...


class OutboxRepository(Protocol):
    def insert(self, intent: NotificationIntent) -> NotificationIntent: ...

    def update(self, intent_id: str, fields: dict[str, Any]) -> NotificationIntent | None: ...

    def list_pending(self, limit: int = 100) -> list[NotificationIntent]: ...


class ChatRoomRepository(Protocol):
    def create_chat_room(self, tutor_id: str, student_id: str) -> ChatRoom: ...

    def get(self, room_id: str) -> ChatRoom | None: ...


class ProfileRepository(Protocol):
    def get_user(self, user_id: str) -> UserProfile | None: ...

    def get_student(self, student_id: str) -> UserProfile | None: ...

    def get_tutor(self, tutor_id: str) -> UserProfile | None: ...

    def upsert(self, profile: UserProfile) -> UserProfile: ...
