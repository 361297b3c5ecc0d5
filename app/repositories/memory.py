"""In-process repositories backed by dictionaries.

Rows are stored as pydantic models and handed out as copies, so callers
only change state through ``update``.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime
from typing import Any, Generic, TypeVar
from uuid import uuid4

from pydantic import BaseModel

from app.schemas.ledger import Account, TransactionRecord
from app.schemas.lesson import Lesson
from app.schemas.matching import ChatRoom, MatchRequest, MatchStatus
from app.schemas.notification import IntentStatus, Notification, NotificationIntent
from app.schemas.user import UserProfile, UserRole
from app.utils.time import now_utc

ModelT = TypeVar("ModelT", bound=BaseModel)


class MemoryTable(Generic[ModelT]):
    """Insertion-ordered table of models keyed by a string id."""

    def __init__(self, key: str = "id") -> None:
        self.key = key
        self.rows: dict[str, ModelT] = {}

    def insert(self, row: ModelT) -> ModelT:
        self.rows[getattr(row, self.key)] = row.model_copy(deep=True)
        return row.model_copy(deep=True)

    def get(self, row_id: str) -> ModelT | None:
        row = self.rows.get(row_id)
        return row.model_copy(deep=True) if row is not None else None

    def update(self, row_id: str, fields: dict[str, Any]) -> ModelT | None:
        row = self.rows.get(row_id)
        if row is None:
            return None
        updated = row.model_copy(update=fields, deep=True)
        self.rows[row_id] = updated
        return updated.model_copy(deep=True)

    def select(self, predicate: Callable[[ModelT], bool]) -> list[ModelT]:
        return [row.model_copy(deep=True) for row in self.rows.values() if predicate(row)]

    def __len__(self) -> int:
        return len(self.rows)


class MemoryLedgerRepository:
    def __init__(self) -> None:
        self.accounts: MemoryTable[Account] = MemoryTable(key="user_id")
        self.transactions: MemoryTable[TransactionRecord] = MemoryTable()

    def get_account(self, user_id: str) -> Account | None:
        return self.accounts.get(user_id)

    def insert_account(self, account: Account) -> Account:
        return self.accounts.insert(account)

    def insert_transaction(self, record: TransactionRecord) -> TransactionRecord:
        return self.transactions.insert(record)

    def get_transaction(self, transaction_id: str) -> TransactionRecord | None:
        return self.transactions.get(transaction_id)

    def update_transaction(
        self, transaction_id: str, fields: dict[str, Any]
    ) -> TransactionRecord | None:
        return self.transactions.update(transaction_id, fields)

    def list_transactions(self, user_id: str) -> list[TransactionRecord]:
        return self.transactions.select(lambda tx: tx.user_id == user_id)

    def list_by_related(self, related_id: str) -> list[TransactionRecord]:
        return self.transactions.select(lambda tx: tx.related_id == related_id)


class MemoryMatchRequestRepository:
    def __init__(self) -> None:
        self.table: MemoryTable[MatchRequest] = MemoryTable()

    def insert(self, request: MatchRequest) -> MatchRequest:
        return self.table.insert(request)

    def get(self, request_id: str) -> MatchRequest | None:
        return self.table.get(request_id)

    def update(self, request_id: str, fields: dict[str, Any]) -> MatchRequest | None:
        return self.table.update(request_id, fields)

    def list_for_student(self, student_id: str) -> list[MatchRequest]:
        return self.table.select(lambda req: req.student_id == student_id)

    def list_for_tutor(self, tutor_id: str) -> list[MatchRequest]:
        return self.table.select(lambda req: req.tutor_id == tutor_id)

    def list_pending_for_pair(self, student_id: str, tutor_id: str) -> list[MatchRequest]:
        return self.table.select(
            lambda req: req.student_id == student_id
            and req.tutor_id == tutor_id
            and req.status == MatchStatus.PENDING
        )

    def list_pending_expired(self, now: datetime) -> list[MatchRequest]:
        return self.table.select(
            lambda req: req.status == MatchStatus.PENDING and req.expires_at < now
        )


class MemoryLessonRepository:
    def __init__(self) -> None:
        self.table: MemoryTable[Lesson] = MemoryTable()

    def insert(self, lesson: Lesson) -> Lesson:
        return self.table.insert(lesson)

    def get(self, lesson_id: str) -> Lesson | None:
        return self.table.get(lesson_id)

    def update(self, lesson_id: str, fields: dict[str, Any]) -> Lesson | None:
        return self.table.update(lesson_id, fields)

    def list_for_student(self, student_id: str) -> list[Lesson]:
        return self.table.select(lambda lesson: lesson.student_id == student_id)

    def list_for_tutor(self, tutor_id: str) -> list[Lesson]:
        return self.table.select(lambda lesson: lesson.tutor_id == tutor_id)


class MemoryNotificationRepository:
    def __init__(self) -> None:
        self.table: MemoryTable[Notification] = MemoryTable()

    def insert(self, notification: Notification) -> Notification:
        return self.table.insert(notification)

    def get(self, notification_id: str) -> Notification | None:
        return self.table.get(notification_id)

    def update(self, notification_id: str, fields: dict[str, Any]) -> Notification | None:
        return self.table.update(notification_id, fields)

    def list_for_user(self, user_id: str) -> list[Notification]:
        return self.table.select(lambda n: n.user_id == user_id)

    def mark_all_read(self, user_id: str) -> int:
        unread = self.table.select(lambda n: n.user_id == user_id and not n.is_read)
        for notification in unread:
            self.table.update(notification.id, {"is_read": True})
        return len(unread)


class MemoryOutboxRepository:
    def __init__(self) -> None:
        self.table: MemoryTable[NotificationIntent] = MemoryTable()

    def insert(self, intent: NotificationIntent) -> NotificationIntent:
        return self.table.insert(intent)

    def update(self, intent_id: str, fields: dict[str, Any]) -> NotificationIntent | None:
        return self.table.update(intent_id, fields)

    def list_pending(self, limit: int = 100) -> list[NotificationIntent]:
        return self.table.select(lambda intent: intent.status == IntentStatus.PENDING)[:limit]


class MemoryChatRoomRepository:
    def __init__(self) -> None:
        self.table: MemoryTable[ChatRoom] = MemoryTable()

    def create_chat_room(self, tutor_id: str, student_id: str) -> ChatRoom:
        room = ChatRoom(
            id=str(uuid4()),
            tutor_id=tutor_id,
            student_id=student_id,
            created_at=now_utc(),
        )
        return self.table.insert(room)

    def get(self, room_id: str) -> ChatRoom | None:
        return self.table.get(room_id)


class MemoryProfileRepository:
    def __init__(self) -> None:
        self.table: MemoryTable[UserProfile] = MemoryTable()

    def get_user(self, user_id: str) -> UserProfile | None:
        return self.table.get(user_id)

    def get_student(self, student_id: str) -> UserProfile | None:
        profile = self.table.get(student_id)
        return profile if profile and profile.role == UserRole.STUDENT else None

    def get_tutor(self, tutor_id: str) -> UserProfile | None:
        profile = self.table.get(tutor_id)
        return profile if profile and profile.role == UserRole.TUTOR else None

    def upsert(self, profile: UserProfile) -> UserProfile:
        return self.table.insert(profile)
