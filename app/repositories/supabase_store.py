"""Repositories backed by Supabase (PostgREST) tables."""

from __future__ import annotations

import logging
import time
from datetime import datetime
from enum import Enum
from typing import Any, Generic, TypeVar
from uuid import uuid4

from postgrest import APIError
from pydantic import BaseModel

from app.config import settings
from app.schemas.ledger import Account, TransactionRecord
from app.schemas.lesson import Lesson
from app.schemas.matching import ChatRoom, MatchRequest, MatchStatus
from app.schemas.notification import IntentStatus, Notification, NotificationIntent
from app.schemas.user import UserProfile, UserRole
from app.utils.errors import InvalidInputError
from app.utils.time import now_utc
from supabase import Client

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


class SupabaseService:
    """Thin helper wrapper around a Supabase client."""

    def __init__(self, client: Client) -> None:
        self.client = client

    def execute(self, query, default: Any = None) -> Any:
        """Execute a Supabase query and normalize API errors."""
        started = time.perf_counter()
        try:
            response = query.execute()
            elapsed_ms = (time.perf_counter() - started) * 1000
            threshold_ms = settings.slow_query_log_threshold_ms
            if threshold_ms > 0 and elapsed_ms >= threshold_ms:
                logger.warning("Slow Supabase query %.1fms", elapsed_ms)
            data = response.data
            return default if data is None and default is not None else data
        except APIError as exc:
            message = getattr(exc, "message", "Database request failed")
            raise InvalidInputError(str(message)) from exc

    def select_many(
        self,
        table: str,
        filters: dict[str, Any] | None = None,
        order_by: str | None = "created_at",
        descending: bool = False,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        """Select many rows from a table with optional equality filters."""
        query = self.client.table(table).select("*")
        if filters:
            for key, value in filters.items():
                query = query.eq(key, value)
        if order_by:
            query = query.order(order_by, desc=descending)
        if limit:
            query = query.limit(limit)
        return self.execute(query, default=[])

    def select_first(self, table: str, filters: dict[str, Any]) -> dict[str, Any] | None:
        """Return the first row matching ``filters`` or None."""
        rows = self.select_many(table, filters=filters, order_by=None, limit=1)
        return rows[0] if rows else None

    def insert_one(self, table: str, payload: dict[str, Any]) -> dict[str, Any]:
        """Insert one row and return the created object."""
        rows = self.execute(self.client.table(table).insert(payload), default=[])
        if not rows:
            raise InvalidInputError(f"Failed to insert into {table}")
        return rows[0]

    def update(
        self,
        table: str,
        filters: dict[str, Any],
        payload: dict[str, Any],
    ) -> list[dict[str, Any]]:
        """Update rows by equality filters and return the updated rows."""
        query = self.client.table(table).update(payload)
        for key, value in filters.items():
            query = query.eq(key, value)
        return self.execute(query, default=[])


def to_row(value: BaseModel | dict[str, Any]) -> dict[str, Any]:
    """Serialize a model (or partial field dict) into a JSON-safe row."""
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    row: dict[str, Any] = {}
    for key, item in value.items():
        if isinstance(item, datetime):
            row[key] = item.isoformat()
        elif isinstance(item, Enum):
            row[key] = item.value
        else:
            row[key] = item
    return row


class SupabaseTable(Generic[ModelT]):
    """Model-aware access to one table."""

    def __init__(self, db: SupabaseService, table: str, model: type[ModelT], key: str = "id"):
        self.db = db
        self.table = table
        self.model = model
        self.key = key

    def insert(self, row: ModelT) -> ModelT:
        return self.model.model_validate(self.db.insert_one(self.table, to_row(row)))

    def get(self, row_id: str) -> ModelT | None:
        row = self.db.select_first(self.table, {self.key: row_id})
        return self.model.model_validate(row) if row else None

    def update(self, row_id: str, fields: dict[str, Any]) -> ModelT | None:
        rows = self.db.update(self.table, {self.key: row_id}, to_row(fields))
        return self.model.model_validate(rows[0]) if rows else None

    def select(self, filters: dict[str, Any], limit: int | None = None) -> list[ModelT]:
        rows = self.db.select_many(self.table, filters=filters, limit=limit)
        return [self.model.model_validate(row) for row in rows]


class SupabaseLedgerRepository:
    def __init__(self, client: Client) -> None:
        db = SupabaseService(client)
        self.accounts = SupabaseTable(db, "accounts", Account, key="user_id")
        self.transactions = SupabaseTable(db, "coin_transactions", TransactionRecord)

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
        return self.transactions.select({"user_id": user_id})

    def list_by_related(self, related_id: str) -> list[TransactionRecord]:
        return self.transactions.select({"related_id": related_id})


class SupabaseMatchRequestRepository:
    def __init__(self, client: Client) -> None:
        self.db = SupabaseService(client)
        self.table = SupabaseTable(self.db, "match_requests", MatchRequest)

    def insert(self, request: MatchRequest) -> MatchRequest:
        return self.table.insert(request)

    def get(self, request_id: str) -> MatchRequest | None:
        return self.table.get(request_id)

    def update(self, request_id: str, fields: dict[str, Any]) -> MatchRequest | None:
        return self.table.update(request_id, fields)

    def list_for_student(self, student_id: str) -> list[MatchRequest]:
        return self.table.select({"student_id": student_id})

    def list_for_tutor(self, tutor_id: str) -> list[MatchRequest]:
        return self.table.select({"tutor_id": tutor_id})

    def list_pending_for_pair(self, student_id: str, tutor_id: str) -> list[MatchRequest]:
        return self.table.select(
            {"student_id": student_id, "tutor_id": tutor_id, "status": MatchStatus.PENDING.value}
        )

    def list_pending_expired(self, now: datetime) -> list[MatchRequest]:
        rows = self.db.execute(
            self.db.client.table("match_requests")
            .select("*")
            .eq("status", MatchStatus.PENDING.value)
            .lt("expires_at", now.isoformat()),
            default=[],
        )
        return [MatchRequest.model_validate(row) for row in rows]


class SupabaseLessonRepository:
    def __init__(self, client: Client) -> None:
        self.table = SupabaseTable(SupabaseService(client), "lessons", Lesson)

    def insert(self, lesson: Lesson) -> Lesson:
        return self.table.insert(lesson)

    def get(self, lesson_id: str) -> Lesson | None:
        return self.table.get(lesson_id)

    def update(self, lesson_id: str, fields: dict[str, Any]) -> Lesson | None:
        return self.table.update(lesson_id, fields)

    def list_for_student(self, student_id: str) -> list[Lesson]:
        return self.table.select({"student_id": student_id})

    def list_for_tutor(self, tutor_id: str) -> list[Lesson]:
        return self.table.select({"tutor_id": tutor_id})


class SupabaseNotificationRepository:
    def __init__(self, client: Client) -> None:
        self.db = SupabaseService(client)
        self.table = SupabaseTable(self.db, "notifications", Notification)

    def insert(self, notification: Notification) -> Notification:
        return self.table.insert(notification)

    def get(self, notification_id: str) -> Notification | None:
        return self.table.get(notification_id)

    def update(self, notification_id: str, fields: dict[str, Any]) -> Notification | None:
        return self.table.update(notification_id, fields)

    def list_for_user(self, user_id: str) -> list[Notification]:
        return self.table.select({"user_id": user_id})

    def mark_all_read(self, user_id: str) -> int:
        """Mark all unread notifications as read and return affected count."""
        rows = self.db.update(
            "notifications",
            {"user_id": user_id, "is_read": False},
            {"is_read": True},
        )
        return len(rows)


class SupabaseOutboxRepository:
    def __init__(self, client: Client) -> None:
        self.table = SupabaseTable(
            SupabaseService(client), "notification_outbox", NotificationIntent
        )

    def insert(self, intent: NotificationIntent) -> NotificationIntent:
        return self.table.insert(intent)

    def update(self, intent_id: str, fields: dict[str, Any]) -> NotificationIntent | None:
        return self.table.update(intent_id, fields)

    def list_pending(self, limit: int = 100) -> list[NotificationIntent]:
        return self.table.select({"status": IntentStatus.PENDING.value}, limit=limit)


class SupabaseChatRoomRepository:
    def __init__(self, client: Client) -> None:
        self.table = SupabaseTable(SupabaseService(client), "chat_rooms", ChatRoom)

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


class SupabaseProfileRepository:
    """Reads names from the ``students`` and ``tutors`` profile tables."""

    def __init__(self, client: Client) -> None:
        self.db = SupabaseService(client)

    def _profile(self, table: str, user_id: str, role: UserRole) -> UserProfile | None:
        row = self.db.select_first(table, {"id": user_id})
        if not row:
            return None
        return UserProfile(id=str(row["id"]), name=str(row.get("name") or ""), role=role)

    def get_user(self, user_id: str) -> UserProfile | None:
        return self.get_student(user_id) or self.get_tutor(user_id)

    def get_student(self, student_id: str) -> UserProfile | None:
        return self._profile("students", student_id, UserRole.STUDENT)

    def get_tutor(self, tutor_id: str) -> UserProfile | None:
        return self._profile("tutors", tutor_id, UserRole.TUTOR)

    def upsert(self, profile: UserProfile) -> UserProfile:
        table = "students" if profile.role == UserRole.STUDENT else "tutors"
        self.db.execute(
            self.db.client.table(table).upsert({"id": profile.id, "name": profile.name}),
            default=[],
        )
        return profile
