"""Composition root: builds repositories and services from settings."""

from __future__ import annotations

import logging

from app.config import Settings
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
from app.schemas.user import UserProfile, UserRole
from app.services.coin_service import CoinService
from app.services.escrow_service import EscrowService
from app.services.ledger_service import LedgerService
from app.services.matching_service import MatchingService
from app.services.notification_service import NotificationService
from app.services.realtime_service import RealtimeService

logger = logging.getLogger(__name__)

# (id, name, role, opening balance)
DEMO_USERS: tuple[tuple[str, str, UserRole, int], ...] = (
    ("student-1", "Hanako Tanaka", UserRole.STUDENT, 500),
    ("student-2", "Taro Yamada", UserRole.STUDENT, 750),
    ("tutor-1", "Taro Sato", UserRole.TUTOR, 0),
    ("tutor-2", "Eiko Yamada", UserRole.TUTOR, 0),
    ("tutor-3", "Kenichi Suzuki", UserRole.TUTOR, 0),
    ("tutor-4", "Minami Tanaka", UserRole.TUTOR, 0),
    ("tutor-5", "Yuto Takahashi", UserRole.TUTOR, 0),
    ("tutor-6", "Sakura Sato", UserRole.TUTOR, 0),
    ("tutor-7", "Hiroshi Nakamura", UserRole.TUTOR, 0),
    ("tutor-8", "Mika Ito", UserRole.TUTOR, 0),
)


class Repositories:
    """One storage adapter per entity."""

    def __init__(
        self,
        ledger: LedgerRepository,
        match_requests: MatchRequestRepository,
        lessons: LessonRepository,
        notifications: NotificationRepository,
        outbox: OutboxRepository,
        chat_rooms: ChatRoomRepository,
        profiles: ProfileRepository,
    ) -> None:
        self.ledger = ledger
        self.match_requests = match_requests
        self.lessons = lessons
        self.notifications = notifications
        self.outbox = outbox
        self.chat_rooms = chat_rooms
        self.profiles = profiles

    @classmethod
    def in_memory(cls) -> "Repositories":
        return cls(
            ledger=MemoryLedgerRepository(),
            match_requests=MemoryMatchRequestRepository(),
            lessons=MemoryLessonRepository(),
            notifications=MemoryNotificationRepository(),
            outbox=MemoryOutboxRepository(),
            chat_rooms=MemoryChatRoomRepository(),
            profiles=MemoryProfileRepository(),
        )

    @classmethod
    def supabase(cls) -> "Repositories":
        from app.repositories.supabase_store import (
            SupabaseChatRoomRepository,
            SupabaseLedgerRepository,
            SupabaseLessonRepository,
            SupabaseMatchRequestRepository,
            SupabaseNotificationRepository,
            SupabaseOutboxRepository,
            SupabaseProfileRepository,
        )
        from app.utils.supabase_client import get_service_client

        client = get_service_client()
        return cls(
            ledger=SupabaseLedgerRepository(client),
            match_requests=SupabaseMatchRequestRepository(client),
            lessons=SupabaseLessonRepository(client),
            notifications=SupabaseNotificationRepository(client),
            outbox=SupabaseOutboxRepository(client),
            chat_rooms=SupabaseChatRoomRepository(client),
            profiles=SupabaseProfileRepository(client),
        )


class ServiceContainer:
    """Holds the wired services for one application instance."""

    def __init__(self, config: Settings, repositories: Repositories) -> None:
        self.config = config
        self.repositories = repositories
        self.profiles = repositories.profiles

        self.ledger = LedgerService(
            repositories.ledger, io_latency_ms=config.simulated_io_latency_ms
        )
        self.notifications = NotificationService(
            repositories.notifications,
            repositories.outbox,
            max_attempts=config.notification_max_attempts,
        )
        self.coins = CoinService(self.ledger)
        self.matching = MatchingService(
            repositories.match_requests,
            self.ledger,
            self.notifications,
            repositories.profiles,
            repositories.chat_rooms,
            config,
        )
        self.escrow = EscrowService(
            repositories.lessons,
            self.ledger,
            self.notifications,
            repositories.profiles,
            config,
        )
        self.realtime = RealtimeService(
            repositories.notifications,
            repositories.lessons,
            poll_interval=config.realtime_poll_interval_seconds,
        )

    def register_user(
        self,
        user_id: str,
        name: str,
        role: UserRole,
        opening_balance: int = 0,
    ) -> UserProfile:
        """Create the profile and the coin account of a user."""
        profile = self.profiles.upsert(UserProfile(id=user_id, name=name, role=role))
        self.ledger.open_account(user_id, opening_balance)
        return profile

    def seed_demo_data(self) -> None:
        for user_id, name, role, balance in DEMO_USERS:
            self.register_user(user_id, name, role, opening_balance=balance)
        logger.info("Seeded %s demo users", len(DEMO_USERS))


def build_container(
    config: Settings,
    repositories: Repositories | None = None,
) -> ServiceContainer:
    """Wire services for ``config``; explicit ``repositories`` win over the backend setting."""
    if repositories is None:
        if config.storage_backend == "supabase":
            repositories = Repositories.supabase()
        else:
            repositories = Repositories.in_memory()

    container = ServiceContainer(config, repositories)
    container.ledger.open_account(config.platform_account_id)
    if config.seed_demo_data and config.storage_backend == "memory":
        container.seed_demo_data()
    logger.info("Service container ready (storage=%s)", config.storage_backend)
    return container
