"""Lesson booking and escrow business logic."""

from __future__ import annotations

import logging
from collections.abc import Collection
from datetime import datetime
from decimal import ROUND_FLOOR, Decimal
from uuid import uuid4

from app.config import Settings
from app.repositories.base import LessonRepository, ProfileRepository
from app.schemas.common import ApiResponse
from app.schemas.ledger import TransactionKind, TransactionStatus
from app.schemas.lesson import (
    TERMINAL_LESSON_STATUSES,
    EscrowSnapshot,
    EscrowStatus,
    Lesson,
    LessonStatus,
)
from app.schemas.notification import RelatedType
from app.services.common import display_name, newest_first, paginate
from app.services.ledger_service import LedgerService
from app.services.notification_service import NotificationService
from app.utils.errors import (
    AlreadyProcessedError,
    ForbiddenError,
    InvalidInputError,
    InvalidStateTransitionError,
    NotFoundError,
)
from app.utils.locks import KeyedLock
from app.utils.result import service_operation
from app.utils.time import now_utc, parse_timestamp

logger = logging.getLogger(__name__)

MIN_RATING = 1
MAX_RATING = 5


class EscrowService:
    """Hold, escrow, release and refund the coins of paid lessons.

    Booking debits the student right away as a pending hold. Approval turns
    the hold into escrow. Completion pays the tutor minus the platform fee.
    Rejection and cancellation credit the full cost back to the student.
    """

    def __init__(
        self,
        lessons: LessonRepository,
        ledger: LedgerService,
        notifications: NotificationService,
        profiles: ProfileRepository,
        config: Settings,
    ) -> None:
        self.lessons = lessons
        self.ledger = ledger
        self.notifications = notifications
        self.profiles = profiles
        self.fee_rate = Decimal(str(config.platform_fee_rate))
        self.platform_account_id = config.platform_account_id
        self._lesson_locks = KeyedLock()

    def platform_fee(self, coin_cost: int) -> int:
        """Return the platform share of ``coin_cost``, rounded down."""
        fee = (Decimal(coin_cost) * self.fee_rate).to_integral_value(rounding=ROUND_FLOOR)
        return int(fee)

    @service_operation("Failed to book lesson")
    async def book_lesson(
        self,
        student_id: str,
        tutor_id: str,
        subject: str,
        scheduled_at: datetime,
        duration_minutes: int,
        coin_cost: int,
        lesson_notes: str | None = None,
    ) -> Lesson:
        """Reserve the lesson cost from the student and create a pending lesson."""
        subject = (subject or "").strip()
        if not subject:
            raise InvalidInputError("Subject is required")
        if duration_minutes <= 0:
            raise InvalidInputError("Duration must be greater than 0")
        if coin_cost <= 0:
            raise InvalidInputError("Coin cost must be greater than 0")

        tutor = self.profiles.get_tutor(tutor_id)
        if tutor is None:
            raise NotFoundError("Tutor")
        student = self.profiles.get_student(student_id)
        if student is None:
            raise NotFoundError("Student")

        lesson_id = str(uuid4())
        await self.ledger.debit(
            user_id=student_id,
            amount=coin_cost,
            kind=TransactionKind.LESSON_PAYMENT,
            description=f"Lesson reservation: {subject}",
            related_id=lesson_id,
            status=TransactionStatus.PENDING,
        )
        now = now_utc()
        lesson = self.lessons.insert(
            Lesson(
                id=lesson_id,
                tutor_id=tutor_id,
                student_id=student_id,
                subject=subject,
                scheduled_at=parse_timestamp(scheduled_at),
                duration_minutes=duration_minutes,
                coin_cost=coin_cost,
                status=LessonStatus.PENDING,
                escrow_status=EscrowStatus.RESERVED,
                lesson_notes=lesson_notes,
                created_at=now,
                updated_at=now,
            )
        )

        logger.info(
            "Lesson %s booked by %s with %s (%s coins)", lesson_id, student_id, tutor_id, coin_cost
        )
        await self.notifications.notify(
            "lesson_requested",
            tutor_id,
            related_id=lesson_id,
            related_type=RelatedType.LESSON,
            student_name=student.name,
            subject=subject,
        )
        return lesson

    @service_operation("Failed to approve lesson")
    async def approve_lesson(self, lesson_id: str, actor_id: str | None = None) -> Lesson:
        """Move a pending lesson's hold into escrow."""
        async with self._lesson_locks.hold(lesson_id):
            lesson = self._get(lesson_id)
            _ensure_actor(actor_id, {lesson.tutor_id}, "Only the tutor can approve this lesson")
            _check_transition(lesson, {LessonStatus.PENDING}, "approve")

            hold = self.ledger.find_pending_hold(lesson.student_id, lesson_id)
            if hold is not None:
                self.ledger.set_status(
                    hold.id,
                    TransactionStatus.COMPLETED,
                    description=f"Lesson payment (escrow): {lesson.subject}",
                )
            else:
                logger.warning("Lesson %s approved without a pending hold", lesson_id)

            now = now_utc()
            updated = self._update(
                lesson_id,
                {
                    "status": LessonStatus.APPROVED,
                    "escrow_status": EscrowStatus.ESCROWED,
                    "approved_at": now,
                    "updated_at": now,
                },
            )

        logger.info("Lesson %s approved", lesson_id)
        await self._notify("lesson_approved", updated.student_id, updated)
        return updated

    @service_operation("Failed to start lesson")
    async def start_lesson(self, lesson_id: str, actor_id: str | None = None) -> Lesson:
        async with self._lesson_locks.hold(lesson_id):
            lesson = self._get(lesson_id)
            _ensure_actor(actor_id, {lesson.tutor_id}, "Only the tutor can start this lesson")
            _check_transition(lesson, {LessonStatus.APPROVED}, "start")
            updated = self._update(
                lesson_id, {"status": LessonStatus.IN_PROGRESS, "updated_at": now_utc()}
            )

        logger.info("Lesson %s started", lesson_id)
        await self._notify("lesson_started", updated.student_id, updated)
        return updated

    @service_operation("Failed to complete lesson")
    async def complete_lesson(
        self,
        lesson_id: str,
        feedback: str | None = None,
        rating: int | None = None,
        actor_id: str | None = None,
    ) -> Lesson:
        """Release escrow: pay the tutor and record the platform fee."""
        if rating is not None:
            _validate_rating(rating)

        async with self._lesson_locks.hold(lesson_id):
            lesson = self._get(lesson_id)
            _ensure_actor(actor_id, {lesson.tutor_id}, "Only the tutor can complete this lesson")
            _check_transition(lesson, {LessonStatus.APPROVED, LessonStatus.IN_PROGRESS}, "complete")

            fee = self.platform_fee(lesson.coin_cost)
            payout = lesson.coin_cost - fee
            if payout > 0:
                await self.ledger.credit(
                    user_id=lesson.tutor_id,
                    amount=payout,
                    kind=TransactionKind.LESSON_PAYMENT,
                    description=f"Lesson earnings: {lesson.subject}",
                    related_id=lesson_id,
                )
            if fee > 0:
                await self.ledger.credit(
                    user_id=self.platform_account_id,
                    amount=fee,
                    kind=TransactionKind.SPEND,
                    description=f"Platform fee: {lesson.subject}",
                    related_id=lesson_id,
                )

            now = now_utc()
            fields: dict[str, object] = {
                "status": LessonStatus.COMPLETED,
                "escrow_status": EscrowStatus.RELEASED,
                "completed_at": now,
                "updated_at": now,
            }
            if feedback is not None:
                fields["tutor_feedback"] = feedback
            if rating is not None:
                fields["student_rating"] = rating
            updated = self._update(lesson_id, fields)

        logger.info(
            "Lesson %s completed: tutor %s +%s, platform fee %s",
            lesson_id,
            updated.tutor_id,
            payout,
            fee,
        )
        await self._notify("lesson_paid", updated.tutor_id, updated, amount=payout)
        return updated

    @service_operation("Failed to reject lesson")
    async def reject_lesson(
        self,
        lesson_id: str,
        reason: str | None = None,
        actor_id: str | None = None,
    ) -> Lesson:
        """Decline a pending lesson and refund the student in full."""
        async with self._lesson_locks.hold(lesson_id):
            lesson = self._get(lesson_id)
            _ensure_actor(actor_id, {lesson.tutor_id}, "Only the tutor can reject this lesson")
            _check_transition(lesson, {LessonStatus.PENDING}, "reject")
            updated = await self._refund(
                lesson,
                LessonStatus.REJECTED,
                reason,
                f"Refund: lesson declined ({lesson.subject})",
            )

        await self._notify("lesson_rejected", updated.student_id, updated)
        return updated

    @service_operation("Failed to cancel lesson")
    async def cancel_lesson(
        self,
        lesson_id: str,
        reason: str | None = None,
        actor_id: str | None = None,
    ) -> Lesson:
        """Cancel a pending or approved lesson and refund the student in full."""
        async with self._lesson_locks.hold(lesson_id):
            lesson = self._get(lesson_id)
            _ensure_actor(
                actor_id,
                {lesson.student_id, lesson.tutor_id},
                "Only a participant can cancel this lesson",
            )
            _check_transition(lesson, {LessonStatus.PENDING, LessonStatus.APPROVED}, "cancel")
            updated = await self._refund(
                lesson,
                LessonStatus.CANCELLED,
                reason,
                f"Refund: lesson cancelled ({lesson.subject})",
            )

        await self._notify("lesson_cancelled_student", updated.student_id, updated)
        await self._notify("lesson_cancelled_tutor", updated.tutor_id, updated)
        return updated

    @service_operation("Failed to rate lesson")
    async def rate_lesson(self, lesson_id: str, rating: int, actor_id: str | None = None) -> Lesson:
        _validate_rating(rating)
        async with self._lesson_locks.hold(lesson_id):
            lesson = self._get(lesson_id)
            _ensure_actor(actor_id, {lesson.student_id}, "Only the student can rate this lesson")
            if lesson.status != LessonStatus.COMPLETED:
                raise InvalidStateTransitionError("Only completed lessons can be rated")
            return self._update(lesson_id, {"student_rating": rating, "updated_at": now_utc()})

    @service_operation("Failed to fetch lesson")
    async def get_lesson(self, lesson_id: str) -> Lesson:
        return self._get(lesson_id)

    @service_operation("Failed to fetch lessons")
    async def list_student_lessons(
        self,
        student_id: str,
        status: LessonStatus | None = None,
        page: int = 1,
        limit: int = 20,
    ) -> ApiResponse[list[Lesson]]:
        return _page(self.lessons.list_for_student(student_id), status, page, limit)

    @service_operation("Failed to fetch lessons")
    async def list_tutor_lessons(
        self,
        tutor_id: str,
        status: LessonStatus | None = None,
        page: int = 1,
        limit: int = 20,
    ) -> ApiResponse[list[Lesson]]:
        return _page(self.lessons.list_for_tutor(tutor_id), status, page, limit)

    @service_operation("Failed to fetch escrow status")
    async def get_escrow_status(self, lesson_id: str) -> EscrowSnapshot:
        """Return the lesson with every ledger entry recorded against it."""
        lesson = self._get(lesson_id)
        return EscrowSnapshot(lesson=lesson, transactions=self.ledger.entries_for(lesson_id))

    async def _refund(
        self,
        lesson: Lesson,
        status: LessonStatus,
        reason: str | None,
        description: str,
    ) -> Lesson:
        await self.ledger.credit(
            user_id=lesson.student_id,
            amount=lesson.coin_cost,
            kind=TransactionKind.LESSON_REFUND,
            description=description,
            related_id=lesson.id,
        )
        hold = self.ledger.find_pending_hold(lesson.student_id, lesson.id)
        if hold is not None:
            self.ledger.set_status(hold.id, TransactionStatus.CANCELLED)

        updated = self._update(
            lesson.id,
            {
                "status": status,
                "escrow_status": EscrowStatus.REFUNDED,
                "status_reason": reason,
                "updated_at": now_utc(),
            },
        )
        logger.info("Lesson %s %s, refunded %s coins", lesson.id, status.value, lesson.coin_cost)
        return updated

    async def _notify(self, template: str, user_id: str, lesson: Lesson, **context: object) -> None:
        await self.notifications.notify(
            template,
            user_id,
            related_id=lesson.id,
            related_type=RelatedType.LESSON,
            subject=lesson.subject,
            student_name=display_name(self.profiles, lesson.student_id, "The student"),
            tutor_name=display_name(self.profiles, lesson.tutor_id, "Your tutor"),
            **context,
        )

    def _get(self, lesson_id: str) -> Lesson:
        lesson = self.lessons.get(lesson_id)
        if lesson is None:
            raise NotFoundError("Lesson")
        return lesson

    def _update(self, lesson_id: str, fields: dict[str, object]) -> Lesson:
        updated = self.lessons.update(lesson_id, fields)
        if updated is None:
            raise NotFoundError("Lesson")
        return updated


def _check_transition(lesson: Lesson, allowed: Collection[LessonStatus], action: str) -> None:
    if lesson.status in TERMINAL_LESSON_STATUSES:
        raise AlreadyProcessedError(f"This lesson is already {lesson.status.value}")
    if lesson.status not in allowed:
        raise InvalidStateTransitionError(
            f"Cannot {action} a lesson that is {lesson.status.value}"
        )


def _validate_rating(rating: int) -> None:
    if not MIN_RATING <= rating <= MAX_RATING:
        raise InvalidInputError(f"Rating must be between {MIN_RATING} and {MAX_RATING}")


def _ensure_actor(actor_id: str | None, allowed: Collection[str], reason: str) -> None:
    if actor_id is not None and actor_id not in allowed:
        raise ForbiddenError(reason)


def _page(
    rows: list[Lesson],
    status: LessonStatus | None,
    page: int,
    limit: int,
) -> ApiResponse[list[Lesson]]:
    if status is not None:
        rows = [row for row in rows if row.status == status]
    items, pagination = paginate(newest_first(rows, key="scheduled_at"), page, limit)
    return ApiResponse.ok(items, pagination=pagination)
