"""Matching request business logic."""

from __future__ import annotations

import logging
from uuid import uuid4

from app.config import Settings
from app.repositories.base import ChatRoomRepository, MatchRequestRepository, ProfileRepository
from app.schemas.ledger import TransactionKind
from app.schemas.matching import MatchRequest, MatchStatus
from app.schemas.notification import RelatedType
from app.services.common import display_name, newest_first
from app.services.ledger_service import LedgerService
from app.services.notification_service import NotificationService
from app.utils.errors import (
    AlreadyProcessedError,
    DuplicatePendingError,
    ForbiddenError,
    InsufficientFundsError,
    InvalidInputError,
    NotFoundError,
)
from app.utils.locks import KeyedLock
from app.utils.result import service_operation
from app.utils.time import days_from_now, is_past, now_utc

logger = logging.getLogger(__name__)


class MatchingService:
    """Create and resolve paid match requests between students and tutors.

    Sending a request holds a flat fee from the student. Approval keeps the
    fee; rejection, cancellation and expiry refund it. Overdue requests are
    expired lazily whenever a listing touches them and proactively by the
    sweep job.
    """

    def __init__(
        self,
        requests: MatchRequestRepository,
        ledger: LedgerService,
        notifications: NotificationService,
        profiles: ProfileRepository,
        chat_rooms: ChatRoomRepository,
        config: Settings,
    ) -> None:
        self.requests = requests
        self.ledger = ledger
        self.notifications = notifications
        self.profiles = profiles
        self.chat_rooms = chat_rooms
        self.matching_cost = config.matching_cost
        self.ttl_days = config.match_request_ttl_days
        self.min_message_length = config.match_message_min_length
        self._pair_locks = KeyedLock()
        self._request_locks = KeyedLock()

    @service_operation("Failed to send match request")
    async def send_match_request(
        self,
        student_id: str,
        tutor_id: str,
        message: str,
        schedule_note: str | None = None,
    ) -> MatchRequest:
        """Hold the matching fee and create a pending request."""
        text = (message or "").strip()
        if len(text) < self.min_message_length:
            raise InvalidInputError(
                f"Message must be at least {self.min_message_length} characters"
            )

        student = self.profiles.get_student(student_id)
        if student is None:
            raise NotFoundError("Student")

        tutor = self.profiles.get_tutor(tutor_id)
        if tutor is None:
            raise NotFoundError("Tutor")

        async with self._pair_locks.hold((student_id, tutor_id)):
            await self._expire_overdue(self.requests.list_pending_for_pair(student_id, tutor_id))
            if self.requests.list_pending_for_pair(student_id, tutor_id):
                raise DuplicatePendingError()

            balance = self.ledger.get_balance(student_id)
            if balance < self.matching_cost:
                raise InsufficientFundsError(required=self.matching_cost, available=balance)

            request_id = str(uuid4())
            await self.ledger.debit(
                user_id=student_id,
                amount=self.matching_cost,
                kind=TransactionKind.MATCHING,
                description=f"Match request to {tutor.name}",
                related_id=request_id,
            )
            now = now_utc()
            note = schedule_note.strip() if schedule_note else None
            request = self.requests.insert(
                MatchRequest(
                    id=request_id,
                    student_id=student_id,
                    tutor_id=tutor_id,
                    message=text,
                    schedule_note=note or None,
                    status=MatchStatus.PENDING,
                    coin_cost=self.matching_cost,
                    created_at=now,
                    updated_at=now,
                    expires_at=days_from_now(self.ttl_days, base=now),
                )
            )

        logger.info("Match request %s sent by %s to %s", request.id, student_id, tutor_id)
        await self.notifications.notify(
            "match_received",
            tutor_id,
            related_id=request.id,
            related_type=RelatedType.MATCH,
            student_name=student.name,
        )
        return request

    @service_operation("Failed to fetch match requests")
    async def get_student_match_requests(
        self,
        student_id: str,
        status: MatchStatus | None = None,
    ) -> list[MatchRequest]:
        """Return a student's requests, newest first, expiring overdue ones."""
        rows = await self._expire_overdue(self.requests.list_for_student(student_id))
        return _filter_status(rows, status)

    @service_operation("Failed to fetch match requests")
    async def get_tutor_match_requests(
        self,
        tutor_id: str,
        status: MatchStatus | None = None,
    ) -> list[MatchRequest]:
        """Return requests addressed to a tutor, newest first, expiring overdue ones."""
        rows = await self._expire_overdue(self.requests.list_for_tutor(tutor_id))
        return _filter_status(rows, status)

    @service_operation("Failed to fetch match request")
    async def get_match_request(self, request_id: str) -> MatchRequest:
        return self._get(request_id)

    @service_operation("Failed to approve match request")
    async def approve_match_request(
        self,
        request_id: str,
        actor_id: str | None = None,
    ) -> MatchRequest:
        """Approve a pending request and open a chat room for the pair."""
        request = self._get(request_id)
        _ensure_actor(request.tutor_id, actor_id, "Only the tutor can approve this request")
        await self._refuse_if_overdue(request)

        async with self._request_locks.hold(request_id):
            current = self._get(request_id)
            if not current.is_pending:
                raise AlreadyProcessedError("This request has already been processed")
            room = self.chat_rooms.create_chat_room(current.tutor_id, current.student_id)
            updated = self._update(
                request_id,
                {"status": MatchStatus.APPROVED, "chat_room_id": room.id, "updated_at": now_utc()},
            )

        logger.info("Match request %s approved (chat room %s)", request_id, room.id)
        await self.notifications.notify(
            "match_approved",
            updated.student_id,
            related_id=request_id,
            related_type=RelatedType.MATCH,
            tutor_name=display_name(self.profiles, updated.tutor_id, "Your tutor"),
        )
        return updated

    @service_operation("Failed to reject match request")
    async def reject_match_request(
        self,
        request_id: str,
        reason: str | None = None,
        actor_id: str | None = None,
    ) -> MatchRequest:
        """Reject a pending request and refund the student."""
        request = self._get(request_id)
        _ensure_actor(request.tutor_id, actor_id, "Only the tutor can reject this request")
        await self._refuse_if_overdue(request)

        updated = await self._close_with_refund(
            request_id,
            MatchStatus.REJECTED,
            reason=reason,
            refund_description="Refund: match request declined",
        )
        names = self._names(updated)
        await self.notifications.notify(
            "match_rejected_student",
            updated.student_id,
            related_id=request_id,
            related_type=RelatedType.MATCH,
            **names,
        )
        await self.notifications.notify(
            "match_rejected_tutor",
            updated.tutor_id,
            related_id=request_id,
            related_type=RelatedType.MATCH,
            **names,
        )
        return updated

    @service_operation("Failed to cancel match request")
    async def cancel_match_request(
        self,
        request_id: str,
        actor_id: str | None = None,
    ) -> MatchRequest:
        """Cancel a pending request on the student's behalf and refund the fee."""
        request = self._get(request_id)
        _ensure_actor(request.student_id, actor_id, "Only the student can cancel this request")
        await self._refuse_if_overdue(request)

        updated = await self._close_with_refund(
            request_id,
            MatchStatus.CANCELLED,
            reason=None,
            refund_description="Refund: match request cancelled",
        )
        names = self._names(updated)
        await self.notifications.notify(
            "match_cancelled_student",
            updated.student_id,
            related_id=request_id,
            related_type=RelatedType.MATCH,
            **names,
        )
        await self.notifications.notify(
            "match_cancelled_tutor",
            updated.tutor_id,
            related_id=request_id,
            related_type=RelatedType.MATCH,
            **names,
        )
        return updated

    async def expire_overdue_requests(self) -> list[MatchRequest]:
        """Expire and refund every pending request past its deadline."""
        overdue = self.requests.list_pending_expired(now_utc())
        expired: list[MatchRequest] = []
        for request in overdue:
            updated = await self._expire(request.id)
            if updated is not None and updated.status == MatchStatus.EXPIRED:
                expired.append(updated)
        return expired

    async def _expire_overdue(self, rows: list[MatchRequest]) -> list[MatchRequest]:
        refreshed: list[MatchRequest] = []
        for request in rows:
            if request.is_pending and is_past(request.expires_at):
                request = await self._expire(request.id) or request
            refreshed.append(request)
        return refreshed

    async def _expire(self, request_id: str) -> MatchRequest | None:
        async with self._request_locks.hold(request_id):
            current = self.requests.get(request_id)
            if current is None or not current.is_pending or not is_past(current.expires_at):
                return current
            updated = await self._refund_and_update(
                current,
                MatchStatus.EXPIRED,
                reason="Expired without a reply",
                refund_description="Refund: match request expired",
            )

        logger.info("Match request %s expired", request_id)
        await self.notifications.notify(
            "match_expired",
            updated.student_id,
            related_id=request_id,
            related_type=RelatedType.MATCH,
            tutor_name=display_name(self.profiles, updated.tutor_id, "your tutor"),
        )
        return updated

    async def _refuse_if_overdue(self, request: MatchRequest) -> None:
        if request.is_pending and is_past(request.expires_at):
            await self._expire(request.id)
            raise AlreadyProcessedError("This request has expired")

    async def _close_with_refund(
        self,
        request_id: str,
        status: MatchStatus,
        reason: str | None,
        refund_description: str,
    ) -> MatchRequest:
        async with self._request_locks.hold(request_id):
            current = self._get(request_id)
            if not current.is_pending:
                raise AlreadyProcessedError("This request has already been processed")
            updated = await self._refund_and_update(current, status, reason, refund_description)

        logger.info("Match request %s %s", request_id, status.value)
        return updated

    async def _refund_and_update(
        self,
        request: MatchRequest,
        status: MatchStatus,
        reason: str | None,
        refund_description: str,
    ) -> MatchRequest:
        await self.ledger.credit(
            user_id=request.student_id,
            amount=request.coin_cost,
            kind=TransactionKind.REFUND,
            description=refund_description,
            related_id=request.id,
        )
        return self._update(
            request.id,
            {"status": status, "status_reason": reason, "updated_at": now_utc()},
        )

    def _get(self, request_id: str) -> MatchRequest:
        request = self.requests.get(request_id)
        if request is None:
            raise NotFoundError("Match request")
        return request

    def _update(self, request_id: str, fields: dict[str, object]) -> MatchRequest:
        updated = self.requests.update(request_id, fields)
        if updated is None:
            raise NotFoundError("Match request")
        return updated

    def _names(self, request: MatchRequest) -> dict[str, str]:
        return {
            "student_name": display_name(self.profiles, request.student_id, "The student"),
            "tutor_name": display_name(self.profiles, request.tutor_id, "Your tutor"),
        }


def _filter_status(rows: list[MatchRequest], status: MatchStatus | None) -> list[MatchRequest]:
    if status is not None:
        rows = [row for row in rows if row.status == status]
    return newest_first(rows)


def _ensure_actor(expected_id: str, actor_id: str | None, reason: str) -> None:
    if actor_id is not None and actor_id != expected_id:
        raise ForbiddenError(reason)
