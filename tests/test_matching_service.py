"""Matching engine tests."""

from __future__ import annotations

import asyncio
from datetime import timedelta

import pytest

from app.container import ServiceContainer
from app.schemas.ledger import TransactionKind
from app.schemas.matching import MatchRequest, MatchStatus
from app.schemas.notification import NotificationType
from app.schemas.user import UserRole
from app.utils.time import now_utc

MESSAGE = "Could you help me prepare for my calculus exam?"


async def _send(container: ServiceContainer, student_id: str = "student-1") -> MatchRequest:
    result = await container.matching.send_match_request(student_id, "tutor-1", MESSAGE)
    assert result.success, result.error
    return result.data


def _make_overdue(container: ServiceContainer, request_id: str) -> None:
    container.repositories.match_requests.update(
        request_id, {"expires_at": now_utc() - timedelta(minutes=1)}
    )


def _types_for(container: ServiceContainer, user_id: str) -> list[NotificationType]:
    return [row.type for row in container.repositories.notifications.list_for_user(user_id)]


@pytest.mark.asyncio
async def test_send_holds_fee_and_notifies_tutor(container: ServiceContainer) -> None:
    request = await _send(container)

    assert request.status == MatchStatus.PENDING
    assert request.coin_cost == 300
    assert request.expires_at - request.created_at == timedelta(days=7)
    assert container.ledger.get_balance("student-1") == 200

    entries = container.ledger.entries_for(request.id)
    assert [(row.kind, row.amount) for row in entries] == [(TransactionKind.MATCHING, -300)]
    assert _types_for(container, "tutor-1") == [NotificationType.MATCH_REQUEST_RECEIVED]


@pytest.mark.asyncio
async def test_short_message_is_rejected(container: ServiceContainer) -> None:
    result = await container.matching.send_match_request("student-1", "tutor-1", "  too short  ")

    assert result.code == "VALIDATION_ERROR"
    assert container.ledger.get_balance("student-1") == 500


@pytest.mark.asyncio
async def test_unknown_tutor_is_not_found(container: ServiceContainer) -> None:
    result = await container.matching.send_match_request("student-1", "tutor-404", MESSAGE)

    assert result.code == "NOT_FOUND"
    assert container.ledger.get_balance("student-1") == 500


@pytest.mark.asyncio
async def test_insufficient_funds_creates_nothing(container: ServiceContainer) -> None:
    """A student with 200 coins cannot afford the 300-coin fee."""
    container.register_user("student-poor", "Ken Mori", UserRole.STUDENT, opening_balance=200)

    result = await container.matching.send_match_request("student-poor", "tutor-1", MESSAGE)

    assert result.success is False
    assert result.code == "INSUFFICIENT_FUNDS"
    assert container.ledger.get_balance("student-poor") == 200
    assert container.repositories.match_requests.list_for_student("student-poor") == []
    assert container.repositories.ledger.list_transactions("student-poor") == []


@pytest.mark.asyncio
async def test_duplicate_pending_request_is_refused(container: ServiceContainer) -> None:
    await _send(container, "student-2")

    result = await container.matching.send_match_request("student-2", "tutor-1", MESSAGE)

    assert result.code == "DUPLICATE_PENDING"
    assert container.ledger.get_balance("student-2") == 450


@pytest.mark.asyncio
async def test_approve_opens_chat_and_keeps_fee(container: ServiceContainer) -> None:
    request = await _send(container)

    result = await container.matching.approve_match_request(request.id, actor_id="tutor-1")

    assert result.success is True
    assert result.data.status == MatchStatus.APPROVED
    assert container.repositories.chat_rooms.get(result.data.chat_room_id) is not None
    assert container.ledger.get_balance("student-1") == 200
    assert _types_for(container, "student-1") == [NotificationType.MATCH_REQUEST_APPROVED]


@pytest.mark.asyncio
async def test_second_approval_is_already_processed(container: ServiceContainer) -> None:
    request = await _send(container)
    await container.matching.approve_match_request(request.id)

    again = await container.matching.approve_match_request(request.id)
    reject = await container.matching.reject_match_request(request.id)

    assert again.code == "ALREADY_PROCESSED"
    assert reject.code == "ALREADY_PROCESSED"
    assert container.ledger.get_balance("student-1") == 200


@pytest.mark.asyncio
async def test_concurrent_approve_and_reject_apply_once(container: ServiceContainer) -> None:
    request = await _send(container)

    approve, reject = await asyncio.gather(
        container.matching.approve_match_request(request.id),
        container.matching.reject_match_request(request.id),
    )

    assert [approve.success, reject.success].count(True) == 1
    balance = container.ledger.get_balance("student-1")
    assert balance == (200 if approve.success else 500)


@pytest.mark.asyncio
async def test_reject_refunds_and_notifies_both(container: ServiceContainer) -> None:
    request = await _send(container)

    result = await container.matching.reject_match_request(
        request.id, reason="Fully booked this month", actor_id="tutor-1"
    )

    assert result.data.status == MatchStatus.REJECTED
    assert result.data.status_reason == "Fully booked this month"
    assert container.ledger.get_balance("student-1") == 500
    refunds = [row for row in container.ledger.entries_for(request.id) if row.amount > 0]
    assert [(row.kind, row.amount) for row in refunds] == [(TransactionKind.REFUND, 300)]
    assert NotificationType.MATCH_REQUEST_REJECTED in _types_for(container, "student-1")
    assert NotificationType.MATCH_REQUEST_REJECTED in _types_for(container, "tutor-1")


@pytest.mark.asyncio
async def test_cancel_is_student_only(container: ServiceContainer) -> None:
    request = await _send(container)

    forbidden = await container.matching.cancel_match_request(request.id, actor_id="tutor-1")
    cancelled = await container.matching.cancel_match_request(request.id, actor_id="student-1")

    assert forbidden.code == "FORBIDDEN"
    assert cancelled.data.status == MatchStatus.CANCELLED
    assert container.ledger.get_balance("student-1") == 500
    assert NotificationType.MATCH_REQUEST_CANCELLED in _types_for(container, "tutor-1")


@pytest.mark.asyncio
async def test_student_cannot_approve(container: ServiceContainer) -> None:
    request = await _send(container)

    result = await container.matching.approve_match_request(request.id, actor_id="student-1")

    assert result.code == "FORBIDDEN"


@pytest.mark.asyncio
async def test_listing_expires_overdue_requests(container: ServiceContainer) -> None:
    """Reading the list past the deadline refunds the fee and notifies the student."""
    request = await _send(container)
    _make_overdue(container, request.id)

    result = await container.matching.get_student_match_requests("student-1")

    assert [row.status for row in result.data] == [MatchStatus.EXPIRED]
    assert container.ledger.get_balance("student-1") == 500
    assert NotificationType.MATCH_REQUEST_EXPIRED in _types_for(container, "student-1")

    again = await container.matching.get_tutor_match_requests("tutor-1")
    assert [row.status for row in again.data] == [MatchStatus.EXPIRED]
    assert container.ledger.get_balance("student-1") == 500


@pytest.mark.asyncio
async def test_approving_overdue_request_expires_it(container: ServiceContainer) -> None:
    request = await _send(container)
    _make_overdue(container, request.id)

    result = await container.matching.approve_match_request(request.id)

    assert result.code == "ALREADY_PROCESSED"
    stored = container.repositories.match_requests.get(request.id)
    assert stored.status == MatchStatus.EXPIRED
    assert container.ledger.get_balance("student-1") == 500


@pytest.mark.asyncio
async def test_overdue_request_does_not_block_a_new_one(container: ServiceContainer) -> None:
    first = await _send(container)
    _make_overdue(container, first.id)

    second = await _send(container)

    assert second.id != first.id
    assert container.repositories.match_requests.get(first.id).status == MatchStatus.EXPIRED
    assert container.ledger.get_balance("student-1") == 200


@pytest.mark.asyncio
async def test_status_filter_and_ordering(container: ServiceContainer) -> None:
    first = await _send(container)
    await container.matching.cancel_match_request(first.id)
    second = await _send(container)

    everything = await container.matching.get_student_match_requests("student-1")
    pending = await container.matching.get_student_match_requests(
        "student-1", status=MatchStatus.PENDING
    )

    assert [row.id for row in everything.data] == [second.id, first.id]
    assert [row.id for row in pending.data] == [second.id]


@pytest.mark.asyncio
async def test_expiry_sweep_is_idempotent(container: ServiceContainer) -> None:
    request = await _send(container)
    _make_overdue(container, request.id)

    expired = await container.matching.expire_overdue_requests()
    again = await container.matching.expire_overdue_requests()

    assert [row.id for row in expired] == [request.id]
    assert again == []
    assert container.ledger.get_balance("student-1") == 500


@pytest.mark.asyncio
async def test_get_unknown_request(container: ServiceContainer) -> None:
    result = await container.matching.get_match_request("missing")

    assert result.code == "NOT_FOUND"
