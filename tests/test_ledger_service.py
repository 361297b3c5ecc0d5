"""Ledger store tests."""

from __future__ import annotations

import asyncio

import pytest

from app.repositories.memory import MemoryLedgerRepository
from app.schemas.ledger import TransactionKind, TransactionRecord, TransactionStatus
from app.services.ledger_service import LedgerService
from app.utils.errors import InsufficientFundsError, InvalidInputError, NotFoundError


@pytest.fixture
def ledger() -> LedgerService:
    service = LedgerService(MemoryLedgerRepository())
    service.open_account("student-1", 500)
    return service


def test_open_account_is_idempotent(ledger: LedgerService) -> None:
    """Opening an existing account keeps its original opening balance."""
    account = ledger.open_account("student-1", 9999)
    assert account.opening_balance == 500
    assert ledger.get_balance("student-1") == 500


def test_open_account_rejects_negative_balance(ledger: LedgerService) -> None:
    with pytest.raises(InvalidInputError):
        ledger.open_account("someone", -1)


def test_unknown_account_is_not_found(ledger: LedgerService) -> None:
    with pytest.raises(NotFoundError):
        ledger.get_balance("ghost")


@pytest.mark.asyncio
async def test_credit_and_debit_move_balance(ledger: LedgerService) -> None:
    """Debits are stored negative and the balance is the running sum."""
    debit = await ledger.debit("student-1", 300, TransactionKind.MATCHING, "Match request")
    await ledger.credit("student-1", 100, TransactionKind.PURCHASE, "Coin purchase")

    assert debit.amount == -300
    assert debit.status == TransactionStatus.COMPLETED
    assert ledger.get_balance("student-1") == 300


@pytest.mark.asyncio
async def test_debit_beyond_balance_records_nothing(ledger: LedgerService) -> None:
    with pytest.raises(InsufficientFundsError) as exc_info:
        await ledger.debit("student-1", 501, TransactionKind.SPEND, "Too much")

    assert exc_info.value.required == 501
    assert exc_info.value.available == 500
    assert ledger.get_balance("student-1") == 500
    rows, _ = ledger.list_transactions("student-1")
    assert rows == []


@pytest.mark.asyncio
@pytest.mark.parametrize("amount", [0, -5])
async def test_amount_must_be_positive(ledger: LedgerService, amount: int) -> None:
    with pytest.raises(InvalidInputError):
        await ledger.credit("student-1", amount, TransactionKind.PURCHASE, "Nothing")


@pytest.mark.asyncio
async def test_concurrent_debits_never_overdraw() -> None:
    """Only one of three concurrent 300-coin debits fits into 500 coins."""
    ledger = LedgerService(MemoryLedgerRepository(), io_latency_ms=5)
    ledger.open_account("student-1", 500)

    results = await asyncio.gather(
        *(
            ledger.debit("student-1", 300, TransactionKind.MATCHING, f"Request {i}")
            for i in range(3)
        ),
        return_exceptions=True,
    )

    successes = [result for result in results if isinstance(result, TransactionRecord)]
    failures = [result for result in results if isinstance(result, InsufficientFundsError)]
    assert len(successes) == 1
    assert len(failures) == 2
    assert ledger.get_balance("student-1") == 200


@pytest.mark.asyncio
async def test_list_transactions_pages_newest_first(ledger: LedgerService) -> None:
    for index in range(5):
        await ledger.credit("student-1", index + 1, TransactionKind.PURCHASE, f"Purchase {index}")

    first_page, pagination = ledger.list_transactions("student-1", page=1, limit=2)
    last_page, last_pagination = ledger.list_transactions("student-1", page=3, limit=2)

    assert [row.amount for row in first_page] == [5, 4]
    assert pagination.total == 5
    assert pagination.has_more is True
    assert [row.amount for row in last_page] == [1]
    assert last_pagination.has_more is False


def test_list_transactions_rejects_bad_page(ledger: LedgerService) -> None:
    with pytest.raises(InvalidInputError):
        ledger.list_transactions("student-1", page=0)


@pytest.mark.asyncio
async def test_pending_hold_lookup_and_status_change(ledger: LedgerService) -> None:
    """A pending lesson hold counts against the balance until it is refunded."""
    hold = await ledger.debit(
        "student-1",
        200,
        TransactionKind.LESSON_PAYMENT,
        "Lesson reservation",
        related_id="lesson-1",
        status=TransactionStatus.PENDING,
    )
    assert ledger.get_balance("student-1") == 300
    assert ledger.find_pending_hold("student-1", "lesson-1").id == hold.id

    updated = ledger.set_status(hold.id, TransactionStatus.COMPLETED, description="Escrowed")

    assert updated.amount == -200
    assert updated.description == "Escrowed"
    assert ledger.find_pending_hold("student-1", "lesson-1") is None
    assert [row.id for row in ledger.entries_for("lesson-1")] == [hold.id]


def test_set_status_unknown_transaction(ledger: LedgerService) -> None:
    with pytest.raises(NotFoundError):
        ledger.set_status("missing", TransactionStatus.CANCELLED)
