"""Ledger store: coin accounts and the append-only transaction log."""

from __future__ import annotations

import asyncio
import logging
from uuid import uuid4

from app.repositories.base import LedgerRepository
from app.schemas.common import Pagination
from app.schemas.ledger import Account, TransactionKind, TransactionRecord, TransactionStatus
from app.services.common import newest_first, oldest_first, paginate
from app.utils.errors import InsufficientFundsError, InvalidInputError, NotFoundError
from app.utils.locks import KeyedLock
from app.utils.time import now_utc

logger = logging.getLogger(__name__)


class LedgerService:
    """Create and query ledger entries.

    The balance of an account is its opening balance plus the sum of every
    transaction amount recorded for it. Holds that are later voided keep
    their debit and get an explicit refund credit, so the sum stays exact.
    Mutations of one account are serialized with a per-account lock that
    covers both the balance check and the append.
    """

    def __init__(self, repository: LedgerRepository, io_latency_ms: int = 0) -> None:
        self.repository = repository
        self.io_latency_ms = io_latency_ms
        self._account_locks = KeyedLock()

    def open_account(self, user_id: str, opening_balance: int = 0) -> Account:
        """Create the account for a user, or return the existing one."""
        existing = self.repository.get_account(user_id)
        if existing is not None:
            return existing
        if opening_balance < 0:
            raise InvalidInputError("Opening balance cannot be negative")
        account = Account(user_id=user_id, opening_balance=opening_balance, created_at=now_utc())
        logger.info("Opened account %s with %s coins", user_id, opening_balance)
        return self.repository.insert_account(account)

    def get_account(self, user_id: str) -> Account:
        account = self.repository.get_account(user_id)
        if account is None:
            raise NotFoundError("Account")
        return account

    def get_balance(self, user_id: str) -> int:
        """Return the current balance for ``user_id``."""
        account = self.get_account(user_id)
        return account.opening_balance + sum(
            tx.amount for tx in self.repository.list_transactions(user_id)
        )

    async def credit(
        self,
        user_id: str,
        amount: int,
        kind: TransactionKind,
        description: str,
        related_id: str | None = None,
        status: TransactionStatus = TransactionStatus.COMPLETED,
        payment_intent_id: str | None = None,
    ) -> TransactionRecord:
        """Add ``amount`` coins to an account."""
        self._require_positive(amount)
        return await self._append(
            user_id, amount, kind, description, related_id, status, payment_intent_id
        )

    async def debit(
        self,
        user_id: str,
        amount: int,
        kind: TransactionKind,
        description: str,
        related_id: str | None = None,
        status: TransactionStatus = TransactionStatus.COMPLETED,
        payment_intent_id: str | None = None,
    ) -> TransactionRecord:
        """Remove ``amount`` coins; the entry is stored with a negative amount."""
        self._require_positive(amount)
        return await self._append(
            user_id, -amount, kind, description, related_id, status, payment_intent_id
        )

    async def _append(
        self,
        user_id: str,
        signed_amount: int,
        kind: TransactionKind,
        description: str,
        related_id: str | None,
        status: TransactionStatus,
        payment_intent_id: str | None,
    ) -> TransactionRecord:
        async with self._account_locks.hold(user_id):
            balance = self.get_balance(user_id)
            if balance + signed_amount < 0:
                raise InsufficientFundsError(required=-signed_amount, available=balance)

            await self._io_pause()
            record = TransactionRecord(
                id=str(uuid4()),
                user_id=user_id,
                amount=signed_amount,
                kind=kind,
                description=description,
                related_id=related_id,
                status=status,
                payment_intent_id=payment_intent_id,
                created_at=now_utc(),
            )
            stored = self.repository.insert_transaction(record)

        logger.debug("Ledger %s %+d (%s) for %s", kind.value, signed_amount, status.value, user_id)
        return stored

    async def _io_pause(self) -> None:
        await asyncio.sleep(self.io_latency_ms / 1000 if self.io_latency_ms > 0 else 0)

    @staticmethod
    def _require_positive(amount: int) -> None:
        if amount <= 0:
            raise InvalidInputError("Amount must be greater than 0")

    def list_transactions(
        self,
        user_id: str,
        page: int = 1,
        limit: int = 20,
    ) -> tuple[list[TransactionRecord], Pagination]:
        """Return one page of a user's transactions, newest first."""
        rows = newest_first(self.repository.list_transactions(user_id))
        return paginate(rows, page, limit)

    def set_status(
        self,
        transaction_id: str,
        status: TransactionStatus,
        description: str | None = None,
    ) -> TransactionRecord:
        """Advance the status of an existing entry (amount never changes)."""
        fields: dict[str, object] = {"status": status}
        if description is not None:
            fields["description"] = description
        updated = self.repository.update_transaction(transaction_id, fields)
        if updated is None:
            raise NotFoundError("Transaction")
        return updated

    def find_pending_hold(self, user_id: str, related_id: str) -> TransactionRecord | None:
        """Return the still-pending lesson hold of ``user_id`` for ``related_id``."""
        for tx in self.repository.list_by_related(related_id):
            if (
                tx.user_id == user_id
                and tx.kind == TransactionKind.LESSON_PAYMENT
                and tx.status == TransactionStatus.PENDING
            ):
                return tx
        return None

    def entries_for(self, related_id: str) -> list[TransactionRecord]:
        """Return every entry tied to a request or lesson, oldest first."""
        return oldest_first(self.repository.list_by_related(related_id))
