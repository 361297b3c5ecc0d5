"""Coin balances, purchases and transaction history."""

from __future__ import annotations

import logging
from uuid import uuid4

from app.schemas.common import ApiResponse
from app.schemas.ledger import (
    COIN_PACKAGES,
    Account,
    BalanceResponse,
    CoinPackage,
    TransactionKind,
    TransactionRecord,
)
from app.services.ledger_service import LedgerService
from app.utils.errors import InvalidInputError, PaymentDeclinedError
from app.utils.result import service_operation

logger = logging.getLogger(__name__)

DECLINED_PAYMENT_METHOD = "pm_card_declined"


class CoinService:
    """Business logic for coin balances and purchases."""

    def __init__(self, ledger: LedgerService) -> None:
        self.ledger = ledger

    @service_operation("Failed to open account")
    async def open_account(self, user_id: str, opening_balance: int = 0) -> Account:
        return self.ledger.open_account(user_id, opening_balance)

    @service_operation("Failed to fetch balance")
    async def get_balance(self, user_id: str) -> BalanceResponse:
        """Return the balance for a user."""
        return BalanceResponse(user_id=user_id, balance=self.ledger.get_balance(user_id))

    @service_operation("Coin purchase failed")
    async def purchase_coins(
        self,
        user_id: str,
        amount: int,
        payment_method_id: str,
    ) -> TransactionRecord:
        """Credit purchased coins once the payment method is accepted.

        The payment method id is opaque; only the well-known test id for a
        declined card is refused.
        """
        if amount <= 0:
            raise InvalidInputError("Purchase amount must be greater than 0")
        if not payment_method_id:
            raise InvalidInputError("Payment method is required")

        self.ledger.get_account(user_id)
        if payment_method_id == DECLINED_PAYMENT_METHOD:
            raise PaymentDeclinedError()

        record = await self.ledger.credit(
            user_id=user_id,
            amount=amount,
            kind=TransactionKind.PURCHASE,
            description=f"Coin purchase ({amount} coins)",
            payment_intent_id=f"pi_{uuid4().hex[:24]}",
        )
        logger.info("User %s purchased %s coins", user_id, amount)
        return record

    @service_operation("Failed to fetch transaction history")
    async def get_transaction_history(
        self,
        user_id: str,
        page: int = 1,
        limit: int = 20,
    ) -> ApiResponse[list[TransactionRecord]]:
        """Return one page of the user's ledger, newest first."""
        self.ledger.get_account(user_id)
        rows, pagination = self.ledger.list_transactions(user_id, page=page, limit=limit)
        return ApiResponse.ok(rows, pagination=pagination)

    def get_coin_packages(self) -> list[CoinPackage]:
        return list(COIN_PACKAGES)
