"""Ledger and coin schemas."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field


class TransactionKind(str, Enum):
    PURCHASE = "purchase"
    SPEND = "spend"
    REFUND = "refund"
    MATCHING = "matching"
    LESSON_PAYMENT = "lesson_payment"
    LESSON_REFUND = "lesson_refund"


class TransactionStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class Account(BaseModel):
    """Coin account owned by exactly one user."""

    user_id: str
    opening_balance: int = Field(default=0, ge=0)
    created_at: datetime


class TransactionRecord(BaseModel):
    """A single ledger entry. The sign of ``amount`` marks credit or debit."""

    id: str
    user_id: str
    amount: int
    kind: TransactionKind
    description: str
    related_id: str | None = None
    status: TransactionStatus = TransactionStatus.COMPLETED
    payment_intent_id: str | None = None
    created_at: datetime


class BalanceResponse(BaseModel):
    """Current balance for one user."""

    user_id: str
    balance: int


class PurchaseRequest(BaseModel):
    """Request body for buying coins."""

    amount: int
    payment_method_id: str = Field(..., min_length=1)


class CoinPackage(BaseModel):
    """One entry of the coin purchase catalog (price in yen)."""

    id: str
    coins: int
    price: int
    label: str | None = None
    popular: bool = False


COIN_PACKAGES: tuple[CoinPackage, ...] = (
    CoinPackage(id="trial", coins=400, price=490, label="Trial"),
    CoinPackage(id="popular", coins=1250, price=1480, label="Most popular", popular=True),
    CoinPackage(id="monthly", coins=4300, price=4900, label="One month"),
    CoinPackage(id="value", coins=8800, price=9800, label="Value pack"),
)
