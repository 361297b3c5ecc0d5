"""Coin purchase service tests."""

from __future__ import annotations

import pytest

from app.container import ServiceContainer


@pytest.mark.asyncio
async def test_get_balance_for_seeded_student(container: ServiceContainer) -> None:
    result = await container.coins.get_balance("student-1")

    assert result.success is True
    assert result.data.balance == 500


@pytest.mark.asyncio
async def test_get_balance_unknown_user(container: ServiceContainer) -> None:
    result = await container.coins.get_balance("ghost")

    assert result.success is False
    assert result.code == "NOT_FOUND"
    assert result.status_code == 404


@pytest.mark.asyncio
async def test_purchase_credits_coins(container: ServiceContainer) -> None:
    """A purchase is recorded with a generated payment intent id."""
    result = await container.coins.purchase_coins("student-1", 1250, "pm_card_visa")

    assert result.success is True
    assert result.data.amount == 1250
    assert result.data.kind == "purchase"
    assert result.data.payment_intent_id.startswith("pi_")
    assert container.ledger.get_balance("student-1") == 1750


@pytest.mark.asyncio
async def test_declined_card_is_refused(container: ServiceContainer) -> None:
    result = await container.coins.purchase_coins("student-1", 400, "pm_card_declined")

    assert result.success is False
    assert result.code == "PAYMENT_DECLINED"
    assert container.ledger.get_balance("student-1") == 500


@pytest.mark.asyncio
@pytest.mark.parametrize("amount", [0, -100])
async def test_purchase_amount_must_be_positive(container: ServiceContainer, amount: int) -> None:
    result = await container.coins.purchase_coins("student-1", amount, "pm_card_visa")

    assert result.success is False
    assert result.code == "VALIDATION_ERROR"


@pytest.mark.asyncio
async def test_purchase_requires_account(container: ServiceContainer) -> None:
    result = await container.coins.purchase_coins("ghost", 400, "pm_card_visa")

    assert result.code == "NOT_FOUND"


@pytest.mark.asyncio
async def test_transaction_history_is_paginated(container: ServiceContainer) -> None:
    for amount in (400, 1250, 4300):
        await container.coins.purchase_coins("student-1", amount, "pm_card_visa")

    result = await container.coins.get_transaction_history("student-1", page=1, limit=2)

    assert result.success is True
    assert [row.amount for row in result.data] == [4300, 1250]
    assert result.pagination.total == 3
    assert result.pagination.has_more is True


@pytest.mark.asyncio
async def test_open_account_through_service(container: ServiceContainer) -> None:
    result = await container.coins.open_account("student-9", 120)

    assert result.success is True
    assert container.ledger.get_balance("student-9") == 120


def test_coin_packages_catalog(container: ServiceContainer) -> None:
    packages = container.coins.get_coin_packages()

    assert [(package.coins, package.price) for package in packages] == [
        (400, 490),
        (1250, 1480),
        (4300, 4900),
        (8800, 9800),
    ]
    assert [package.id for package in packages if package.popular] == ["popular"]
