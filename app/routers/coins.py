"""Coin balance and purchase endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from app.container import ServiceContainer
from app.dependencies import get_container, get_current_user
from app.schemas.common import ApiResponse
from app.schemas.ledger import PurchaseRequest
from app.schemas.user import CurrentUser
from app.utils.result import respond

router = APIRouter()


@router.get("/balance")
async def get_balance(
    user: CurrentUser = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container),
) -> JSONResponse:
    """Return current user's coin balance."""
    return respond(await container.coins.get_balance(user.id))


@router.get("/transactions")
async def get_transactions(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    user: CurrentUser = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container),
) -> JSONResponse:
    """Return current user's ledger entries, newest first."""
    return respond(await container.coins.get_transaction_history(user.id, page=page, limit=limit))


@router.post("/purchase")
async def purchase(
    payload: PurchaseRequest,
    user: CurrentUser = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container),
) -> JSONResponse:
    """Buy coins with an opaque payment method id."""
    result = await container.coins.purchase_coins(
        user.id,
        amount=payload.amount,
        payment_method_id=payload.payment_method_id,
    )
    return respond(result)


@router.get("/packages")
async def list_packages(container: ServiceContainer = Depends(get_container)) -> JSONResponse:
    return respond(ApiResponse.ok(container.coins.get_coin_packages()))
