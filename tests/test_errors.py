"""Error envelope tests."""

from __future__ import annotations

import pytest

from app.schemas.common import ApiResponse
from app.utils.errors import (
    AlreadyProcessedError,
    AppError,
    DuplicatePendingError,
    InsufficientFundsError,
    InvalidInputError,
    InvalidStateTransitionError,
    NotFoundError,
    PaymentDeclinedError,
)
from app.utils.result import service_operation


@pytest.mark.parametrize(
    ("error", "code", "status_code"),
    [
        (InvalidInputError("bad"), "VALIDATION_ERROR", 422),
        (NotFoundError("Lesson"), "NOT_FOUND", 404),
        (InsufficientFundsError(required=300, available=200), "INSUFFICIENT_FUNDS", 400),
        (InvalidStateTransitionError("nope"), "INVALID_STATE_TRANSITION", 409),
        (DuplicatePendingError(), "DUPLICATE_PENDING", 409),
        (AlreadyProcessedError("done"), "ALREADY_PROCESSED", 409),
        (PaymentDeclinedError(), "PAYMENT_DECLINED", 402),
    ],
)
def test_error_codes(error: AppError, code: str, status_code: int) -> None:
    assert error.code == code
    assert error.status_code == status_code
    assert error.to_dict() == {"error": error.message, "code": code}


def test_failure_payload_omits_data() -> None:
    response = ApiResponse.failure(NotFoundError("Lesson"))

    assert response.status_code == 404
    assert response.to_payload() == {
        "success": False,
        "error": "Lesson not found",
        "code": "NOT_FOUND",
    }


@pytest.mark.asyncio
async def test_service_operation_hides_unexpected_errors() -> None:
    @service_operation("Could not do the thing")
    async def explode() -> None:
        raise KeyError("internal detail")

    result = await explode()

    assert result.success is False
    assert result.code == "INTERNAL_ERROR"
    assert result.error == "Could not do the thing"
    assert result.status_code == 500


@pytest.mark.asyncio
async def test_service_operation_wraps_plain_values() -> None:
    @service_operation("unused")
    async def answer() -> int:
        return 42

    result = await answer()

    assert result.success is True
    assert result.unwrap() == 42


def test_unwrap_reraises_failure() -> None:
    with pytest.raises(AppError) as exc_info:
        ApiResponse.failure(AlreadyProcessedError("done")).unwrap()

    assert exc_info.value.code == "ALREADY_PROCESSED"
