"""Custom exception hierarchy for the Tutor Coin API."""

from __future__ import annotations


class AppError(Exception):
    """Base application error with a stable machine-readable code."""

    def __init__(self, message: str, code: str, status_code: int = 400) -> None:
        self.message = message
        self.code = code
        self.status_code = status_code
        super().__init__(message)

    def to_dict(self) -> dict[str, str]:
        """Serialize the error in the API standard shape."""
        return {"error": self.message, "code": self.code}


class InvalidInputError(AppError):
    """Raised for malformed input such as a short message or a bad rating."""

    def __init__(self, reason: str) -> None:
        super().__init__(message=reason, code="VALIDATION_ERROR", status_code=422)


class NotFoundError(AppError):
    """Raised when a requested resource does not exist."""

    def __init__(self, resource: str) -> None:
        super().__init__(message=f"{resource} not found", code="NOT_FOUND", status_code=404)


class InsufficientFundsError(AppError):
    """Raised when a debit would take a balance below zero."""

    def __init__(self, required: int, available: int) -> None:
        self.required = required
        self.available = available
        super().__init__(
            message=f"Insufficient coins: need {required}, have {available}",
            code="INSUFFICIENT_FUNDS",
        )


class ConflictError(AppError):
    """Raised on duplicate/conflicting operations."""

    def __init__(self, reason: str, code: str = "CONFLICT") -> None:
        super().__init__(message=reason, code=code, status_code=409)


class InvalidStateTransitionError(ConflictError):
    """Raised when an operation is not permitted from the current status."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason, code="INVALID_STATE_TRANSITION")


class DuplicatePendingError(ConflictError):
    """Raised when an unresolved request already exists for the same pair."""

    def __init__(self, reason: str = "A pending request to this tutor already exists") -> None:
        super().__init__(reason, code="DUPLICATE_PENDING")


class AlreadyProcessedError(ConflictError):
    """Raised when a terminal operation is invoked again."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason, code="ALREADY_PROCESSED")


class PaymentDeclinedError(AppError):
    """Raised when the payment method is refused."""

    def __init__(self, reason: str = "The card was declined. Try another card") -> None:
        super().__init__(message=reason, code="PAYMENT_DECLINED", status_code=402)


class ForbiddenError(AppError):
    """Raised when the user lacks permission for the action."""

    def __init__(self, reason: str = "You don't have permission") -> None:
        super().__init__(message=reason, code="FORBIDDEN", status_code=403)


class UnauthorizedError(AppError):
    """Raised when the caller is not authenticated."""

    def __init__(self, reason: str = "Unauthorized") -> None:
        super().__init__(message=reason, code="UNAUTHORIZED", status_code=401)
