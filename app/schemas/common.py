"""Response envelope shared by every public operation."""

from typing import Any, Generic, TypeVar

from pydantic import BaseModel, PrivateAttr

from app.utils.errors import AppError

T = TypeVar("T")


class Pagination(BaseModel):
    """Page metadata for list endpoints (1-indexed pages)."""

    page: int
    limit: int
    total: int
    has_more: bool

    @classmethod
    def for_slice(cls, page: int, limit: int, total: int) -> "Pagination":
        return cls(page=page, limit=limit, total=total, has_more=page * limit < total)


class ApiResponse(BaseModel, Generic[T]):
    """Result value carrying either data or an error kind and message."""

    success: bool
    data: T | None = None
    error: str | None = None
    code: str | None = None
    pagination: Pagination | None = None

    _status_code: int = PrivateAttr(default=200)

    @classmethod
    def ok(cls, data: Any = None, pagination: Pagination | None = None) -> "ApiResponse":
        return cls(success=True, data=data, pagination=pagination)

    @classmethod
    def failure(cls, exc: AppError) -> "ApiResponse":
        response = cls(success=False, error=exc.message, code=exc.code)
        response._status_code = exc.status_code
        return response

    @property
    def status_code(self) -> int:
        return self._status_code

    def unwrap(self) -> T:
        """Return ``data`` or raise the carried error (used by composing callers)."""
        if not self.success:
            raise AppError(
                self.error or "Operation failed", self.code or "ERROR", self._status_code
            )
        return self.data  # type: ignore[return-value]

    def to_payload(self) -> dict[str, Any]:
        """Serialize to JSON-safe dict, omitting unset envelope fields."""
        payload: dict[str, Any] = {"success": self.success}
        if self.success:
            payload["data"] = _dump(self.data)
            if self.pagination is not None:
                payload["pagination"] = self.pagination.model_dump()
        else:
            payload["error"] = self.error
            payload["code"] = self.code
        return payload


def _dump(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if isinstance(value, list | tuple):
        return [_dump(item) for item in value]
    if isinstance(value, dict):
        return {key: _dump(item) for key, item in value.items()}
    return value
