"""Boundary decorator that turns domain exceptions into result values."""

from __future__ import annotations

import functools
import logging
from collections.abc import Awaitable, Callable
from typing import Any, ParamSpec

from fastapi.responses import JSONResponse

from app.schemas.common import ApiResponse
from app.utils.errors import AppError

logger = logging.getLogger(__name__)

P = ParamSpec("P")


def service_operation(
    failure_message: str,
) -> Callable[[Callable[P, Awaitable[Any]]], Callable[P, Awaitable[ApiResponse]]]:
    """Wrap a public async operation so it always returns an ``ApiResponse``.

    ``AppError`` keeps its code and message. Anything else is logged and
    reported with ``failure_message`` so internals never leak to callers.
    """

    def decorator(func: Callable[P, Awaitable[Any]]) -> Callable[P, Awaitable[ApiResponse]]:
        @functools.wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> ApiResponse:
            try:
                result = await func(*args, **kwargs)
            except AppError as exc:
                logger.info("%s rejected: %s (%s)", func.__qualname__, exc.message, exc.code)
                return ApiResponse.failure(exc)
            except Exception:
                logger.exception("%s failed unexpectedly", func.__qualname__)
                return ApiResponse.failure(
                    AppError(failure_message, code="INTERNAL_ERROR", status_code=500)
                )
            if isinstance(result, ApiResponse):
                return result
            return ApiResponse.ok(result)

        return wrapper

    return decorator


def respond(result: ApiResponse) -> JSONResponse:
    """Render a service result as the HTTP envelope with its mapped status."""
    return JSONResponse(content=result.to_payload(), status_code=result.status_code)
