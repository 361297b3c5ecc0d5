"""FastAPI dependency injection helpers."""

from __future__ import annotations

import threading
import time
from typing import Any

from fastapi import Depends, Header, Request

from app.container import ServiceContainer
from app.schemas.user import CurrentUser
from app.utils.errors import UnauthorizedError
from app.utils.supabase_client import get_supabase_client

_token_cache: dict[str, tuple[float, Any]] = {}
_cache_lock = threading.Lock()


def _cache_get(cache: dict[Any, tuple[float, Any]], key: Any) -> Any | None:
    """Return a cache value when present and not expired."""
    now = time.monotonic()
    with _cache_lock:
        entry = cache.get(key)
        if not entry:
            return None
        expires_at, value = entry
        if expires_at <= now:
            cache.pop(key, None)
            return None
        return value


def _cache_set(
    cache: dict[Any, tuple[float, Any]],
    key: Any,
    value: Any,
    ttl_seconds: int,
    max_entries: int,
) -> None:
    """Store a bounded cache value with TTL."""
    if ttl_seconds <= 0:
        return

    with _cache_lock:
        bounded_max_entries = max(1, max_entries)
        if len(cache) >= bounded_max_entries:
            oldest_key = next(iter(cache))
            cache.pop(oldest_key, None)
        cache[key] = (time.monotonic() + ttl_seconds, value)


def get_container(request: Request) -> ServiceContainer:
    """Return the service container built during application startup."""
    return request.app.state.container


def _user_id_from_token(authorization: str | None, container: ServiceContainer) -> str:
    """Validate a Supabase JWT from the Authorization header and return its subject."""
    if not authorization or not authorization.startswith("Bearer "):
        raise UnauthorizedError("Missing authorization header")

    token = authorization.split(" ", 1)[1]
    cached_user_id = _cache_get(_token_cache, token)
    if cached_user_id is not None:
        return cached_user_id

    supabase = get_supabase_client()

    try:
        response = supabase.auth.get_user(token)
        if not response or not response.user:
            raise UnauthorizedError("Invalid token")
        user_id = str(response.user.id)
    except UnauthorizedError:
        raise
    except Exception as exc:
        raise UnauthorizedError("Invalid or expired token") from exc

    _cache_set(
        _token_cache,
        token,
        user_id,
        container.config.auth_token_cache_ttl_seconds,
        container.config.auth_token_cache_max_entries,
    )
    return user_id


def get_current_user(
    authorization: str | None = Header(None),
    x_user_id: str | None = Header(None),
    container: ServiceContainer = Depends(get_container),
) -> CurrentUser:
    """Resolve the acting user and their role from the profile directory.

    Raises:
        UnauthorizedError: 401 if no identity is supplied or the user has
            no student or tutor profile.
    """
    if container.config.identity_backend == "supabase":
        user_id = _user_id_from_token(authorization, container)
    else:
        if not x_user_id:
            raise UnauthorizedError("Missing X-User-Id header")
        user_id = x_user_id.strip()

    profile = container.profiles.get_user(user_id)
    if profile is None:
        raise UnauthorizedError("Unknown user")
    return CurrentUser(id=profile.id, role=profile.role)
