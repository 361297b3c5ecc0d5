"""Service package exports with lazy loading."""

from __future__ import annotations

from importlib import import_module
from typing import Any

_EXPORTS = {
    "CoinService": "app.services.coin_service",
    "EscrowService": "app.services.escrow_service",
    "LedgerService": "app.services.ledger_service",
    "MatchingService": "app.services.matching_service",
    "NotificationService": "app.services.notification_service",
    "RealtimeService": "app.services.realtime_service",
    "Subscription": "app.services.realtime_service",
}

__all__ = sorted(_EXPORTS.keys())


def __getattr__(name: str) -> Any:
    if name not in _EXPORTS:
        raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
    module = import_module(_EXPORTS[name])
    return getattr(module, name)
