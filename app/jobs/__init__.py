"""Background job modules for periodic ledger maintenance."""

from app.jobs.match_request_expiry import match_request_expiry
from app.jobs.notification_outbox import notification_outbox_flush

__all__ = [
    "match_request_expiry",
    "notification_outbox_flush",
]
