"""Application settings loaded from environment variables."""

from __future__ import annotations

from decimal import Decimal
from typing import Literal

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application configuration.

    Values are read from environment variables (or a `.env` file).
    """

    # Storage and identity
    storage_backend: Literal["memory", "supabase"] = "memory"
    identity_backend: Literal["header", "supabase"] = "header"
    seed_demo_data: bool = True

    # Supabase
    supabase_url: str | None = None
    supabase_anon_key: str | None = None
    supabase_service_key: str | None = None
    supabase_http_max_connections: int = 100
    supabase_http_max_keepalive_connections: int = 50
    supabase_postgrest_timeout_seconds: int = 30

    # App
    app_name: str = "Tutor Coin API"
    app_version: str = "1.0.0"
    environment: str = "development"
    log_level: str = "INFO"
    allowed_origins: str = "http://localhost:8081"
    enable_scheduler: bool = True

    # Scheduling
    timezone: str = "UTC"
    match_expiry_sweep_minutes: int = 15
    outbox_flush_interval_seconds: int = 30

    # Ledger and marketplace rules
    matching_cost: int = 300
    match_request_ttl_days: int = 7
    match_message_min_length: int = 20
    platform_fee_rate: Decimal = Decimal("0.15")
    platform_account_id: str = "platform"

    # Notifications and realtime
    notification_max_attempts: int = 5
    realtime_poll_interval_seconds: float = 1.0

    # Performance tuning
    simulated_io_latency_ms: int = 0
    auth_token_cache_ttl_seconds: int = 15
    auth_token_cache_max_entries: int = 1024
    slow_request_log_threshold_ms: int = 0
    slow_query_log_threshold_ms: int = 0

    @property
    def is_production(self) -> bool:
        """Return True when running in production."""
        return self.environment == "production"

    @property
    def origins_list(self) -> list[str]:
        """Parse comma-separated ALLOWED_ORIGINS into a list."""
        return [o.strip() for o in self.allowed_origins.split(",") if o.strip()]

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }


settings = Settings()
