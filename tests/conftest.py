"""Pytest fixtures for backend tests."""

from __future__ import annotations

import os
from collections.abc import Iterator

import pytest
from fastapi.testclient import TestClient


def _set_default_env() -> None:
    os.environ.setdefault("ENABLE_SCHEDULER", "false")
    os.environ.setdefault("STORAGE_BACKEND", "memory")
    os.environ.setdefault("IDENTITY_BACKEND", "header")
    os.environ.setdefault("SEED_DEMO_DATA", "true")
    os.environ.setdefault("SIMULATED_IO_LATENCY_MS", "0")
    os.environ.setdefault("REALTIME_POLL_INTERVAL_SECONDS", "0.01")


_set_default_env()

from app.config import Settings  # noqa: E402
from app.container import ServiceContainer, build_container  # noqa: E402


@pytest.fixture
def config() -> Settings:
    """Settings for an isolated in-memory container."""
    return Settings(
        _env_file=None,
        storage_backend="memory",
        identity_backend="header",
        seed_demo_data=True,
        enable_scheduler=False,
        simulated_io_latency_ms=0,
        realtime_poll_interval_seconds=0.01,
    )


@pytest.fixture
def container(config: Settings) -> ServiceContainer:
    """Fresh services seeded with the demo students and tutors."""
    return build_container(config)


@pytest.fixture
def client() -> Iterator[TestClient]:
    """Create a FastAPI test client with a fresh container per test."""
    from app.main import app

    with TestClient(app) as test_client:
        yield test_client
