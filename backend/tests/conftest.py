import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from quota_gateway.core.config import Settings
from quota_gateway.deps import get_backend_payload, get_now
from quota_gateway.main import create_app

ADMIN_SECRET = "s3cret"
KEYS = ["key-alpha-0001", "key-beta-0002"]


@pytest.fixture
def anyio_backend() -> str:
    """Force anyio-based tests to run with asyncio backend only."""

    return "asyncio"


class FakeClock:
    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def make_settings(tmp_path: Path) -> Callable[..., Settings]:
    def _make(**overrides: object) -> Settings:
        values: dict[str, object] = {
            "provider_keys": json.dumps(KEYS),
            "provider_keys_file": str(tmp_path / "missing.json"),
            "daily_limit": 3,
            "admin_secret": ADMIN_SECRET,
        }
        values.update(overrides)
        return Settings(**values)

    return _make


@pytest.fixture
def make_app(make_settings: Callable[..., Settings], clock: FakeClock) -> Callable[..., FastAPI]:
    def _make(**overrides: object) -> FastAPI:
        app = create_app(make_settings(**overrides))
        app.dependency_overrides[get_now] = clock
        app.dependency_overrides[get_backend_payload] = lambda: {"value": 42}
        return app

    return _make


@pytest.fixture(name="client")
def client_fixture(make_app: Callable[..., FastAPI]) -> TestClient:
    with TestClient(make_app()) as client:
        yield client


@pytest.fixture
def provider_keys() -> list[str]:
    return list(KEYS)
