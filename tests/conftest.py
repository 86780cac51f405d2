"""Pytest fixtures for EnergyGrid aggregator tests."""

import json
from collections.abc import Callable

import httpx
import pytest

from energygrid.config import Settings

ENV_VARS = (
    "API_BASE_URL",
    "SECRET_TOKEN",
    "LOG_LEVEL",
    "BATCH_SIZE",
    "RATE_LIMIT_MS",
    "MAX_RETRIES",
    "REQUEST_TIMEOUT_MS",
    "DEVICE_COUNT",
    "DEVICE_ID_PREFIX",
    "DEVICE_ID_WIDTH",
    "OUTPUT_DIR",
)

TEST_SECRET = "interview_token_123"
TEST_BASE_URL = "http://telemetry.test"


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch, tmp_path):
    """Keep host environment and any local .env file out of settings."""
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def make_settings(tmp_path) -> Callable[..., Settings]:
    def _make(**overrides) -> Settings:
        values = {
            "secret_token": TEST_SECRET,
            "api_base_url": TEST_BASE_URL,
            "output_dir": str(tmp_path / "out"),
        }
        values.update(overrides)
        return Settings(_env_file=None, **values)

    return _make


@pytest.fixture
def settings(make_settings) -> Settings:
    return make_settings()


@pytest.fixture
def sleeps() -> list[float]:
    return []


@pytest.fixture
def sleep_fn(sleeps) -> Callable[[float], None]:
    def _sleep(seconds: float) -> None:
        sleeps.append(seconds)

    return _sleep


def mock_client(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.Client:
    return httpx.Client(transport=httpx.MockTransport(handler))


def telemetry_for(request: httpx.Request) -> httpx.Response:
    """Echo one record per requested serial number."""
    serials = json.loads(request.content)["sn_list"]
    return httpx.Response(200, json={"data": [{"sn": sn, "power": "2.5 kW"} for sn in serials]})
