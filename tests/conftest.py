"""Pytest fixtures for the Airtel Money client tests."""

import httpx
import pytest

from airtel_money.utils.config_loader import AirtelConfig

BASE_URL = "https://airtel.test"


class FakeClock:
    """Controllable replacement for time.time."""

    def __init__(self, now: float = 1_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class SleepRecorder:
    """Records requested waits instead of sleeping."""

    def __init__(self):
        self.waits = []

    async def __call__(self, seconds: float) -> None:
        self.waits.append(seconds)


@pytest.fixture
def make_config():
    def _make(**overrides):
        values = {
            "base_url": BASE_URL,
            "client_id": "client-id",
            "client_secret": "client-secret",
            "country": "UG",
            "currency": "UGX",
            "max_retries": 3,
            "poll_interval_ms": 5000,
        }
        values.update(overrides)
        return AirtelConfig(**values)

    return _make


@pytest.fixture
def config(make_config):
    return make_config()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sleeps():
    return SleepRecorder()


@pytest.fixture
def make_client():
    """AsyncClient wired to a handler through httpx.MockTransport."""
    created = []

    def _make(handler):
        client = httpx.AsyncClient(base_url=BASE_URL, transport=httpx.MockTransport(handler), timeout=5.0)
        created.append(client)
        return client

    return _make


def token_response(token: str = "tok-1", expires_in: int = 3600) -> httpx.Response:
    return httpx.Response(200, json={"access_token": token, "expires_in": expires_in})


def status_response(status, message: str = "") -> httpx.Response:
    transaction = {"id": "txn-1", "message": message, "airtel_money_id": "MP123"}
    if status is not None:
        transaction["status"] = status
    return httpx.Response(200, json={"data": {"transaction": transaction}})
