"""Shared test fixtures for api-tester-cli tests.

- memory_storage: in-process session slot
- clock: controllable epoch-millisecond clock
- store: SessionStore wired to both
- isolated_config: config file redirected to tmp_path, env overrides cleared
"""

from typing import Any

import pytest

from api_tester_cli.config import ENV_VARS
from api_tester_cli.pipeline import ApiRequest, ApiResponse
from api_tester_cli.session import SessionStore
from api_tester_cli.storage import MemorySessionStorage

# 2025-01-01T00:00:00Z
T0 = 1_735_689_600_000


class FakeClock:
    """Epoch-millisecond clock that only moves when told to."""

    def __init__(self, now: int = T0):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += int(seconds * 1000)


class RecordingTransport:
    """Send callable that records requests and replays canned responses.

    Each entry of ``responses`` is either an ``ApiResponse``-shaped tuple
    ``(status, data)`` or an exception to raise.
    """

    def __init__(self, *responses: Any):
        self.responses = list(responses)
        self.requests: list[ApiRequest] = []

    async def __call__(self, request: ApiRequest) -> ApiResponse:
        self.requests.append(request)
        outcome = self.responses.pop(0) if self.responses else (200, {})
        if isinstance(outcome, Exception):
            raise outcome
        status, data = outcome
        return ApiResponse(status=status, data=data, request=request)


@pytest.fixture
def memory_storage():
    """Empty in-memory session slot."""
    return MemorySessionStorage()


@pytest.fixture
def clock():
    """Fixed clock starting at T0."""
    return FakeClock()


@pytest.fixture
def store(memory_storage, clock):
    """Session store over memory storage with a fake clock."""
    return SessionStore(memory_storage, clock=clock)


@pytest.fixture
def isolated_config(tmp_path, monkeypatch):
    """Point the config file at tmp_path and drop env overrides."""
    config_file = tmp_path / ".api-tester" / "config.yaml"
    monkeypatch.setattr("api_tester_cli.config.get_config_path", lambda: config_file)
    for env_var in ENV_VARS.values():
        monkeypatch.delenv(env_var, raising=False)
    return config_file


@pytest.fixture
def make_transport():
    """Factory for RecordingTransport instances."""
    return RecordingTransport
