"""
Pytest configuration and shared fixtures for machine monitor tests.
"""

import tempfile
from collections.abc import AsyncGenerator, Callable, Generator
from pathlib import Path
from typing import Any

import httpx
import pytest


class MockService:
    """
    In-process stand-in for the monitoring service.

    Routes are keyed by (method, path). A route is either a canned
    ``(status, body)`` pair or a (sync or async) callable taking the request.
    Every request is recorded, including those that fail while offline.
    """

    def __init__(self):
        self.routes: dict[tuple[str, str], Any] = {}
        self.requests: list[httpx.Request] = []
        self.offline = False

    def on(self, method: str, path: str, status: int = 200, json: Any = None) -> None:
        self.routes[(method, path)] = (status, json)

    def on_call(self, method: str, path: str, handler: Callable) -> None:
        self.routes[(method, path)] = handler

    async def _handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.offline:
            raise httpx.ConnectError("Network is unreachable", request=request)

        route = self.routes.get((request.method, request.url.path))
        if route is None:
            return httpx.Response(404, json={"message": "Not found"})
        if callable(route):
            response = route(request)
            if not isinstance(response, httpx.Response):
                response = await response
            return response
        status, body = route
        if body is None:
            return httpx.Response(status)
        return httpx.Response(status, json=body)

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self._handle)

    def calls(self, method: str, path: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.method == method and r.url.path == path]


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def mock_service() -> MockService:
    return MockService()


@pytest.fixture
def session():
    """A session backed by in-memory token storage."""
    from machine_monitor.session import MemorySessionStore, Session

    return Session(MemorySessionStore())


@pytest.fixture
async def api(session, mock_service) -> AsyncGenerator:
    """An API client wired to the mock service."""
    from machine_monitor.api import ApiClient
    from machine_monitor.config import Settings

    client = ApiClient(
        session,
        Settings(api_url="http://testserver"),
        transport=mock_service.transport(),
    )
    yield client
    await client.close()


@pytest.fixture
async def authed_api(api) -> AsyncGenerator:
    """An API client whose session already holds token ``T1``."""
    await api.session.begin("T1")
    yield api


@pytest.fixture
def sample_machines() -> list[dict]:
    """Roster payload as returned by ``GET /api/machines``."""
    return [
        {
            "_id": "m1",
            "name": "CNC-01",
            "status": "active",
            "createdAt": "2024-03-01T08:00:00Z",
            "sensorData": {"Spindle_Speed_RPM": 1200, "Temperature_C": 65.5},
        },
        {"_id": "m2", "name": "Lathe-02", "status": "inactive"},
        {"_id": "m3", "name": "Mill-03", "status": "maintenance"},
        {"_id": "m4", "name": "Press-04", "status": "active"},
    ]


@pytest.fixture
def sample_prediction() -> dict:
    return {
        "riskLevel": "High",
        "riskProbability": 72.5,
        "criticalParameters": ["Temperature_C"],
        "recommendations": ["Inspect cooling"],
    }


def pytest_configure(config):
    """Configure custom markers."""
    config.addinivalue_line("markers", "integration: marks end-to-end tests against the mock service")
