"""
Test configuration and fixtures for the authentication client tests.
Provides a fake community API on top of httpx.MockTransport, stores and
pre-wired components.
"""
import asyncio
import json
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

import httpx
import pytest

from numis_auth.core.config import Settings
from numis_auth.core.exceptions import StorageError
from numis_auth.services.auth_state import AuthStateMachine
from numis_auth.services.authenticated_client import AuthenticatedClient
from numis_auth.services.profile_mutator import ProfileMutator
from numis_auth.services.session_registry import SessionRegistry
from numis_auth.storage.memory_store import InMemorySessionStore

API_BASE_URL = "http://test-api"

RouteHandler = Union[httpx.Response, Exception, Callable[[httpx.Request], Any]]


def json_response(status_code: int, body: Any = None) -> httpx.Response:
    """Build a JSON response."""
    if body is None:
        return httpx.Response(status_code)
    return httpx.Response(status_code, json=body)


def revoked_response(msg: Optional[str] = "Session terminated from another device") -> httpx.Response:
    """401 carrying the revocation code."""
    body = {"code": "SESSION_TERMINATED", "sessionTerminated": True}
    if msg is not None:
        body["msg"] = msg
    return httpx.Response(401, json=body)


class FakeApi:
    """Route table standing in for the community API server."""

    def __init__(self):
        self.routes: Dict[Tuple[str, str], RouteHandler] = {}
        self.calls: List[httpx.Request] = []

    def add(self, method: str, path: str, handler: RouteHandler) -> None:
        self.routes[(method.upper(), path)] = handler

    def calls_to(self, method: str, path: str) -> List[httpx.Request]:
        return [c for c in self.calls if c.method == method.upper() and c.url.path == path]

    def body_of(self, request: httpx.Request) -> Any:
        return json.loads(request.content) if request.content else None

    async def handler(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        route = self.routes.get((request.method, request.url.path))
        if route is None:
            return json_response(404, {"error": "Not found"})
        if isinstance(route, Exception):
            raise route
        if isinstance(route, httpx.Response):
            return route
        result = route(request)
        if asyncio.iscoroutine(result):
            result = await result
        return result


class FlakyStore(InMemorySessionStore):
    """In-memory store whose removals fail a configurable number of times."""

    def __init__(self, fail_removes: int = 0, fail_sets: int = 0, initial: Optional[Dict[str, str]] = None):
        super().__init__(initial)
        self.fail_removes = fail_removes
        self.fail_sets = fail_sets
        self.remove_attempts = 0

    async def remove(self, key: str) -> None:
        self.remove_attempts += 1
        if self.fail_removes > 0:
            self.fail_removes -= 1
            raise StorageError("disk quota exceeded", key=key)
        await super().remove(key)

    async def set(self, key: str, value: str) -> None:
        if self.fail_sets > 0:
            self.fail_sets -= 1
            raise StorageError("disk quota exceeded", key=key)
        await super().set(key, value)


@pytest.fixture
def test_settings():
    """Test settings with fast retries and polling."""
    return Settings(
        environment="test",
        api_base_url=API_BASE_URL,
        storage_retry_attempts=3,
        storage_retry_delay=0,
        session_poll_interval=0.01,
        default_termination_reason="Session ended by server",
    )


@pytest.fixture
def fake_api():
    """Fake API with a valid /me, logout and session-check."""
    api = FakeApi()
    api.add("GET", "/api/auth/me", json_response(200, {
        "_id": "u1",
        "username": "collector",
        "email": "collector@example.com",
        "fullName": "Ada Collector",
        "location": "Milan",
    }))
    api.add("POST", "/api/auth/logout", json_response(200, {"message": "Logout successful"}))
    api.add("GET", "/api/auth/session-check", json_response(200, {"active": True, "sessionId": "s1"}))
    return api


@pytest.fixture
async def http_client(fake_api):
    """HTTP client routed to the fake API."""
    client = httpx.AsyncClient(transport=httpx.MockTransport(fake_api.handler), base_url=API_BASE_URL)
    yield client
    await client.aclose()


@pytest.fixture
def store():
    return InMemorySessionStore()


@pytest.fixture
def auth_state(store, http_client, test_settings):
    return AuthStateMachine(store, http_client, test_settings)


@pytest.fixture
def api_client(auth_state, http_client, test_settings):
    return AuthenticatedClient(auth_state, http_client, test_settings)


@pytest.fixture
def registry(api_client, auth_state):
    return SessionRegistry(api_client, auth_state)


@pytest.fixture
def mutator(api_client, auth_state):
    return ProfileMutator(api_client, auth_state)


@pytest.fixture
def sample_user():
    return {
        "_id": "u1",
        "username": "collector",
        "email": "collector@example.com",
        "fullName": "Ada Collector",
        "location": "Milan",
        "bio": "Roman denarii",
    }


@pytest.fixture
async def signed_in(auth_state, sample_user):
    """Initialized state machine holding a credential and profile."""
    await auth_state.initialize()
    result = await auth_state.login("tok123", sample_user)
    assert result.success
    return auth_state
