"""
Unit tests for component wiring and lifecycle.
"""
import httpx
import pytest

from numis_auth.container.container import AuthContainer, create_http_client, create_session_store
from numis_auth.core.config import Settings
from numis_auth.storage.memory_store import InMemorySessionStore
from numis_auth.storage.redis_store import RedisSessionStore


@pytest.mark.unit
class TestFactories:
    """Test settings-driven factories."""

    async def test_http_client_uses_base_url(self, test_settings):
        client = create_http_client(test_settings)

        assert str(client.base_url) == "http://test-api"
        await client.aclose()

    def test_memory_store_by_default(self, test_settings):
        assert isinstance(create_session_store(test_settings), InMemorySessionStore)

    async def test_redis_store_when_configured(self):
        settings = Settings(storage_backend="redis", redis_url="redis://localhost:6379/3", storage_key_prefix="app:")

        store = create_session_store(settings)

        assert isinstance(store, RedisSessionStore)
        assert store.key_prefix == "app:"
        await store.client.aclose()


@pytest.mark.unit
class TestAuthContainer:
    """Test the container lifecycle."""

    async def test_components_share_state(self, test_settings, store, http_client):
        container = AuthContainer(test_settings, store=store, http_client=http_client)

        assert container.client.auth_state is container.auth_state
        assert container.sessions.client is container.client
        assert container.profile.auth_state is container.auth_state
        assert container.monitor.registry is container.sessions

    async def test_initialize_hydrates_and_starts_monitor(self, test_settings, http_client):
        store = InMemorySessionStore({"token": "tok123"})
        container = AuthContainer(test_settings, store=store, http_client=http_client)

        snapshot = await container.initialize()

        assert snapshot.is_initialized is True
        assert snapshot.is_authenticated is True
        assert container.auth_state.user.username == "collector"
        assert container.monitor.is_running is True
        await container.cleanup()
        assert container.monitor.is_running is False

    async def test_initialize_without_monitor(self, test_settings, store, http_client):
        container = AuthContainer(test_settings, store=store, http_client=http_client)

        await container.initialize(start_monitor=False)

        assert container.monitor.is_running is False
        await container.cleanup()

    async def test_injected_client_left_open(self, test_settings, store, http_client):
        async with AuthContainer(test_settings, store=store, http_client=http_client) as container:
            assert container.auth_state.is_initialized is True

        assert http_client.is_closed is False

    async def test_owned_client_closed(self, test_settings, store):
        container = AuthContainer(test_settings, store=store)
        await container.cleanup()

        assert isinstance(container.http_client, httpx.AsyncClient)
        assert container.http_client.is_closed is True
