"""
Dependency wiring for the authentication client.
Builds every component once from settings and owns their lifecycle.
"""
from typing import Optional

import httpx
import structlog

from ..core.config import Settings, get_settings
from ..interfaces.storage_interface import ISessionStore
from ..services.auth_state import AuthSnapshot, AuthStateMachine
from ..services.authenticated_client import AuthenticatedClient
from ..services.profile_mutator import ProfileMutator
from ..services.session_monitor import SessionMonitor
from ..services.session_registry import SessionRegistry
from ..storage.memory_store import InMemorySessionStore
from ..storage.redis_store import RedisSessionStore

logger = structlog.get_logger()


def create_http_client(settings: Settings) -> httpx.AsyncClient:
    """HTTP client for the community API."""
    return httpx.AsyncClient(
        base_url=settings.api_base_url,
        timeout=httpx.Timeout(settings.request_timeout),
        limits=httpx.Limits(
            max_connections=settings.max_connections,
            max_keepalive_connections=settings.max_keepalive_connections,
        ),
    )


def create_session_store(settings: Settings) -> ISessionStore:
    """Session store for the configured backend."""
    if settings.storage_backend == "redis":
        return RedisSessionStore.from_url(settings.redis_url, key_prefix=settings.storage_key_prefix)
    return InMemorySessionStore()


class AuthContainer:
    """Constructed-once set of authentication components."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        store: Optional[ISessionStore] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.settings = settings or get_settings()
        self._owns_http_client = http_client is None
        self._owns_store = store is None

        self.http_client = http_client or create_http_client(self.settings)
        self.store = store or create_session_store(self.settings)

        self.auth_state = AuthStateMachine(self.store, self.http_client, self.settings)
        self.client = AuthenticatedClient(self.auth_state, self.http_client, self.settings)
        self.sessions = SessionRegistry(self.client, self.auth_state)
        self.profile = ProfileMutator(self.client, self.auth_state)
        self.monitor = SessionMonitor(self.auth_state, self.client, self.sessions, settings=self.settings)

    async def initialize(self, start_monitor: bool = True) -> AuthSnapshot:
        """Hydrate authentication state and start background polling."""
        snapshot = await self.auth_state.initialize()
        if start_monitor:
            self.monitor.start()
        logger.info(
            "Auth container initialized",
            storage_backend=type(self.store).__name__,
            monitor_running=self.monitor.is_running,
        )
        return snapshot

    async def cleanup(self) -> None:
        """Stop polling and release owned connections."""
        await self.monitor.stop()
        if self._owns_http_client:
            await self.http_client.aclose()
        if self._owns_store and isinstance(self.store, RedisSessionStore):
            await self.store.close()
        logger.info("Auth container cleanup completed")

    async def __aenter__(self) -> "AuthContainer":
        await self.initialize()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.cleanup()
