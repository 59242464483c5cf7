"""
Background session monitor.
Periodically confirms the current session with the server and refreshes the
session list. Read-only with respect to the credential: revocation is acted
on only through the authenticated client's interception.
"""
import asyncio
from typing import Optional

import structlog

from ..core.config import Settings, get_settings
from ..models.results import ApiResult
from .auth_state import AuthStateMachine
from .authenticated_client import AuthenticatedClient
from .session_registry import SessionRegistry

logger = structlog.get_logger()


class SessionMonitor:
    """Cancellable periodic session refresh."""

    def __init__(
        self,
        auth_state: AuthStateMachine,
        client: AuthenticatedClient,
        registry: Optional[SessionRegistry] = None,
        interval: Optional[float] = None,
        refresh_sessions: Optional[bool] = None,
        settings: Optional[Settings] = None,
    ):
        settings = settings or get_settings()
        self.auth_state = auth_state
        self.client = client
        self.registry = registry
        self.interval = interval if interval is not None else settings.session_poll_interval
        self.refresh_sessions = (
            refresh_sessions if refresh_sessions is not None else settings.session_poll_refresh_sessions
        )
        self.monitor_task: Optional[asyncio.Task] = None
        self._tick_in_progress = False

    @property
    def is_running(self) -> bool:
        return self.monitor_task is not None and not self.monitor_task.done()

    def start(self) -> None:
        """Start polling in the background. Calling it again is a no-op."""
        if self.is_running:
            return
        self.monitor_task = asyncio.create_task(self._monitor_loop())
        logger.info("Session monitor started", interval=self.interval)

    async def stop(self) -> None:
        """Cancel polling and wait for the loop to exit."""
        if self.monitor_task:
            self.monitor_task.cancel()
            try:
                await self.monitor_task
            except asyncio.CancelledError:
                pass
            self.monitor_task = None
            logger.info("Session monitor stopped")

    async def run_once(self) -> Optional[ApiResult]:
        """
        Perform one refresh.

        Returns:
            The session-check result, or ``None`` when skipped (not signed in,
            not initialized, or a previous refresh still running)
        """
        if self._tick_in_progress:
            logger.debug("Session refresh already in progress, skipping")
            return None
        if not self.auth_state.is_initialized or not self.auth_state.is_authenticated:
            return None

        self._tick_in_progress = True
        try:
            result = await self.client.check_session()
            if result.success and self.refresh_sessions and self.registry is not None:
                await self.registry.list_sessions()
            return result
        finally:
            self._tick_in_progress = False

    async def _monitor_loop(self) -> None:
        """Background task for periodic session refresh."""
        while True:
            try:
                await asyncio.sleep(self.interval)
                await self.run_once()

            except asyncio.CancelledError:
                logger.info("Session monitor loop cancelled")
                break
            except Exception as e:
                logger.error("Error in session monitor loop", error=str(e))
