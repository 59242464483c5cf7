"""
Registry of the account's active sessions.
Lists and terminates sessions through the authenticated client and keeps the
last listed snapshot for the caller's local view.
"""
from typing import Any, List, Optional
from urllib.parse import quote

import structlog

from ..models.results import ApiResult, ErrorKind
from ..models.session import SessionRecord
from .auth_state import AuthStateMachine
from .authenticated_client import AuthenticatedClient

logger = structlog.get_logger()

SESSIONS_PATH = "/api/sessions"


class SessionRegistry:
    """List/terminate operations over the account's sessions."""

    def __init__(self, client: AuthenticatedClient, auth_state: AuthStateMachine):
        self.client = client
        self.auth_state = auth_state
        self._sessions: List[SessionRecord] = []
        self._snapshot_epoch: Optional[int] = None

    @property
    def sessions(self) -> List[SessionRecord]:
        """Last listed sessions; empty once a login/logout happened since."""
        if self._snapshot_epoch != self.auth_state.epoch:
            return []
        return list(self._sessions)

    @property
    def current_session(self) -> Optional[SessionRecord]:
        for record in self.sessions:
            if record.is_current_session:
                return record
        return None

    async def list_sessions(self) -> ApiResult:
        """
        Fetch the active sessions for the account.

        Returns:
            ``ok`` with a list of ``SessionRecord`` (inactive entries removed),
            or the failure from the authenticated client
        """
        self.auth_state.require_initialized()
        epoch = self.auth_state.epoch

        result = await self.client.get(SESSIONS_PATH)
        if not result.success:
            logger.warning("Failed to list sessions", error_kind=result.error_kind.value, error=result.error)
            return result

        try:
            records = self._parse_sessions(result.data)
        except ValueError as e:
            logger.error("Malformed sessions response", error=str(e))
            return ApiResult.failure(
                ErrorKind.SERVER_ERROR, "Malformed sessions response", status_code=result.status_code
            )

        if epoch == self.auth_state.epoch:
            self._sessions = records
            self._snapshot_epoch = epoch
        else:
            logger.debug("Discarding stale session snapshot", started_epoch=epoch, current_epoch=self.auth_state.epoch)

        return ApiResult.ok(records, status_code=result.status_code)

    async def terminate(self, session_id: str) -> ApiResult:
        """
        Revoke one of the account's other sessions.

        Args:
            session_id: Identifier of the session to end

        Returns:
            ``ok`` on success (the session is dropped from ``sessions``),
            otherwise the classified failure
        """
        self.auth_state.require_initialized()
        if not session_id:
            return ApiResult.invalid_input("Session id is required", field="sessionId")

        current = self.current_session
        if current is not None and current.session_id == session_id:
            return ApiResult.invalid_input("Use logout to end the current session", field="sessionId")

        epoch = self.auth_state.epoch
        result = await self.client.delete(f"{SESSIONS_PATH}/{quote(session_id, safe='')}")
        if not result.success:
            logger.warning(
                "Failed to terminate session",
                session_id=session_id,
                error_kind=result.error_kind.value,
                error=result.error,
            )
            return result

        if self._snapshot_epoch == epoch == self.auth_state.epoch:
            self._sessions = [record for record in self._sessions if record.session_id != session_id]
        logger.info("Session terminated", session_id=session_id)
        return result

    async def terminate_all_others(self) -> ApiResult:
        """
        Revoke every session except the current one.

        Returns:
            ``ok`` on success, including when no other session exists
        """
        self.auth_state.require_initialized()
        epoch = self.auth_state.epoch

        result = await self.client.delete(SESSIONS_PATH)
        if not result.success:
            logger.warning(
                "Failed to terminate other sessions",
                error_kind=result.error_kind.value,
                error=result.error,
            )
            return result

        if self._snapshot_epoch == epoch == self.auth_state.epoch:
            self._sessions = [record for record in self._sessions if record.is_current_session]
        logger.info("Other sessions terminated", remaining=len(self.sessions))
        return result

    @staticmethod
    def _parse_sessions(data: Any) -> List[SessionRecord]:
        raw = data.get("sessions") if isinstance(data, dict) else data
        if raw is None:
            return []
        if not isinstance(raw, list):
            raise ValueError("sessions must be a list")
        records = [SessionRecord.model_validate(item) for item in raw]
        return [record for record in records if record.is_active]
