"""
Authenticated request wrapper.
Attaches the bearer credential to outgoing calls and converts every HTTP and
transport outcome into an ``ApiResult``. A revocation-coded 401 forces a
logout through the state machine.
"""
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx
import structlog

from ..core.config import Settings, get_settings
from ..models.results import ApiResult, ErrorKind
from .auth_state import AuthStateMachine

logger = structlog.get_logger()

SESSION_CHECK_PATH = "/api/auth/session-check"


@dataclass
class ApiRequest:
    """Outgoing API call."""
    method: str
    path: str
    json: Any = None
    params: Optional[Dict[str, Any]] = None
    headers: Optional[Dict[str, str]] = None


class AuthenticatedClient:
    """Request wrapper bound to the process-wide authentication state."""

    def __init__(
        self,
        auth_state: AuthStateMachine,
        http_client: httpx.AsyncClient,
        settings: Optional[Settings] = None,
    ):
        self.auth_state = auth_state
        self.http_client = http_client
        self.settings = settings or get_settings()

    async def execute(self, request: ApiRequest) -> ApiResult:
        """
        Send a request with the current credential.

        Args:
            request: Request to send; an ``Authorization`` header already
                present is left as is

        Returns:
            Classified result. ``UNAUTHENTICATED`` without a credential,
            ``SESSION_REVOKED`` after forcing a logout, ``UNAUTHORIZED`` for
            other 401s (credential untouched), ``NETWORK_FAILURE`` when the
            transport failed (state untouched).
        """
        credential = self.auth_state.credential
        if credential is None:
            logger.debug("Authenticated request without credential", method=request.method, path=request.path)
            return ApiResult.failure(ErrorKind.UNAUTHENTICATED, "Not authenticated")

        epoch = self.auth_state.epoch
        headers = httpx.Headers(request.headers or {})
        if "Authorization" not in headers:
            headers["Authorization"] = f"Bearer {credential.token}"

        try:
            response = await self.http_client.request(
                request.method,
                request.path,
                json=request.json,
                params=request.params,
                headers=headers,
            )
        except httpx.HTTPError as e:
            logger.warning(
                "Authenticated request failed - network error",
                method=request.method,
                path=request.path,
                error=str(e),
            )
            return ApiResult.network_failure(e)

        result = ApiResult.from_response(response)

        if result.is_session_revoked:
            reason = result.error or self.settings.default_termination_reason
            result.error = reason
            logger.warning("Session revoked by server", method=request.method, path=request.path, reason=reason)
            await self.auth_state.logout(skip_remote_revocation=True, reason=reason, expected_epoch=epoch)
        elif result.error_kind == ErrorKind.UNAUTHORIZED:
            logger.info("Authenticated request unauthorized", method=request.method, path=request.path)
        elif not result.success:
            logger.debug(
                "Authenticated request failed",
                method=request.method,
                path=request.path,
                status_code=result.status_code,
                error_kind=result.error_kind.value,
            )

        return result

    async def get(
        self,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> ApiResult:
        return await self.execute(ApiRequest("GET", path, params=params, headers=headers))

    async def post(
        self,
        path: str,
        json: Any = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> ApiResult:
        return await self.execute(ApiRequest("POST", path, json=json, headers=headers))

    async def delete(self, path: str, headers: Optional[Dict[str, str]] = None) -> ApiResult:
        return await self.execute(ApiRequest("DELETE", path, headers=headers))

    async def check_session(self) -> ApiResult:
        """Ask the server whether the current session is still active."""
        return await self.get(SESSION_CHECK_PATH)
