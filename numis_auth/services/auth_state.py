"""
Authentication state machine.
Single source of truth for the credential, the cached profile and the
forced-logout flag. Persists every transition before notifying subscribers
and guards asynchronous results with a monotonic epoch.
"""
import asyncio
import inspect
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, List, Mapping, Optional, Tuple, Union

import httpx
import structlog

from ..core.config import Settings, get_settings
from ..core.exceptions import NotInitializedError, StorageError
from ..core.logging import token_fingerprint
from ..interfaces.storage_interface import ISessionStore, LOGOUT_REASON_KEY, TOKEN_KEY, USER_KEY
from ..models.results import ApiResult, ErrorKind
from ..models.user import Credential, UserProfile

logger = structlog.get_logger()

LOGIN_PATH = "/api/auth/login"
LOGOUT_PATH = "/api/auth/logout"
ME_PATH = "/api/auth/me"


class AuthStatus(Enum):
    """Lifecycle states of the authentication manager."""
    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    AUTHENTICATED = "authenticated"
    UNAUTHENTICATED = "unauthenticated"


@dataclass(frozen=True)
class AuthSnapshot:
    """Immutable view of the authentication state handed to subscribers."""
    user: Optional[UserProfile]
    token: Optional[str]
    is_loading: bool
    is_initialized: bool
    session_terminated: bool
    termination_reason: Optional[str]
    status: AuthStatus

    @property
    def is_authenticated(self) -> bool:
        return self.token is not None


AuthListener = Callable[[AuthSnapshot], Union[None, Awaitable[None]]]


class AuthStateMachine:
    """Owns the credential and cached profile for the running process."""

    def __init__(
        self,
        store: ISessionStore,
        http_client: httpx.AsyncClient,
        settings: Optional[Settings] = None,
    ):
        self.store = store
        self.http_client = http_client
        self.settings = settings or get_settings()

        self._credential: Optional[Credential] = None
        self._user: Optional[UserProfile] = None
        self._is_loading = False
        self._is_initialized = False
        self._session_terminated = False
        self._termination_reason: Optional[str] = None

        # Bumped on every login/logout; async work compares before committing
        self._epoch = 0
        self._storage_dirty = False
        self._transition_lock = asyncio.Lock()
        self._init_task: Optional[asyncio.Future] = None
        self._listeners: List[AuthListener] = []
        self._last_notified: Optional[AuthSnapshot] = None

    # ------------------------------------------------------------------
    # Read access
    # ------------------------------------------------------------------

    @property
    def credential(self) -> Optional[Credential]:
        return self._credential

    @property
    def token(self) -> Optional[str]:
        return self._credential.token if self._credential else None

    @property
    def user(self) -> Optional[UserProfile]:
        return self._user

    @property
    def is_loading(self) -> bool:
        return self._is_loading

    @property
    def is_initialized(self) -> bool:
        return self._is_initialized

    @property
    def is_authenticated(self) -> bool:
        return self._credential is not None

    @property
    def session_terminated(self) -> bool:
        return self._session_terminated

    @property
    def termination_reason(self) -> Optional[str]:
        return self._termination_reason

    @property
    def epoch(self) -> int:
        return self._epoch

    @property
    def storage_dirty(self) -> bool:
        """True while a persisted credential is known to have survived a logout."""
        return self._storage_dirty

    @property
    def status(self) -> AuthStatus:
        if not self._is_initialized:
            return AuthStatus.INITIALIZING if self._is_loading else AuthStatus.UNINITIALIZED
        return AuthStatus.AUTHENTICATED if self._credential else AuthStatus.UNAUTHENTICATED

    @property
    def snapshot(self) -> AuthSnapshot:
        return AuthSnapshot(
            user=self._user,
            token=self.token,
            is_loading=self._is_loading,
            is_initialized=self._is_initialized,
            session_terminated=self._session_terminated,
            termination_reason=self._termination_reason,
            status=self.status,
        )

    def require_initialized(self) -> None:
        """
        Guard for account operations.

        Raises:
            NotInitializedError: If ``initialize()`` has not completed
        """
        if not self._is_initialized:
            raise NotInitializedError("initialize() must complete before account operations")

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------

    def subscribe(self, listener: AuthListener) -> Callable[[], None]:
        """
        Register a listener called with an ``AuthSnapshot`` after every change.

        Args:
            listener: Sync or async callable

        Returns:
            Function that removes the listener
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def _notify(self) -> None:
        snapshot = self.snapshot
        if snapshot == self._last_notified:
            return
        self._last_notified = snapshot

        for listener in list(self._listeners):
            try:
                result = listener(snapshot)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.error(
                    "Auth state listener failed",
                    listener=getattr(listener, "__name__", repr(listener)),
                    error=str(e),
                )

    # ------------------------------------------------------------------
    # Initialization
    # ------------------------------------------------------------------

    async def initialize(self) -> AuthSnapshot:
        """
        Restore persisted authentication state.

        Runs once per instance; concurrent and repeated calls wait for the
        same hydration. A persisted credential without a persisted profile
        triggers exactly one profile fetch before loading settles.

        Returns:
            The settled snapshot
        """
        if self._init_task is None:
            self._init_task = asyncio.ensure_future(self._run_initialize())
        await asyncio.shield(self._init_task)
        return self.snapshot

    async def _run_initialize(self) -> None:
        epoch = self._epoch
        self._is_loading = True
        await self._notify()

        fetch_token = None
        try:
            token, raw_user, reason = await self._read_persisted()

            async with self._transition_lock:
                if epoch != self._epoch:
                    logger.info("Persisted auth state superseded during initialization")
                elif reason:
                    self._session_terminated = True
                    self._termination_reason = reason
                    if token:
                        logger.warning("Ignoring persisted credential of a terminated session")
                        self._storage_dirty = not await self._clear_persisted(reason)
                elif token:
                    user = self._parse_stored_user(raw_user)
                    self._credential = Credential(token=token, user_id=user.id if user else None)
                    self._user = user
                    if user is None:
                        fetch_token = token
            await self._notify()

            if fetch_token:
                await self._fetch_profile(fetch_token, epoch)
        finally:
            self._is_loading = False
            self._is_initialized = True
            logger.info(
                "Authentication state initialized",
                authenticated=self.is_authenticated,
                has_profile=self._user is not None,
                session_terminated=self._session_terminated,
            )
            await self._notify()

    async def _read_persisted(self) -> Tuple[Optional[str], Optional[str], Optional[str]]:
        try:
            token = await self.store.get(TOKEN_KEY)
            raw_user = await self.store.get(USER_KEY)
            reason = await self.store.get(LOGOUT_REASON_KEY)
        except StorageError as e:
            logger.error("Failed to read persisted auth state", error=str(e))
            return None, None, None
        return token, raw_user, reason

    def _parse_stored_user(self, raw_user: Optional[str]) -> Optional[UserProfile]:
        if not raw_user:
            return None
        try:
            return UserProfile.from_storage(raw_user)
        except ValueError as e:
            logger.warning("Discarding unreadable persisted profile", error=str(e))
            return None

    # ------------------------------------------------------------------
    # Login
    # ------------------------------------------------------------------

    async def authenticate(self, identifier: str, password: str) -> ApiResult:
        """
        Exchange an email/username and password for a credential, then log in.

        Args:
            identifier: Email address or username
            password: Account password

        Returns:
            Result of the login, or the server's rejection
        """
        if not identifier or not password:
            field = "identifier" if not identifier else "password"
            return ApiResult.invalid_input("Identifier and password are required", field=field)

        try:
            response = await self.http_client.post(
                LOGIN_PATH, json={"identifier": identifier, "password": password}
            )
        except httpx.HTTPError as e:
            logger.warning("Login request failed - network error", error=str(e))
            return ApiResult.network_failure(e)

        result = ApiResult.from_response(response)
        if not result.success:
            logger.info("Login rejected", status_code=result.status_code, error_kind=result.error_kind.value)
            return result

        data = result.data if isinstance(result.data, dict) else {}
        token = data.get("token")
        if not token:
            logger.error("Login response did not include a token")
            return ApiResult.failure(
                ErrorKind.SERVER_ERROR, "Login response did not include a token", status_code=result.status_code
            )
        return await self.login(token, data.get("user"))

    async def login(self, token: str, user_data: Optional[Mapping[str, Any]] = None) -> ApiResult:
        """
        Replace the credential and optionally the cached profile.

        Args:
            token: Bearer token issued by the server
            user_data: User payload returned with the token; fetched when omitted

        Returns:
            ``ok`` with the cached profile (``None`` if it could not be fetched
            yet), or a failure. An empty token changes nothing.
        """
        if not token or not token.strip():
            logger.warning("Login called without a token")
            return ApiResult.invalid_input("No token provided", field="token")

        user = None
        if user_data is not None:
            try:
                user = UserProfile.from_payload(user_data)
            except ValueError as e:
                logger.warning("Login user data rejected", error=str(e))
                return ApiResult.invalid_input("User data does not carry an account id", field="user")

        async with self._transition_lock:
            self._epoch += 1
            epoch = self._epoch
            try:
                await self.store.remove(LOGOUT_REASON_KEY)
                await self.store.set(TOKEN_KEY, token)
                if user is not None:
                    await self.store.set(USER_KEY, user.to_storage())
                else:
                    await self.store.remove(USER_KEY)
            except StorageError as e:
                logger.error("Failed to persist credential", error=str(e))
                return ApiResult.failure(ErrorKind.STORAGE_FAILURE, "Could not persist credential")

            self._credential = Credential(token=token, user_id=user.id if user else None)
            self._user = user
            self._session_terminated = False
            self._termination_reason = None
            self._storage_dirty = False

        logger.info(
            "User logged in",
            token=token_fingerprint(token),
            user_id=user.id if user else None,
            epoch=epoch,
        )
        await self._notify()

        if user is not None:
            return ApiResult.ok(user)

        result = await self._fetch_profile(token, epoch)
        if result.success:
            return result
        if result.error_kind == ErrorKind.NETWORK_FAILURE or result.error_kind == ErrorKind.SERVER_ERROR:
            # Credential stays; refresh_profile() retries the fetch
            return ApiResult.ok(None)
        return result

    # ------------------------------------------------------------------
    # Profile
    # ------------------------------------------------------------------

    async def refresh_profile(self) -> ApiResult:
        """Fetch the profile for the current credential and cache it."""
        credential = self._credential
        if credential is None:
            return ApiResult.failure(ErrorKind.UNAUTHENTICATED, "Not authenticated")
        return await self._fetch_profile(credential.token, self._epoch)

    async def _fetch_profile(self, token: str, epoch: int) -> ApiResult:
        try:
            response = await self.http_client.get(ME_PATH, headers={"Authorization": f"Bearer {token}"})
        except httpx.HTTPError as e:
            logger.warning("Profile fetch failed - network error", error=str(e))
            return ApiResult.network_failure(e)

        result = ApiResult.from_response(response)

        if result.success:
            try:
                profile = UserProfile.from_payload(result.data or {})
            except ValueError as e:
                logger.error("Profile response did not carry an account id", error=str(e))
                return ApiResult.failure(
                    ErrorKind.SERVER_ERROR, "Malformed profile response", status_code=result.status_code
                )
            return await self._commit_profile(profile, epoch)

        if result.error_kind in (ErrorKind.UNAUTHORIZED, ErrorKind.SESSION_REVOKED):
            reason = None
            if result.is_session_revoked:
                reason = result.error or self.settings.default_termination_reason
                result.error = reason
            logger.info("Credential rejected during profile fetch", error_kind=result.error_kind.value)
            await self.logout(skip_remote_revocation=True, reason=reason, expected_epoch=epoch)
            return result

        logger.warning(
            "Profile fetch failed",
            status_code=result.status_code,
            error_kind=result.error_kind.value,
        )
        return result

    async def _commit_profile(self, profile: UserProfile, epoch: int) -> ApiResult:
        async with self._transition_lock:
            if epoch != self._epoch or self._credential is None:
                logger.info("Discarding stale profile", started_epoch=epoch, current_epoch=self._epoch)
                return ApiResult.failure(ErrorKind.SUPERSEDED, "Profile fetch superseded by a newer login or logout")
            try:
                await self.store.set(USER_KEY, profile.to_storage())
            except StorageError as e:
                logger.error("Failed to persist profile", error=str(e))
                return ApiResult.failure(ErrorKind.STORAGE_FAILURE, "Could not persist profile")
            self._user = profile
            self._credential = self._credential.bound_to(profile.id)

        await self._notify()
        return ApiResult.ok(profile)

    async def merge_profile(self, fields: Mapping[str, Any], expected_epoch: Optional[int] = None) -> ApiResult:
        """
        Shallow-merge fields into the cached profile and re-persist it.

        Args:
            fields: Profile fields by attribute name or server alias
            expected_epoch: Epoch the caller's request started under

        Returns:
            ``ok`` with the merged profile, ``SUPERSEDED`` when the session
            changed since ``expected_epoch``
        """
        async with self._transition_lock:
            if expected_epoch is not None and expected_epoch != self._epoch:
                logger.info("Discarding stale profile update", started_epoch=expected_epoch, current_epoch=self._epoch)
                return ApiResult.failure(ErrorKind.SUPERSEDED, "Profile update superseded by a newer login or logout")
            if self._credential is None:
                return ApiResult.failure(ErrorKind.UNAUTHENTICATED, "Not authenticated")
            if self._user is None:
                logger.warning("No cached profile to merge into", fields=sorted(fields))
                return ApiResult.ok(None)

            try:
                profile = self._user.merged(fields)
            except ValueError as e:
                logger.warning("Profile fields rejected", fields=sorted(fields), error=str(e))
                return ApiResult.invalid_input("Profile fields have invalid values")
            try:
                await self.store.set(USER_KEY, profile.to_storage())
            except StorageError as e:
                logger.error("Failed to persist profile", error=str(e))
                return ApiResult.failure(ErrorKind.STORAGE_FAILURE, "Could not persist profile")
            self._user = profile

        await self._notify()
        return ApiResult.ok(profile)

    # ------------------------------------------------------------------
    # Logout and termination
    # ------------------------------------------------------------------

    async def logout(
        self,
        skip_remote_revocation: bool = False,
        reason: Optional[str] = None,
        expected_epoch: Optional[int] = None,
    ) -> ApiResult:
        """
        Clear the credential and profile, locally first, then remotely.

        Args:
            skip_remote_revocation: Do not call the server logout endpoint
            reason: Termination reason to surface; marks the session terminated
            expected_epoch: Ignore the request if a login/logout happened since

        Returns:
            ``ok`` once persisted state is cleared, ``STORAGE_FAILURE`` if the
            store could not be cleared after retries (in-memory state is
            cleared regardless), ``SUPERSEDED`` for a stale request
        """
        async with self._transition_lock:
            if expected_epoch is not None and expected_epoch != self._epoch:
                logger.info("Ignoring stale logout", started_epoch=expected_epoch, current_epoch=self._epoch)
                return ApiResult.failure(ErrorKind.SUPERSEDED, "Logout superseded by a newer login or logout")

            credential = self._credential
            self._epoch += 1
            cleared = await self._clear_persisted(reason)

            self._credential = None
            self._user = None
            if reason:
                self._session_terminated = True
                self._termination_reason = reason
            self._storage_dirty = not cleared

        if credential is not None:
            logger.info(
                "User logged out",
                token=credential.fingerprint,
                forced=reason is not None,
                reason=reason,
                epoch=self._epoch,
            )
        await self._notify()

        if credential is not None and not skip_remote_revocation:
            await self._revoke_remote(credential)

        if not cleared:
            return ApiResult.failure(
                ErrorKind.STORAGE_FAILURE,
                "Signed out locally, but stored credentials could not be cleared",
            )
        return ApiResult.ok()

    async def reset_termination(self) -> ApiResult:
        """Clear the forced-logout flag and reason without touching the credential."""
        async with self._transition_lock:
            try:
                await self.store.remove(LOGOUT_REASON_KEY)
            except StorageError as e:
                logger.error("Failed to clear persisted logout reason", error=str(e))
                return ApiResult.failure(ErrorKind.STORAGE_FAILURE, "Could not clear termination reason")
            self._session_terminated = False
            self._termination_reason = None

        await self._notify()
        return ApiResult.ok()

    async def _clear_persisted(self, reason: Optional[str]) -> bool:
        attempts = self.settings.storage_retry_attempts
        for attempt in range(1, attempts + 1):
            try:
                await self.store.remove(TOKEN_KEY)
                await self.store.remove(USER_KEY)
                if reason:
                    await self.store.set(LOGOUT_REASON_KEY, reason)
                return True
            except StorageError as e:
                logger.warning(
                    "Failed to clear persisted credential",
                    attempt=attempt,
                    attempts=attempts,
                    error=str(e),
                )
                if attempt < attempts:
                    await asyncio.sleep(self.settings.storage_retry_delay)

        logger.error("Persisted credential could not be cleared", attempts=attempts)
        return False

    async def _revoke_remote(self, credential: Credential) -> None:
        # Local state is already gone; a failure here only leaves the server
        # session to expire on its own.
        try:
            response = await self.http_client.post(
                LOGOUT_PATH, headers={"Authorization": f"Bearer {credential.token}"}
            )
        except httpx.HTTPError as e:
            logger.warning("Remote session revocation failed", token=credential.fingerprint, error=str(e))
            return

        if response.status_code >= 400:
            logger.warning(
                "Remote session revocation rejected",
                token=credential.fingerprint,
                status_code=response.status_code,
            )
        else:
            logger.debug("Remote session revoked", token=credential.fingerprint)
