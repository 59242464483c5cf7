"""
Account mutations: password, username, profile fields and account deletion.
"""
from typing import Any, Dict, List, Mapping

import structlog

from ..models.results import ApiResult, ErrorKind, FieldError
from .auth_state import AuthStateMachine
from .authenticated_client import AuthenticatedClient

logger = structlog.get_logger()

CHANGE_PASSWORD_PATH = "/api/auth/change-password"
CHANGE_USERNAME_PATH = "/api/auth/change-username"
CHECK_USERNAME_PATH = "/api/auth/check-username"
UPDATE_PROFILE_PATH = "/api/auth/update-profile"
DELETE_ACCOUNT_PATH = "/api/auth/delete-account"

# Editable profile fields, by attribute name or server name
PROFILE_FIELDS: Dict[str, str] = {
    "full_name": "fullName",
    "fullName": "fullName",
    "email": "email",
    "location": "location",
    "bio": "bio",
}

# The server ignores empty values for these instead of clearing them
REQUIRED_PROFILE_FIELDS = ("fullName", "email", "location")


class ProfileMutator:
    """Account operations that may change the cached profile."""

    def __init__(self, client: AuthenticatedClient, auth_state: AuthStateMachine):
        self.client = client
        self.auth_state = auth_state

    async def change_password(self, current_password: str, new_password: str, confirm_password: str) -> ApiResult:
        """
        Change the account password.

        The server decides whether ``current_password`` is correct; its
        field-level errors come back in ``details``/``field`` for redisplay.
        """
        self.auth_state.require_initialized()

        errors: List[FieldError] = []
        if not current_password:
            errors.append(FieldError("currentPassword", "Current password is required"))
        if not new_password:
            errors.append(FieldError("newPassword", "New password is required"))
        elif new_password != confirm_password:
            errors.append(FieldError("confirmPassword", "Passwords do not match"))
        if errors:
            return ApiResult.failure(ErrorKind.INVALID_INPUT, errors[0].message, details=errors)

        result = await self.client.post(
            CHANGE_PASSWORD_PATH,
            json={"currentPassword": current_password, "newPassword": new_password},
        )
        if result.success:
            logger.info("Password changed")
        else:
            logger.info("Password change rejected", error_kind=result.error_kind.value, field=result.field)
        return result

    async def check_username(self, candidate: str) -> ApiResult:
        """Pre-check username availability. ``data`` is ``True`` when available."""
        self.auth_state.require_initialized()
        candidate = (candidate or "").strip()
        if not candidate:
            return ApiResult.invalid_input("Username is required", field="username")

        result = await self.client.post(CHECK_USERNAME_PATH, json={"username": candidate})
        if not result.success:
            return result
        available = bool(result.data.get("available")) if isinstance(result.data, dict) else False
        return ApiResult.ok(available, status_code=result.status_code)

    async def change_username(self, candidate: str) -> ApiResult:
        """
        Change the username.

        Availability is always decided by the change request itself, even
        after a successful ``check_username``; on success the cached
        username is replaced.
        """
        self.auth_state.require_initialized()
        candidate = (candidate or "").strip()
        if not candidate:
            return ApiResult.invalid_input("Username is required", field="username")

        epoch = self.auth_state.epoch
        result = await self.client.post(CHANGE_USERNAME_PATH, json={"username": candidate})
        if not result.success:
            logger.info("Username change rejected", error_kind=result.error_kind.value, field=result.field)
            return result

        username = candidate
        if isinstance(result.data, dict) and isinstance(result.data.get("user"), dict):
            username = result.data["user"].get("username") or candidate

        merged = await self.auth_state.merge_profile({"username": username}, expected_epoch=epoch)
        if not merged.success:
            return merged
        logger.info("Username changed")
        return ApiResult.ok(merged.data, status_code=result.status_code)

    async def update_profile(self, fields: Mapping[str, Any]) -> ApiResult:
        """
        Update profile fields and shallow-merge the result into the cached profile.

        The user returned by the server is what gets cached; the request
        payload is merged only when the response carries no user.

        Args:
            fields: Any of ``full_name``/``fullName``, ``email``, ``location``,
                ``bio``
        """
        self.auth_state.require_initialized()

        unknown = sorted(key for key in fields if key not in PROFILE_FIELDS)
        if unknown:
            return ApiResult.invalid_input(f"Unsupported profile fields: {', '.join(unknown)}", field=unknown[0])
        payload = {PROFILE_FIELDS[key]: value for key, value in fields.items()}
        if not payload:
            return ApiResult.invalid_input("No profile fields to update")

        errors = self._validate_profile_payload(payload)
        if errors:
            return ApiResult.failure(ErrorKind.INVALID_INPUT, errors[0].message, details=errors, field=errors[0].field)

        epoch = self.auth_state.epoch
        result = await self.client.post(UPDATE_PROFILE_PATH, json=payload)
        if not result.success:
            logger.info("Profile update rejected", error_kind=result.error_kind.value, field=result.field)
            return result

        updated = payload
        if isinstance(result.data, dict) and isinstance(result.data.get("user"), dict):
            updated = result.data["user"]

        merged = await self.auth_state.merge_profile(updated, expected_epoch=epoch)
        if not merged.success:
            return merged
        logger.info("Profile updated", fields=sorted(payload))
        return ApiResult.ok(merged.data, status_code=result.status_code)

    @staticmethod
    def _validate_profile_payload(payload: Mapping[str, Any]) -> List[FieldError]:
        errors: List[FieldError] = []
        for name, value in payload.items():
            if name in REQUIRED_PROFILE_FIELDS:
                if not isinstance(value, str) or not value.strip():
                    errors.append(FieldError(name, f"{name} must be a non-empty string"))
            elif value is not None and not isinstance(value, str):
                errors.append(FieldError(name, f"{name} must be a string"))
        return errors

    async def delete_account(self, password: str) -> ApiResult:
        """
        Permanently delete the account.

        Does not log out: the deletion already invalidated every session, so
        the caller clears local state (``logout(skip_remote_revocation=True)``)
        and navigates away.
        """
        self.auth_state.require_initialized()
        if not password:
            return ApiResult.invalid_input("Password is required", field="password")

        result = await self.client.post(DELETE_ACCOUNT_PATH, json={"password": password})
        if result.success:
            logger.info("Account deleted")
        else:
            logger.info("Account deletion rejected", error_kind=result.error_kind.value, field=result.field)
        return result
