"""
Typed outcomes for every network-facing operation.

HTTP statuses and transport failures are converted to ``ApiResult`` values in
one place so that callers never see raw exceptions from the transport.
"""
from dataclasses import dataclass, field as dataclass_field
from enum import Enum
from typing import Any, Dict, List, Optional

import httpx

# 401 bodies carrying this code mean the session was revoked server-side
SESSION_TERMINATED_CODE = "SESSION_TERMINATED"


class ErrorKind(Enum):
    """Failure taxonomy surfaced to the UI layer."""
    INVALID_INPUT = "invalid_input"
    UNAUTHENTICATED = "unauthenticated"
    UNAUTHORIZED = "unauthorized"
    SESSION_REVOKED = "session_revoked"
    NETWORK_FAILURE = "network_failure"
    SERVER_VALIDATION = "server_validation"
    REQUEST_REJECTED = "request_rejected"
    SERVER_ERROR = "server_error"
    STORAGE_FAILURE = "storage_failure"
    SUPERSEDED = "superseded"


@dataclass(frozen=True)
class FieldError:
    """Field-level validation message for form redisplay."""
    field: str
    message: str


@dataclass
class ApiResult:
    """Outcome of an operation: success with data, or a classified failure."""
    success: bool
    status_code: Optional[int] = None
    data: Any = None
    error: Optional[str] = None
    error_kind: Optional[ErrorKind] = None
    details: List[FieldError] = dataclass_field(default_factory=list)
    field: Optional[str] = None

    @property
    def field_errors(self) -> Dict[str, str]:
        """Map of field name to message, including the single ``field`` hint."""
        errors = {detail.field: detail.message for detail in self.details}
        if self.field and self.field not in errors and self.error:
            errors[self.field] = self.error
        return errors

    @property
    def is_session_revoked(self) -> bool:
        return self.error_kind == ErrorKind.SESSION_REVOKED

    @classmethod
    def ok(cls, data: Any = None, status_code: Optional[int] = None) -> "ApiResult":
        return cls(success=True, status_code=status_code, data=data)

    @classmethod
    def failure(
        cls,
        error_kind: ErrorKind,
        error: Optional[str],
        status_code: Optional[int] = None,
        details: Optional[List[FieldError]] = None,
        field: Optional[str] = None,
        data: Any = None,
    ) -> "ApiResult":
        return cls(
            success=False,
            status_code=status_code,
            data=data,
            error=error,
            error_kind=error_kind,
            details=list(details or []),
            field=field,
        )

    @classmethod
    def invalid_input(cls, error: str, field: Optional[str] = None) -> "ApiResult":
        details = [FieldError(field=field, message=error)] if field else []
        return cls.failure(ErrorKind.INVALID_INPUT, error, details=details, field=field)

    @classmethod
    def network_failure(cls, exc: Exception) -> "ApiResult":
        return cls.failure(ErrorKind.NETWORK_FAILURE, f"Network error: {exc.__class__.__name__}")

    @classmethod
    def from_response(cls, response: httpx.Response) -> "ApiResult":
        """
        Classify an HTTP response.

        Args:
            response: Completed HTTP response

        Returns:
            ``ok`` for 2xx, otherwise a failure whose kind follows the status
            and body (revocation code, field-level details).
        """
        status_code = response.status_code
        body = _json_body(response)

        if 200 <= status_code < 300:
            return cls.ok(body, status_code=status_code)

        message = _error_message(body)
        field = body.get("field") if isinstance(body, dict) else None

        if status_code == 401:
            if is_revocation_body(body):
                # Message may be absent; the caller substitutes its default reason
                return cls.failure(ErrorKind.SESSION_REVOKED, message, status_code=status_code, data=body)
            return cls.failure(
                ErrorKind.UNAUTHORIZED,
                message or "Authentication required",
                status_code=status_code,
                field=field,
                data=body,
            )

        if 400 <= status_code < 500:
            details = _field_details(body)
            kind = ErrorKind.SERVER_VALIDATION if details or field else ErrorKind.REQUEST_REJECTED
            if not message and details:
                message = details[0].message
            return cls.failure(
                kind,
                message or response.reason_phrase or f"Request failed with status {status_code}",
                status_code=status_code,
                details=details,
                field=field,
                data=body,
            )

        return cls.failure(
            ErrorKind.SERVER_ERROR,
            message or "Server error",
            status_code=status_code,
            data=body,
        )


def is_revocation_body(body: Any) -> bool:
    """True when a 401 body marks the session as revoked rather than merely expired."""
    if not isinstance(body, dict):
        return False
    return body.get("code") == SESSION_TERMINATED_CODE or body.get("sessionTerminated") is True


def _json_body(response: httpx.Response) -> Any:
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return None


def _error_message(body: Any) -> Optional[str]:
    if not isinstance(body, dict):
        return None
    for key in ("error", "msg", "message"):
        value = body.get(key)
        if isinstance(value, str) and value:
            return value
    return None


def _field_details(body: Any) -> List[FieldError]:
    """Parse ``details`` ([{field, message}]) or validator ``errors`` ([{param|path, msg}])."""
    if not isinstance(body, dict):
        return []
    details = []
    for item in body.get("details") or body.get("errors") or []:
        if not isinstance(item, dict):
            continue
        name = item.get("field") or item.get("param") or item.get("path")
        message = item.get("message") or item.get("msg")
        if name and message:
            details.append(FieldError(field=str(name), message=str(message)))
    return details
