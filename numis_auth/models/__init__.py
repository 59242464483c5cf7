"""
Data models for credentials, profiles, sessions and operation results.
"""

from .results import ApiResult, ErrorKind, FieldError, SESSION_TERMINATED_CODE, is_revocation_body
from .session import DeviceInfo, SessionRecord
from .user import Credential, UserProfile

__all__ = [
    "ApiResult",
    "ErrorKind",
    "FieldError",
    "SESSION_TERMINATED_CODE",
    "is_revocation_body",
    "DeviceInfo",
    "SessionRecord",
    "Credential",
    "UserProfile",
]
