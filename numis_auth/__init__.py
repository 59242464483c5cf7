"""
Numis authentication client.

Client-side authentication and session lifecycle manager for the Numis
collector community API.
"""

from .container import AuthContainer
from .core import NotInitializedError, Settings, StorageError, configure_logging, get_settings
from .interfaces import ISessionStore
from .models import ApiResult, Credential, ErrorKind, FieldError, SessionRecord, UserProfile
from .services import (
    ApiRequest,
    AuthenticatedClient,
    AuthSnapshot,
    AuthStateMachine,
    AuthStatus,
    ProfileMutator,
    SessionMonitor,
    SessionRegistry,
)
from .storage import InMemorySessionStore, RedisSessionStore

__version__ = "0.1.0"

__all__ = [
    "AuthContainer",
    "Settings",
    "get_settings",
    "configure_logging",
    "NotInitializedError",
    "StorageError",
    "ISessionStore",
    "ApiResult",
    "Credential",
    "ErrorKind",
    "FieldError",
    "SessionRecord",
    "UserProfile",
    "ApiRequest",
    "AuthenticatedClient",
    "AuthSnapshot",
    "AuthStateMachine",
    "AuthStatus",
    "ProfileMutator",
    "SessionMonitor",
    "SessionRegistry",
    "InMemorySessionStore",
    "RedisSessionStore",
]
