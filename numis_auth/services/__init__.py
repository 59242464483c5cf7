"""
Authentication and session lifecycle services.
"""

from .auth_state import AuthSnapshot, AuthStateMachine, AuthStatus
from .authenticated_client import ApiRequest, AuthenticatedClient
from .profile_mutator import ProfileMutator
from .session_monitor import SessionMonitor
from .session_registry import SessionRegistry

__all__ = [
    "AuthSnapshot",
    "AuthStateMachine",
    "AuthStatus",
    "ApiRequest",
    "AuthenticatedClient",
    "ProfileMutator",
    "SessionMonitor",
    "SessionRegistry",
]
