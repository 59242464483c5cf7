"""
Interfaces for dependency injection.
"""

from .storage_interface import ISessionStore, LOGOUT_REASON_KEY, TOKEN_KEY, USER_KEY

__all__ = ["ISessionStore", "TOKEN_KEY", "USER_KEY", "LOGOUT_REASON_KEY"]
