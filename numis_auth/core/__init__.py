"""
Core configuration, logging and exception types.
"""

from .config import Settings, get_settings
from .exceptions import NotInitializedError, NumisAuthError, StorageError
from .logging import configure_logging, token_fingerprint

__all__ = [
    "Settings",
    "get_settings",
    "NumisAuthError",
    "NotInitializedError",
    "StorageError",
    "configure_logging",
    "token_fingerprint",
]
