"""
Exception types for the authentication client.

Network and HTTP outcomes are never raised; they come back as ``ApiResult``
values. The exceptions below cover programmer errors and storage backends.
"""


class NumisAuthError(Exception):
    """Base exception for the authentication client."""
    pass


class NotInitializedError(NumisAuthError):
    """Raised when an account operation runs before ``initialize()`` completed."""
    pass


class StorageError(NumisAuthError):
    """Raised by session store backends when a read or write fails."""

    def __init__(self, message: str, key: str = None):
        super().__init__(message)
        self.key = key
