"""
Session store interface for dependency abstraction.
Defines the contract for persisting the credential, the cached profile and
the last forced-logout reason across process restarts.
"""

from typing import Optional, Protocol, runtime_checkable


# Storage keys shared by every backend
TOKEN_KEY = "token"
USER_KEY = "user"
LOGOUT_REASON_KEY = "logoutReason"


@runtime_checkable
class ISessionStore(Protocol):
    """Protocol for persistent key/value session storage."""

    async def get(self, key: str) -> Optional[str]:
        """
        Get a stored value.

        Args:
            key: Storage key

        Returns:
            Stored string or None if the key is absent

        Raises:
            StorageError: If the backend cannot be read
        """
        ...

    async def set(self, key: str, value: str) -> None:
        """
        Store a value durably.

        Args:
            key: Storage key
            value: String value to store

        Raises:
            StorageError: If the write did not complete
        """
        ...

    async def remove(self, key: str) -> None:
        """
        Remove a key. Removing an absent key is not an error.

        Args:
            key: Storage key to remove

        Raises:
            StorageError: If the removal did not complete
        """
        ...
