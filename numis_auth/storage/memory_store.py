"""
In-memory session store for tests and hosts without persistent storage.
"""
from typing import Dict, Optional

import structlog

logger = structlog.get_logger()


class InMemorySessionStore:
    """Dictionary-backed session store. Contents are lost on restart."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    async def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    async def set(self, key: str, value: str) -> None:
        self._data[key] = value
        logger.debug("Session store key written", key=key)

    async def remove(self, key: str) -> None:
        self._data.pop(key, None)
        logger.debug("Session store key removed", key=key)

    def snapshot(self) -> Dict[str, str]:
        """Copy of the stored data."""
        return dict(self._data)
