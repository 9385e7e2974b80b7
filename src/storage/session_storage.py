# src/storage/session_storage.py

"""Session-scoped string key/value storage."""

import logging

logger = logging.getLogger("baybot.cache")


class SessionStorage:
    """In-process string store living as long as one client session.

    Values are opaque strings; encoding is the caller's concern.
    """

    def __init__(self) -> None:
        self._data: dict[str, str] = {}

    def get_item(self, key: str) -> str | None:
        """Return the raw value for ``key`` or ``None``."""
        return self._data.get(key)

    def set_item(self, key: str, value: str) -> None:
        """Store ``value`` under ``key``, replacing any previous value."""
        self._data[key] = value

    def remove_item(self, key: str) -> None:
        """Delete ``key`` if present."""
        self._data.pop(key, None)

    def keys(self) -> list[str]:
        """All keys currently stored."""
        return list(self._data)

    def clear(self) -> int:
        """Drop every entry and return how many were removed."""
        count = len(self._data)
        self._data.clear()
        logger.info("Session storage cleared (%d entries removed)", count)
        return count
