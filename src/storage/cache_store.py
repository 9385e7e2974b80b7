# src/storage/cache_store.py

"""TTL-checked listing cache on top of session storage."""

import json
import logging
import time
from dataclasses import dataclass

from src.config.settings import Settings
from src.exceptions import CacheCorrupt
from src.models.listing import ItemType, Listing
from src.storage.session_storage import SessionStorage

logger = logging.getLogger("baybot.cache")

CURATED_PREFIX = "curated"
SEARCHED_PREFIX = "searched"


@dataclass
class CacheEntry:
    """A cached listing set and its write time in epoch milliseconds."""

    items: list[Listing]
    timestamp: int

    def age_seconds(self, now_ms: int | None = None) -> float:
        """Seconds elapsed since the entry was written."""
        current = now_ms if now_ms is not None else _now_ms()
        return max(0.0, (current - self.timestamp) / 1000)


def _now_ms() -> int:
    return int(time.time() * 1000)


def normalize_query(query: str) -> str:
    """Lowercase and collapse whitespace so equivalent queries share a key."""
    return " ".join(query.lower().split())


def curated_key(item_type: ItemType) -> str:
    """Cache key of the curated (no-query) pool."""
    return f"{CURATED_PREFIX}:{item_type.value}"


def searched_key(item_type: ItemType, query: str) -> str:
    """Cache key of an explicit query's results."""
    return f"{SEARCHED_PREFIX}:{item_type.value}:{normalize_query(query)}"


def cache_key(item_type: ItemType, query: str) -> str:
    """Curated key for blank queries, searched key otherwise."""
    if not query.strip():
        return curated_key(item_type)
    return searched_key(item_type, query)


class CacheStore:
    """Single entry point for every cached listing pool.

    Entries are JSON ``{"items": [...], "timestamp": <epoch-ms>}``.
    Curated pools live for ``CURATED_CACHE_TTL``, searched results for
    ``SEARCHED_CACHE_TTL``. Stale or undecodable entries are deleted
    on read and reported as a miss.
    """

    def __init__(self, storage: SessionStorage | None = None) -> None:
        self.storage = storage or SessionStorage()

    @staticmethod
    def ttl_for(key: str) -> float:
        """TTL in seconds for ``key``."""
        if key.startswith(f"{CURATED_PREFIX}:"):
            return Settings.CURATED_CACHE_TTL
        return Settings.SEARCHED_CACHE_TTL

    def _decode(self, key: str, raw: str) -> CacheEntry:
        try:
            payload = json.loads(raw)
            items_data = payload["items"]
            if not isinstance(items_data, list):
                raise TypeError("items is not a list")
            timestamp = int(payload["timestamp"])
            items = [Listing.from_dict(d) for d in items_data]
        except (ValueError, KeyError, TypeError) as exc:
            raise CacheCorrupt(f"Malformed cache entry '{key}': {exc}") from exc
        return CacheEntry(items=items, timestamp=timestamp)

    def peek(self, key: str) -> CacheEntry | None:
        """Read an entry without the freshness check.

        Corrupt entries are still deleted.
        """
        raw = self.storage.get_item(key)
        if raw is None:
            return None
        try:
            return self._decode(key, raw)
        except CacheCorrupt as exc:
            logger.warning("%s, deleting", exc)
            self.storage.remove_item(key)
            return None

    def get(self, key: str) -> CacheEntry | None:
        """Return a fresh entry for ``key`` or ``None`` on miss."""
        entry = self.peek(key)
        if entry is None:
            return None
        age = entry.age_seconds()
        if age >= self.ttl_for(key):
            logger.debug(
                "Cache entry '%s' expired (age %.0fs)", key, age
            )
            self.storage.remove_item(key)
            return None
        logger.info(
            "Cache hit for '%s' (%d items, age %.0fs)",
            key,
            len(entry.items),
            age,
        )
        return entry

    def set(self, key: str, items: list[Listing]) -> CacheEntry:
        """Overwrite ``key`` with ``items`` stamped now."""
        entry = CacheEntry(items=list(items), timestamp=_now_ms())
        payload = {
            "items": [item.to_dict() for item in entry.items],
            "timestamp": entry.timestamp,
        }
        self.storage.set_item(key, json.dumps(payload))
        logger.info("Cached %d items under '%s'", len(items), key)
        return entry

    def delete(self, key: str) -> None:
        """Remove ``key`` if present."""
        self.storage.remove_item(key)
        logger.debug("Deleted cache entry '%s'", key)

    def age(self, key: str) -> float | None:
        """Age in seconds of the entry under ``key``, if any."""
        entry = self.peek(key)
        if entry is None:
            return None
        return entry.age_seconds()

    def remove_listing(self, key: str, listing_id: str) -> bool:
        """Drop one listing from the entry under ``key``.

        The entry keeps its timestamp. If the removal leaves it empty
        the entry is deleted instead. Returns ``True`` when the
        stored entry changed.
        """
        entry = self.peek(key)
        if entry is None:
            return False
        remaining = [item for item in entry.items if item.id != listing_id]
        if len(remaining) == len(entry.items):
            return False
        if not remaining:
            self.delete(key)
            return True
        payload = {
            "items": [item.to_dict() for item in remaining],
            "timestamp": entry.timestamp,
        }
        self.storage.set_item(key, json.dumps(payload))
        logger.debug(
            "Removed listing '%s' from '%s' (%d left)",
            listing_id,
            key,
            len(remaining),
        )
        return True

    def clear(self) -> int:
        """Purge all cache entries.

        Returns the number of entries that were removed.
        """
        return self.storage.clear()
