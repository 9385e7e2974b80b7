# tests/test_cache_store.py

"""Tests for the TTL-checked session cache."""

import json
import unittest
from unittest.mock import patch

from src.models.listing import AuctionDetails, ItemType, Listing
from src.storage.cache_store import (
    CacheStore,
    cache_key,
    curated_key,
    normalize_query,
    searched_key,
)
from src.storage.session_storage import SessionStorage

T0 = 1_770_000_000_000  # epoch ms


def _deal(item_id: str) -> Listing:
    return Listing(
        id=item_id, item_type=ItemType.DEAL, title=f"Deal {item_id}",
        price=20.0, original_price=40.0,
    )


def _auction(item_id: str) -> Listing:
    return Listing(
        id=item_id, item_type=ItemType.AUCTION, title=f"Lot {item_id}",
        price=20.0, auction=AuctionDetails(end_time="2099-01-01T00:00:00Z", bid_count=2),
    )


class TestKeys(unittest.TestCase):
    """Cache key helpers."""

    def test_curated_and_searched_keys(self) -> None:
        self.assertEqual(curated_key(ItemType.DEAL), "curated:deal")
        self.assertEqual(
            searched_key(ItemType.AUCTION, "  Vintage   Camera "),
            "searched:auction:vintage camera",
        )

    def test_blank_query_maps_to_curated(self) -> None:
        self.assertEqual(cache_key(ItemType.AUCTION, "   "), "curated:auction")
        self.assertEqual(cache_key(ItemType.DEAL, "PS5"), "searched:deal:ps5")

    def test_normalize_query(self) -> None:
        self.assertEqual(normalize_query("Nintendo\tSwitch "), "nintendo switch")

    def test_ttl_per_key_kind(self) -> None:
        self.assertEqual(CacheStore.ttl_for("curated:deal"), 3600.0)
        self.assertEqual(CacheStore.ttl_for("searched:deal:tv"), 300.0)


@patch("src.storage.cache_store._now_ms")
class TestCacheStore(unittest.TestCase):
    """CacheStore read/write behaviour."""

    def setUp(self) -> None:
        self.storage = SessionStorage()
        self.cache = CacheStore(self.storage)

    def test_round_trip_before_ttl(self, now_ms) -> None:
        """A written pool reads back with the same ids before expiry."""
        now_ms.return_value = T0
        key = searched_key(ItemType.AUCTION, "omega")
        self.cache.set(key, [_auction("a"), _auction("b")])

        now_ms.return_value = T0 + 299_000
        entry = self.cache.get(key)
        self.assertIsNotNone(entry)
        self.assertEqual({l.id for l in entry.items}, {"a", "b"})
        self.assertEqual(entry.items[0].auction.bid_count, 2)

    def test_miss_after_ttl_and_entry_deleted(self, now_ms) -> None:
        """Expired entries read as a miss and are removed."""
        now_ms.return_value = T0
        key = searched_key(ItemType.DEAL, "tv")
        self.cache.set(key, [_deal("d")])

        now_ms.return_value = T0 + 300_000
        self.assertIsNone(self.cache.get(key))
        self.assertIsNone(self.storage.get_item(key))

    def test_curated_ttl_is_one_hour(self, now_ms) -> None:
        now_ms.return_value = T0
        key = curated_key(ItemType.DEAL)
        self.cache.set(key, [_deal("d")])

        now_ms.return_value = T0 + 3_599_000
        self.assertIsNotNone(self.cache.get(key))
        now_ms.return_value = T0 + 3_600_000
        self.assertIsNone(self.cache.get(key))

    def test_stored_layout(self, now_ms) -> None:
        """Entries are JSON {items, timestamp}."""
        now_ms.return_value = T0
        self.cache.set("curated:deal", [_deal("d")])
        payload = json.loads(self.storage.get_item("curated:deal"))
        self.assertEqual(payload["timestamp"], T0)
        self.assertEqual(payload["items"][0]["id"], "d")
        self.assertEqual(payload["items"][0]["discountPercentage"], 50)

    def test_corrupt_entry_is_a_miss_and_deleted(self, now_ms) -> None:
        """Undecodable JSON or shape is dropped, not raised."""
        now_ms.return_value = T0
        for bad in ("{not json", '{"items": 3, "timestamp": 1}', '{"items": []}',
                    '{"items": [{"id": "x"}], "timestamp": 1}'):
            with self.subTest(bad=bad):
                self.storage.set_item("curated:deal", bad)
                self.assertIsNone(self.cache.get("curated:deal"))
                self.assertIsNone(self.storage.get_item("curated:deal"))

    def test_mistyped_end_time_is_corrupt(self, now_ms) -> None:
        """A numeric auction endTime is a malformed entry, not a crash."""
        now_ms.return_value = T0
        key = searched_key(ItemType.AUCTION, "watch")
        item = _auction("a").to_dict()
        item["endTime"] = 4102444800
        self.storage.set_item(
            key, json.dumps({"items": [item], "timestamp": T0})
        )

        self.assertIsNone(self.cache.get(key))
        self.assertIsNone(self.storage.get_item(key))

    def test_age(self, now_ms) -> None:
        now_ms.return_value = T0
        self.cache.set("curated:deal", [_deal("d")])
        now_ms.return_value = T0 + 2_800_000
        self.assertEqual(self.cache.age("curated:deal"), 2800.0)
        self.assertIsNone(self.cache.age("curated:auction"))

    def test_remove_listing_keeps_timestamp(self, now_ms) -> None:
        """Removing one listing does not refresh the entry."""
        now_ms.return_value = T0
        key = curated_key(ItemType.AUCTION)
        self.cache.set(key, [_auction("a"), _auction("b")])

        now_ms.return_value = T0 + 60_000
        self.assertTrue(self.cache.remove_listing(key, "a"))
        entry = self.cache.peek(key)
        self.assertEqual([l.id for l in entry.items], ["b"])
        self.assertEqual(entry.timestamp, T0)

    def test_remove_last_listing_deletes_entry(self, now_ms) -> None:
        """An emptied entry is deleted instead of cached as []."""
        now_ms.return_value = T0
        key = curated_key(ItemType.AUCTION)
        self.cache.set(key, [_auction("a")])

        self.assertTrue(self.cache.remove_listing(key, "a"))
        self.assertIsNone(self.storage.get_item(key))

    def test_remove_unknown_listing_is_noop(self, now_ms) -> None:
        now_ms.return_value = T0
        key = curated_key(ItemType.AUCTION)
        self.cache.set(key, [_auction("a")])
        raw_before = self.storage.get_item(key)

        self.assertFalse(self.cache.remove_listing(key, "zzz"))
        self.assertFalse(self.cache.remove_listing("curated:deal", "a"))
        self.assertEqual(self.storage.get_item(key), raw_before)

    def test_delete_and_clear(self, now_ms) -> None:
        now_ms.return_value = T0
        self.cache.set("curated:deal", [_deal("d")])
        self.cache.set("curated:auction", [_auction("a")])
        self.cache.delete("curated:deal")
        self.assertEqual(self.storage.keys(), ["curated:auction"])
        self.assertEqual(self.cache.clear(), 1)
        self.assertEqual(self.storage.keys(), [])


if __name__ == "__main__":
    unittest.main()
