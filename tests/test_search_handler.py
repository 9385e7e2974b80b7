# tests/test_search_handler.py

"""Tests for the explicit-query search handler."""

import unittest
from unittest.mock import MagicMock

from src.exceptions import AuthFailure, QualificationFailure, SourceUnavailable
from src.models.listing import AuctionDetails, ItemType, Listing
from src.models.qualification import QualificationVerdict
from src.services.qualification_service import QualificationService
from src.services.search_handler import SearchHandler
from src.storage.cache_store import CacheStore, searched_key


def _auction(item_id: str, end: str = "2099-01-01T00:00:00Z") -> Listing:
    return Listing(
        id=item_id, item_type=ItemType.AUCTION, title=f"Vintage camera {item_id}",
        price=25.0, auction=AuctionDetails(end),
    )


class TestSearchHandler(unittest.IsolatedAsyncioTestCase):
    """SearchHandler.search behaviour."""

    def setUp(self) -> None:
        self.source = MagicMock()
        self.qualifier = MagicMock()
        self.cache = CacheStore()
        self.handler = SearchHandler(
            self.source,
            QualificationService(qualifiers={t: self.qualifier for t in ItemType}),
            self.cache,
        )

    async def test_ai_error_shows_all_twelve(self) -> None:
        """'vintage camera': 12 live auctions, AI fails, all 12 shown."""
        raw = [_auction(f"a{i}") for i in range(12)]
        self.source.search.return_value = raw
        self.qualifier.qualify.side_effect = QualificationFailure("boom")

        page = await self.handler.search(ItemType.AUCTION, "vintage camera")

        self.assertEqual([l.id for l in page.items], [l.id for l in raw])
        self.assertEqual(len(page.notices), 1)
        self.assertFalse(page.has_more)
        self.assertEqual(page.next_offset, 20)

    async def test_literal_query_is_ai_context(self) -> None:
        self.source.search.return_value = [_auction("a1")]
        self.qualifier.qualify.return_value = [QualificationVerdict("a1", 70)]

        page = await self.handler.search(ItemType.AUCTION, "vintage camera")

        self.qualifier.qualify.assert_called_once()
        self.assertEqual(self.qualifier.qualify.call_args.args[1], "vintage camera")
        self.assertEqual(page.items[0].rarity_score, 70.0)
        self.source.search.assert_called_once_with(
            ItemType.AUCTION, "vintage camera", 0, 20
        )

    async def test_first_page_cached(self) -> None:
        self.source.search.return_value = [_auction("a1")]
        self.qualifier.qualify.return_value = [QualificationVerdict("a1")]

        await self.handler.search(ItemType.AUCTION, "Vintage Camera")

        entry = self.cache.get(searched_key(ItemType.AUCTION, "vintage camera"))
        self.assertEqual([l.id for l in entry.items], ["a1"])

    async def test_later_pages_not_cached(self) -> None:
        self.source.search.return_value = [_auction("a1")]
        self.qualifier.qualify.return_value = [QualificationVerdict("a1")]

        await self.handler.search(ItemType.AUCTION, "camera", offset=20)

        self.assertIsNone(self.cache.get(searched_key(ItemType.AUCTION, "camera")))

    async def test_ended_and_excluded_dropped(self) -> None:
        self.source.search.return_value = [
            _auction("live"),
            _auction("ended", "2000-01-01T00:00:00Z"),
            _auction("seen"),
        ]
        self.qualifier.qualify.return_value = []

        page = await self.handler.search(
            ItemType.AUCTION, "camera", exclude_ids={"seen"}
        )

        self.assertEqual([l.id for l in page.items], ["live"])
        self.assertEqual(page.raw_count, 3)

    async def test_full_page_has_more(self) -> None:
        self.source.search.return_value = [_auction(f"a{i}") for i in range(20)]
        self.qualifier.qualify.return_value = []

        page = await self.handler.search(ItemType.AUCTION, "camera")

        self.assertTrue(page.has_more)

    async def test_empty_result(self) -> None:
        self.source.search.return_value = []

        page = await self.handler.search(ItemType.DEAL, "nothing here")

        self.assertEqual(page.items, [])
        self.qualifier.qualify.assert_not_called()

    async def test_source_errors_propagate(self) -> None:
        for exc in (AuthFailure("nope"), SourceUnavailable("down")):
            with self.subTest(exc=type(exc).__name__):
                self.source.search.side_effect = exc
                with self.assertRaises(type(exc)):
                    await self.handler.search(ItemType.DEAL, "tv")


if __name__ == "__main__":
    unittest.main()
