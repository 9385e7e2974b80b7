# src/sources/mock_source.py

"""Offline listing source backed by canned data."""

import logging
from datetime import datetime, timedelta, timezone

from src.models.listing import AuctionDetails, ItemType, Listing
from src.sources.base_source import ListingSource

_IMAGE = "https://placehold.co/600x400.png"

_DEALS: list[tuple[str, str, str, float, float, float]] = [
    ("deal1", "High-Performance Laptop Pro X1",
     "16GB RAM, 512GB SSD, 14-inch display.", 999.99, 1499.99, 95),
    ("deal2", "Noise-Cancelling Headphones Z",
     "Industry-leading noise cancellation, 30h playtime.", 199.50, 299.00, 92),
    ("deal3", "Smartwatch Series 5",
     "Fitness tracking, GPS, cellular, water-resistant.", 249.00, 399.00, 88),
    ("deal4", "4K Ultra HD Smart TV 55-inch",
     "HDR, built-in streaming apps, voice remote.", 450.00, 650.00, 90),
    ("deal5", "Robotic Vacuum Cleaner Advanced",
     "Smart navigation, app control, self-charging.", 220.00, 350.00, 93),
    ("deal6", "Pro Gaming Mouse RGB",
     "16000 DPI sensor, 8 programmable buttons.", 49.99, 79.99, 96),
    ("deal7", "Wireless Earbuds TrueSound",
     "Bluetooth 5.2, 24h battery, IPX7.", 79.00, 129.00, 91),
    ("deal8", "Portable SSD 1TB FastDrive",
     "USB-C, compact and durable.", 119.99, 179.99, 94),
]

# (id, title, description, current bid, seller reputation, hours left, bids)
_AUCTIONS: list[tuple[str, str, str, float, float, float, int]] = [
    ("auction1", "Vintage Collector's Watch",
     "Rare 1950s mechanical watch, recently serviced.", 750.00, 98, 48, 15),
    ("auction2", "Limited Edition Art Print",
     "Signed and numbered, 100 copies worldwide.", 320.00, 90, 120, 8),
    ("auction3", "Antique Silver Tea Set",
     "Victorian-era, hallmarked, complete set.", 450.00, 93, 24, 22),
    ("auction4", "Retro Gaming Console Bundle",
     "90s console, two controllers, five cartridges.", 150.00, 85, 72, 12),
]


class MockSource(ListingSource):
    """Serves a fixed catalogue with substring query matching.

    Auction end times are anchored to ``now`` at construction so the
    catalogue is always live.
    """

    source_name = "mock"

    def __init__(self, now: datetime | None = None) -> None:
        self.logger = logging.getLogger("baybot.mock")
        anchor = now or datetime.now(timezone.utc)
        self._deals = [
            Listing(
                id=item_id,
                item_type=ItemType.DEAL,
                title=title,
                description=description,
                image_url=_IMAGE,
                price=price,
                original_price=original,
                seller_reputation=reputation,
                condition="New",
            )
            for item_id, title, description, price, original, reputation in _DEALS
        ]
        self._auctions = [
            Listing(
                id=item_id,
                item_type=ItemType.AUCTION,
                title=title,
                description=description,
                image_url=_IMAGE,
                price=price,
                seller_reputation=reputation,
                condition="Used",
                auction=AuctionDetails(
                    end_time=(anchor + timedelta(hours=hours)).isoformat(),
                    bid_count=bids,
                ),
            )
            for item_id, title, description, price, reputation, hours, bids
            in _AUCTIONS
        ]

    def search(
        self,
        item_type: ItemType,
        keyword: str,
        offset: int = 0,
        limit: int = 20,
    ) -> list[Listing]:
        """Return catalogue entries whose title or description matches."""
        pool = self._deals if item_type is ItemType.DEAL else self._auctions
        needle = keyword.lower().strip()
        matches = [
            listing for listing in pool
            if not needle
            or needle in listing.title.lower()
            or needle in listing.description.lower()
        ]
        if item_type is ItemType.DEAL:
            matches.sort(key=lambda l: l.discount_percentage, reverse=True)
        else:
            matches.sort(key=lambda l: l.end_time or "")
        page = matches[offset: offset + limit]
        self.logger.debug(
            "[mock] %d %s listings for '%s'",
            len(page),
            item_type.value,
            keyword,
        )
        return page
