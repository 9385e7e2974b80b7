# src/filters/listing_filter.py

"""Drop listings that can no longer be shown."""

import logging
from datetime import datetime, timezone

from src.models.listing import Listing

logger = logging.getLogger("baybot.filters")


class ListingFilter:
    """Filter fetched or cached listings before display."""

    @staticmethod
    def filter_active(
        listings: list[Listing],
        now: datetime | None = None,
    ) -> tuple[list[Listing], int]:
        """Remove ended auctions and auctions without an end time.

        Deals always pass. Returns the kept listings and the count
        of removed ones.
        """
        current = now or datetime.now(timezone.utc)
        kept = [
            listing for listing in listings
            if listing.is_active(current)
        ]
        removed = len(listings) - len(kept)
        if removed:
            logger.info(
                "Activity filter removed %d ended auctions", removed
            )
        return kept, removed

    @staticmethod
    def exclude_ids(
        listings: list[Listing],
        excluded: set[str],
    ) -> list[Listing]:
        """Remove listings whose id is in ``excluded``."""
        if not excluded:
            return list(listings)
        return [
            listing for listing in listings
            if listing.id not in excluded
        ]
