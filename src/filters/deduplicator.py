# src/filters/deduplicator.py

"""Listing deduplication across concurrent keyword searches."""

import logging
from collections.abc import Iterable

from src.models.listing import Listing

logger = logging.getLogger("baybot.filters")


class ListingDeduplicator:
    """Collapse listings sharing a marketplace id."""

    @staticmethod
    def deduplicate(
        listings: Iterable[Listing],
    ) -> tuple[list[Listing], int]:
        """Keep the first occurrence of every id, preserving order.

        Returns the deduplicated list and the count of removed dupes.
        """
        seen: set[str] = set()
        kept: list[Listing] = []
        removed = 0

        for listing in listings:
            if listing.id in seen:
                removed += 1
                continue
            seen.add(listing.id)
            kept.append(listing)

        if removed:
            logger.info(
                "Deduplication removed %d duplicate listings",
                removed,
            )

        return kept, removed

    @staticmethod
    def merge_new(
        existing: list[Listing],
        incoming: Iterable[Listing],
    ) -> tuple[list[Listing], list[Listing]]:
        """Append unseen listings after ``existing`` without reordering it.

        Returns the merged list and the listings that were actually added.
        """
        seen = {listing.id for listing in existing}
        added: list[Listing] = []
        for listing in incoming:
            if listing.id in seen:
                continue
            seen.add(listing.id)
            added.append(listing)
        return [*existing, *added], added
